"""Sortable, monotonically increasing event ids (ULIDs)."""

import threading
import time
from collections.abc import Callable

from ulid import ULID


class MonotonicULIDFactory:
    """Issue ULID strings that sort in issue order for this instance.

    Within one millisecond (or if the clock steps backwards) the next id is
    the previous one plus one, so ids stay strictly increasing. Across
    processes ordering only follows wall-clock time.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last: ULID | None = None
        self._lock = threading.Lock()

    def next_id(self) -> str:
        candidate = ULID.from_timestamp(self._clock())
        with self._lock:
            last = self._last
            if last is not None and candidate.milliseconds <= last.milliseconds:
                candidate = ULID.from_int(int(last) + 1)
            self._last = candidate
        return str(candidate)

    __call__ = next_id
