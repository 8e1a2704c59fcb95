"""A value fetched at most once, on first await."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, Literal, TypeVar

T = TypeVar("T")

_UNSET = object()


class Lazy(Generic[T]):
    """Memoized async fetch with explicit state.

    unresolved -> pending (one shared task) -> resolved. Concurrent callers
    of get() while pending await the same task instead of fetching again.
    The task is shielded, so cancelling one awaiter leaves the fetch running
    for the others. A failed fetch is not cached; the next get() retries.
    """

    def __init__(self, factory: Callable[[], Awaitable[T]]) -> None:
        self._factory = factory
        self._task: asyncio.Future[T] | None = None
        self._value: object = _UNSET

    @property
    def state(self) -> Literal["unresolved", "pending", "resolved"]:
        if self._value is not _UNSET:
            return "resolved"
        if self._task is not None:
            return "pending"
        return "unresolved"

    def resolve(self, value: T) -> None:
        """Set the value outright. Any fetch still in flight is disregarded."""
        self._value = value
        self._task = None

    async def get(self) -> T:
        if self._value is not _UNSET:
            return self._value  # type: ignore[return-value]
        if self._task is None:
            self._task = asyncio.ensure_future(self._factory())
        task = self._task
        try:
            value = await asyncio.shield(task)
        except Exception:
            if self._task is task:
                self._task = None
            raise
        if self._task is task:
            self._value = value
            self._task = None
        if self._value is _UNSET:
            return value
        return self._value  # type: ignore[return-value]
