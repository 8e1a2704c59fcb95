"""Projection over several independently filtered streams sharing one checkpoint."""

import inspect
from abc import abstractmethod
from collections.abc import Awaitable, Sequence
from typing import TYPE_CHECKING

from eventledger.models import StreamQuery
from eventledger.projections.base import EventLike, ExtensionPointNotImplementedError, ProjectionCore
from eventledger.projections.lazy import Lazy

if TYPE_CHECKING:
    from eventledger.client import EventClient


class MultiStreamProjectionBase(ProjectionCore):
    """Fold the union of several streams, e.g. a list's own events plus its items'.

    Subclasses implement id, projection_type, get_stream_options() (sync or
    async) and as_json(). Each stream is read after the saved checkpoint; the
    results are merged and de-duplicated by id like EventStore.read_streams.
    """

    def __init__(self, client: "EventClient", load_existing_projection: bool = True) -> None:
        super().__init__(client, load_existing_projection)
        self._stream_options: Lazy[list[StreamQuery]] = Lazy(self._resolve_stream_options)

    @abstractmethod
    def get_stream_options(self) -> Sequence[StreamQuery] | Awaitable[Sequence[StreamQuery]]:
        """Ordered stream queries; any after set here is replaced by the checkpoint."""
        raise ExtensionPointNotImplementedError("get_stream_options")

    async def _resolve_stream_options(self) -> list[StreamQuery]:
        options = self.get_stream_options()
        if inspect.isawaitable(options):
            options = await options
        return list(options)

    async def _load_events(self) -> list[EventLike]:
        queries = await self._stream_options.get()
        after = await self.checkpoint()
        return await self._client.get_event_streams(
            [query.model_copy(update={"after": after}) for query in queries]
        )
