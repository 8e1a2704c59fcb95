"""Projection engine: replay one entity's events into a view.

A projection folds the events of one entity (filtered by event type and a
data identifier) into a JSON view. Nothing is read on construction: the
saved view, the identifiers and the event slice are each fetched lazily,
at most once per instance. Only events after the saved checkpoint are read,
and reducers start from the saved view's fields.

Subclasses supply identity and semantics through abstract members; a
subclass missing one cannot be instantiated.
"""

import functools
import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING, Any, Self, TypeVar

from eventledger.models import DataFilter, EventInput, ProjectionRecord, SaveProjectionResult, StoredEvent
from eventledger.projections.lazy import Lazy

if TYPE_CHECKING:
    from eventledger.client import EventClient

T = TypeVar("T")

# Staged events may not have been appended yet, so they can lack an id
EventLike = StoredEvent | EventInput


def _event_sort_key(event: EventLike) -> str:
    return event.id or ""


class ProjectionCore(ABC):
    """Lifecycle shared by single- and multi-stream projections."""

    def __init__(self, client: "EventClient", load_existing_projection: bool = True) -> None:
        self._client = client
        self._load_existing_projection = load_existing_projection
        self._saved_projection: Lazy[ProjectionRecord | None] = Lazy(self._load_saved_projection)
        self._events: Lazy[list[EventLike]] = Lazy(self._load_events)
        self._staged_events: list[EventLike] = []

    # -- extension points --

    @property
    @abstractmethod
    def id(self) -> str:
        """Entity id this projection is built for."""
        raise ExtensionPointNotImplementedError("id")

    @property
    @abstractmethod
    def projection_type(self) -> str:
        """Name under which the view is stored."""
        raise ExtensionPointNotImplementedError("projection_type")

    @abstractmethod
    async def as_json(self) -> dict[str, Any]:
        """Build the view. Typically a handful of reduce_events() calls."""
        raise ExtensionPointNotImplementedError("as_json")

    @abstractmethod
    async def _load_events(self) -> list[EventLike]:
        """Read the persisted event slice after the checkpoint."""

    # -- lazy state --

    async def _load_saved_projection(self) -> ProjectionRecord | None:
        if not self._load_existing_projection:
            return None
        return await self._client.get_projection(self.projection_type, self.id)

    async def saved_projection(self) -> ProjectionRecord | None:
        """The previously saved view, or None if never materialized."""
        return await self._saved_projection.get()

    async def checkpoint(self) -> str | None:
        """latest_event_id of the saved view, i.e. where replay resumes."""
        saved = await self.saved_projection()
        return saved.latest_event_id if saved is not None else None

    # -- events --

    def apply(self, events: Iterable[EventLike]) -> Self:
        """Stage events for the fold without writing them anywhere."""
        self._staged_events.extend(events)
        return self

    def from_history(self, events: Iterable[EventLike]) -> Self:
        """Use these events instead of reading the store."""
        self._events.resolve(list(events))
        return self

    async def projection_events(self) -> list[EventLike]:
        """Persisted slice plus staged events, ascending by id (no id first)."""
        events = await self._events.get()
        return sorted([*events, *self._staged_events], key=_event_sort_key)

    async def reduce_events(self, reducer: Callable[[T, EventLike], T], initial: T) -> T:
        return functools.reduce(reducer, await self.projection_events(), initial)

    async def from_projection_or_default(self, key: str, fallback: T) -> T:
        """A field of the saved view, or fallback when there is none."""
        saved = await self.saved_projection()
        if saved is None:
            return fallback
        return saved.data.get(key, fallback)

    # -- persistence --

    async def save_projection(self) -> SaveProjectionResult:
        """Checkpoint the current view at the id of the last folded event.

        Raises UnpersistedEventsError if a staged event was never appended,
        EmptyEventsError if there is nothing to fold.
        """
        unsaved = [event for event in self._staged_events if event.id is None]
        if unsaved:
            raise UnpersistedEventsError(len(unsaved))

        events = await self.projection_events()
        if not events:
            raise EmptyEventsError(self.projection_type, self.id)

        latest_event_id = events[-1].id
        if latest_event_id is None:
            raise UnpersistedEventsError(1)

        return await self._client.save_projection(
            self.projection_type, self.id, await self.as_json(), latest_event_id
        )


class ProjectionBase(ProjectionCore):
    """Projection over one event-type set filtered by one identifier.

    Subclasses implement id, projection_type, event_types,
    get_event_identifiers() (sync or async) and as_json().
    """

    def __init__(self, client: "EventClient", load_existing_projection: bool = True) -> None:
        super().__init__(client, load_existing_projection)
        self._event_identifiers: Lazy[DataFilter] = Lazy(self._resolve_event_identifiers)

    @property
    @abstractmethod
    def event_types(self) -> list[str]:
        """Event types required to rebuild this projection."""
        raise ExtensionPointNotImplementedError("event_types")

    @abstractmethod
    def get_event_identifiers(self) -> DataFilter | Awaitable[DataFilter]:
        """Data filter selecting this entity's events, e.g. {"listId": ...}."""
        raise ExtensionPointNotImplementedError("get_event_identifiers")

    async def _resolve_event_identifiers(self) -> DataFilter:
        identifiers = self.get_event_identifiers()
        if inspect.isawaitable(identifiers):
            identifiers = await identifiers
        return identifiers

    async def _load_events(self) -> list[EventLike]:
        identifiers = await self._event_identifiers.get()
        after = await self.checkpoint()
        return await self._client.get_event_stream(
            self.event_types, data=identifiers, after=after
        )


class UnpersistedEventsError(Exception):
    def __init__(self, count: int) -> None:
        self.count = count
        super().__init__(
            f"Cannot save projection with unpersisted events ({count} without an id)"
        )


class EmptyEventsError(Exception):
    def __init__(self, projection_type: str, projection_id: str) -> None:
        self.projection_type = projection_type
        self.projection_id = projection_id
        super().__init__(f"No events to save for projection {projection_type}/{projection_id}")


class ExtensionPointNotImplementedError(NotImplementedError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"{name} must be implemented")
