"""Event client: one EventStore and one ProjectionStore over one database.

This is what projections are handed. It owns the Database when built with
connect(); otherwise the caller does.
"""

from collections.abc import Sequence
from contextlib import AbstractAsyncContextManager
from typing import Any

import aiosqlite

from eventledger.config import Settings
from eventledger.db.connection import Database
from eventledger.events.store import EventStore
from eventledger.ids import MonotonicULIDFactory
from eventledger.models import (
    DataFilter,
    EventInput,
    ProjectionRecord,
    SaveProjectionResult,
    StoredEvent,
    StreamDefinition,
    StreamQuery,
)
from eventledger.projections.store import ProjectionStore


class EventClient:
    """Facade over the event and projection stores."""

    def __init__(
        self,
        db: Database,
        settings: Settings | None = None,
        id_factory: MonotonicULIDFactory | None = None,
    ) -> None:
        settings = settings or Settings()
        self._db = db
        self.events = EventStore(db, table=settings.events_table, id_factory=id_factory)
        self.projections = ProjectionStore(db, table=settings.projections_table)

    @classmethod
    async def connect(cls, settings: Settings | None = None) -> "EventClient":
        """Open the configured database (creating tables) and wrap it."""
        settings = settings or Settings.from_env()
        db = await Database.connect(settings=settings)
        return cls(db, settings)

    def transaction(
        self, immediate: bool = True
    ) -> AbstractAsyncContextManager[aiosqlite.Connection]:
        """Open a transaction; pass the yielded connection as conn= to join it."""
        return self._db.transaction(immediate=immediate)

    async def close(self) -> None:
        await self._db.close()

    async def __aenter__(self) -> "EventClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # -- events --

    async def save_event(
        self, event: EventInput, *, conn: aiosqlite.Connection | None = None
    ) -> StoredEvent:
        return await self.events.append(event, conn=conn)

    async def save_events(
        self, events: Sequence[EventInput], *, conn: aiosqlite.Connection | None = None
    ) -> list[StoredEvent]:
        return await self.events.append_batch(events, conn=conn)

    async def get_latest_event(
        self,
        event_type: str,
        *,
        data: DataFilter | None = None,
        after: str | None = None,
        conn: aiosqlite.Connection | None = None,
    ) -> StoredEvent | None:
        return await self.events.latest(event_type, data=data, after=after, conn=conn)

    async def get_event_stream(
        self,
        event_types: Sequence[str],
        *,
        data: DataFilter | None = None,
        after: str | None = None,
        conn: aiosqlite.Connection | None = None,
    ) -> list[StoredEvent]:
        return await self.events.read_stream(event_types, data=data, after=after, conn=conn)

    async def get_event_streams(
        self, queries: Sequence[StreamQuery], *, conn: aiosqlite.Connection | None = None
    ) -> list[StoredEvent]:
        return await self.events.read_streams(queries, conn=conn)

    async def save_event_with_stream_validation(
        self,
        event: EventInput,
        since_event_id: str,
        streams: Sequence[StreamDefinition],
        *,
        conn: aiosqlite.Connection | None = None,
    ) -> StoredEvent:
        return await self.events.append_with_stream_validation(
            event, since_event_id, streams, conn=conn
        )

    # -- projections --

    async def save_projection(
        self, type: str, id: str, data: dict[str, Any], latest_event_id: str
    ) -> SaveProjectionResult:
        return await self.projections.save(type, id, data, latest_event_id)

    async def get_projection(self, type: str, id: str) -> ProjectionRecord | None:
        return await self.projections.get(type, id)

    async def query_projections(
        self, type: str, data: DataFilter | None = None
    ) -> list[ProjectionRecord]:
        return await self.projections.query(type, data)
