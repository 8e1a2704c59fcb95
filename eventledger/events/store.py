"""Append-only event store backed by SQLite."""

import logging
from collections.abc import Sequence
from typing import Any

import aiosqlite

from eventledger.config import validate_identifier
from eventledger.db.connection import Database
from eventledger.db.filters import build_data_conditions
from eventledger.ids import MonotonicULIDFactory
from eventledger.models import DataFilter, EventInput, StoredEvent, StreamDefinition, StreamQuery
from eventledger.utils.json import decode_payload, encode_payload

logger = logging.getLogger(__name__)


class EventStore:
    """Append-only event store. The write side of the CQRS pattern.

    Events are ordered by id (ULID), never by insertion time.
    """

    def __init__(
        self,
        db: Database,
        table: str = "events",
        id_factory: MonotonicULIDFactory | None = None,
    ) -> None:
        self._db = db
        self._table = validate_identifier(table)
        self._ids = id_factory or MonotonicULIDFactory()

    # -- writes --

    async def append(
        self, event: EventInput, *, conn: aiosqlite.Connection | None = None
    ) -> StoredEvent:
        """Append one event, assigning an id if it has none.

        Raises WriteError if the store rejects the row (e.g. duplicate id).
        With conn the row joins the caller's transaction and is only durable
        once that commits.
        """
        event_id = event.id or self._ids.next_id()
        params = (event_id, event.type, encode_payload(event.data))
        try:
            async with self._db.transaction(conn=conn) as tx:
                cursor = await tx.execute(
                    f"INSERT INTO {self._table} (id, type, data) VALUES (?, ?, ?) RETURNING *",
                    params,
                )
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise WriteError(event_id, exc) from exc
        return self._row_to_event(rows[0])

    async def append_batch(
        self,
        events: Sequence[EventInput],
        *,
        conn: aiosqlite.Connection | None = None,
    ) -> list[StoredEvent]:
        """Append events atomically: all rows are durable or none are.

        Every event gets a fresh id from the generator, so ids increase
        strictly in input order and the result preserves that order.
        With conn the batch is part of the caller's transaction, which then
        decides atomicity.
        """
        if not events:
            return []
        batch = [
            (self._ids.next_id(), event.type, encode_payload(event.data))
            for event in events
        ]
        rows: list[aiosqlite.Row] = []
        try:
            async with self._db.transaction(conn=conn) as tx:
                for params in batch:
                    cursor = await tx.execute(
                        f"INSERT INTO {self._table} (id, type, data) VALUES (?, ?, ?) RETURNING *",
                        params,
                    )
                    rows.extend(await cursor.fetchall())
        except aiosqlite.Error as exc:
            raise WriteError(None, exc) from exc
        logger.debug("Appended batch of %d events", len(rows))
        return [self._row_to_event(row) for row in rows]

    async def append_with_stream_validation(
        self,
        event: EventInput,
        since_event_id: str,
        streams: Sequence[StreamDefinition],
        *,
        conn: aiosqlite.Connection | None = None,
    ) -> StoredEvent:
        """Append only if no referenced stream moved past since_event_id.

        One INSERT ... SELECT ... WHERE NOT EXISTS (...) statement: the row is
        written only when every stream check passes, so the existence checks
        and the insert commit together. Raises ConcurrencyConflictError when
        any stream has a matching event with id > since_event_id; nothing is
        written in that case.
        """
        event_id = event.id or self._ids.next_id()
        params: list[Any] = [event_id, event.type, encode_payload(event.data)]
        checks: list[str] = []

        for stream in streams:
            if not stream.types:
                continue
            placeholders = ", ".join("?" for _ in stream.types)
            conditions = [f"e.type IN ({placeholders})", "e.id > ?"]
            params.extend(stream.types)
            params.append(since_event_id)
            predicates, data_params = build_data_conditions("e.data", stream.identifier)
            conditions.extend(predicates)
            params.extend(data_params)
            checks.append(
                f"NOT EXISTS (SELECT 1 FROM {self._table} AS e WHERE {' AND '.join(conditions)})"
            )

        where = " AND ".join(checks) if checks else "1"
        sql = (
            f"INSERT INTO {self._table} (id, type, data) "
            f"SELECT ?, ?, ? WHERE {where} RETURNING *"
        )

        try:
            async with self._db.transaction(conn=conn) as tx:
                cursor = await tx.execute(sql, params)
                rows = await cursor.fetchall()
                if not rows:
                    logger.debug(
                        "Stream validation failed for %s (since %s)", event_id, since_event_id
                    )
                    raise ConcurrencyConflictError(event_id, since_event_id)
        except aiosqlite.Error as exc:
            raise WriteError(event_id, exc) from exc
        return self._row_to_event(rows[0])

    # -- reads --

    async def latest(
        self,
        event_type: str,
        *,
        data: DataFilter | None = None,
        after: str | None = None,
        conn: aiosqlite.Connection | None = None,
    ) -> StoredEvent | None:
        """Return the earliest event of event_type after the cursor, or None.

        Despite the name this is the first match in ascending id order, not
        the most recent one.
        """
        sql, params = self._stream_sql([event_type], data, after)
        row = await self._db.fetchone(sql + " LIMIT 1", params, conn=conn)
        if row is None:
            return None
        return self._row_to_event(row)

    async def read_stream(
        self,
        event_types: Sequence[str],
        *,
        data: DataFilter | None = None,
        after: str | None = None,
        conn: aiosqlite.Connection | None = None,
    ) -> list[StoredEvent]:
        """All events of the given types matching the filter, ascending by id."""
        if not event_types:
            return []
        sql, params = self._stream_sql(event_types, data, after)
        rows = await self._db.fetchall(sql, params, conn=conn)
        return [self._row_to_event(row) for row in rows]

    async def read_streams(
        self,
        queries: Sequence[StreamQuery],
        *,
        conn: aiosqlite.Connection | None = None,
    ) -> list[StoredEvent]:
        """Union of several stream reads from one snapshot, deduped, ascending by id.

        The snapshot is the caller's transaction when conn is given.
        """
        by_id: dict[str, StoredEvent] = {}
        async with self._db.transaction(immediate=False, conn=conn) as tx:
            for query in queries:
                if not query.event_types:
                    continue
                sql, params = self._stream_sql(query.event_types, query.data, query.after)
                cursor = await tx.execute(sql, params)
                for row in await cursor.fetchall():
                    event = self._row_to_event(row)
                    by_id[event.id] = event
        return sorted(by_id.values(), key=lambda e: e.id)

    def _stream_sql(
        self,
        event_types: Sequence[str],
        data: DataFilter | None,
        after: str | None,
    ) -> tuple[str, list[Any]]:
        placeholders = ", ".join("?" for _ in event_types)
        conditions = [f"type IN ({placeholders})"]
        params: list[Any] = list(event_types)
        if after:
            conditions.append("id > ?")
            params.append(after)
        predicates, data_params = build_data_conditions("data", data)
        conditions.extend(predicates)
        params.extend(data_params)
        sql = f"SELECT * FROM {self._table} WHERE {' AND '.join(conditions)} ORDER BY id ASC"
        return sql, params

    @staticmethod
    def _row_to_event(row: aiosqlite.Row) -> StoredEvent:
        """Convert a database row to a StoredEvent."""
        return StoredEvent(
            id=row["id"],
            type=row["type"],
            data=decode_payload(row["data"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


class WriteError(Exception):
    def __init__(self, event_id: str | None, reason: Exception) -> None:
        self.event_id = event_id
        self.reason = reason
        target = f"event {event_id}" if event_id else "events"
        super().__init__(f"Failed to append {target}: {reason}")


class ConcurrencyConflictError(Exception):
    def __init__(self, event_id: str, since_event_id: str) -> None:
        self.event_id = event_id
        self.since_event_id = since_event_id
        super().__init__(
            "Concurrent modification detected - newer events exist in one or more "
            f"streams since {since_event_id}"
        )
