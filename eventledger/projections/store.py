"""Projection store: materialized views keyed by (type, id).

The read side of the CQRS pattern. A view is only overwritten by a save
whose latest_event_id is at least the stored one, so checkpoints never
move backwards even with concurrent savers.
"""

import logging
from typing import Any

import aiosqlite

from eventledger.config import validate_identifier
from eventledger.db.connection import Database
from eventledger.db.filters import build_data_conditions
from eventledger.models import DataFilter, ProjectionRecord, SaveProjectionResult
from eventledger.utils.json import decode_payload, encode_payload

logger = logging.getLogger(__name__)


class ProjectionStore:
    """Conditional upserts and lookups over the projections table."""

    def __init__(self, db: Database, table: str = "projections") -> None:
        self._db = db
        self._table = validate_identifier(table)

    async def save(
        self,
        type: str,
        id: str,
        data: dict[str, Any],
        latest_event_id: str,
    ) -> SaveProjectionResult:
        """Insert, or overwrite if latest_event_id does not go backwards.

        The decision is made by one upsert statement. revision is 1 on insert
        and bumped on every accepted overwrite, which is how "created" and
        "updated" are told apart. A rejected overwrite returns no row; the
        stored state is then read in the same transaction and reported as
        "skipped".
        """
        t = self._table
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                f"""
                INSERT INTO {t} (type, id, data, latest_event_id)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (type, id) DO UPDATE SET
                    data = excluded.data,
                    latest_event_id = excluded.latest_event_id,
                    revision = {t}.revision + 1,
                    updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
                WHERE {t}.latest_event_id <= excluded.latest_event_id
                RETURNING type, id, data, latest_event_id, revision
                """,
                (type, id, encode_payload(data), latest_event_id),
            )
            rows = await cursor.fetchall()
            if rows:
                row = rows[0]
                status = "created" if row["revision"] == 1 else "updated"
            else:
                cursor = await conn.execute(
                    f"SELECT type, id, data, latest_event_id FROM {t} WHERE type = ? AND id = ?",
                    (type, id),
                )
                row = await cursor.fetchone()
                status = "skipped"

        logger.debug("Projection %s/%s %s at %s", type, id, status, row["latest_event_id"])
        return SaveProjectionResult(
            status=status,
            type=row["type"],
            id=row["id"],
            data=decode_payload(row["data"]),
            latest_event_id=row["latest_event_id"],
        )

    async def get(self, type: str, id: str) -> ProjectionRecord | None:
        """Read a stored view. Returns None if it was never materialized."""
        row = await self._db.fetchone(
            f"SELECT data, latest_event_id FROM {self._table} WHERE type = ? AND id = ?",
            (type, id),
        )
        if row is None:
            return None
        return self._row_to_record(row)

    async def query(
        self, type: str, data: DataFilter | None = None
    ) -> list[ProjectionRecord]:
        """All views of a type whose payload matches the data filter."""
        conditions = ["type = ?"]
        params: list[Any] = [type]
        predicates, data_params = build_data_conditions("data", data)
        conditions.extend(predicates)
        params.extend(data_params)
        rows = await self._db.fetchall(
            f"SELECT data, latest_event_id FROM {self._table} "
            f"WHERE {' AND '.join(conditions)} ORDER BY id",
            params,
        )
        return [self._row_to_record(row) for row in rows]

    @staticmethod
    def _row_to_record(row: aiosqlite.Row) -> ProjectionRecord:
        return ProjectionRecord(
            data=decode_payload(row["data"]),
            latest_event_id=row["latest_event_id"],
        )
