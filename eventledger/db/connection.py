"""Async SQLite connection wrapper with WAL mode, schema init and transactions."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite

from eventledger.config import Settings
from eventledger.db.schema import build_schema_sql

logger = logging.getLogger(__name__)


class Database:
    """Thin async wrapper around one aiosqlite connection.

    All access goes through a single asyncio.Lock, so a transaction opened
    by one coroutine is never interleaved with statements from another.
    """

    def __init__(self, connection: aiosqlite.Connection) -> None:
        self._conn = connection
        self._lock = asyncio.Lock()

    @classmethod
    async def connect(
        cls, path: str | None = None, settings: Settings | None = None
    ) -> "Database":
        """Create a connection with WAL mode, busy timeout, and schema init.

        path overrides settings.database_path; ":memory:" works for tests.
        """
        settings = settings or Settings()
        path = path or settings.database_path
        conn = await aiosqlite.connect(path)
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute(f"PRAGMA busy_timeout={int(settings.busy_timeout_ms)}")
        db = cls(conn)
        await db._ensure_schema(build_schema_sql(settings))
        logger.info("Opened event database at %s", path)
        return db

    async def _ensure_schema(self, schema_sql: str) -> None:
        """Create tables if they don't exist. Idempotent."""
        async with self._lock:
            await self._conn.executescript(schema_sql)
            await self._conn.commit()

    async def execute(self, sql: str, params: tuple | list | None = None) -> aiosqlite.Cursor:
        """Execute a single SQL statement and commit."""
        async with self._lock:
            cursor = await self._conn.execute(sql, params or ())
            await self._conn.commit()
            return cursor

    async def fetchone(
        self,
        sql: str,
        params: tuple | list | None = None,
        conn: aiosqlite.Connection | None = None,
    ) -> aiosqlite.Row | None:
        """Execute and return a single row.

        With conn (from transaction()) the query runs inside that transaction.
        """
        if conn is not None:
            cursor = await conn.execute(sql, params or ())
            return await cursor.fetchone()
        async with self._lock:
            cursor = await self._conn.execute(sql, params or ())
            return await cursor.fetchone()

    async def fetchall(
        self,
        sql: str,
        params: tuple | list | None = None,
        conn: aiosqlite.Connection | None = None,
    ) -> list[aiosqlite.Row]:
        """Execute and return all rows."""
        if conn is not None:
            cursor = await conn.execute(sql, params or ())
            return list(await cursor.fetchall())
        async with self._lock:
            cursor = await self._conn.execute(sql, params or ())
            return list(await cursor.fetchall())

    @asynccontextmanager
    async def transaction(
        self,
        immediate: bool = True,
        conn: aiosqlite.Connection | None = None,
    ) -> AsyncIterator[aiosqlite.Connection]:
        """Run a block of statements as one all-or-nothing unit.

        Yields the raw connection; use it directly inside the block (the
        Database helpers would deadlock on the held lock unless handed the
        connection). Commits on normal exit, rolls back on any exception.
        immediate=True takes SQLite's write lock up front; pass False for
        read-only snapshots.

        Passing conn (one yielded by an enclosing transaction()) joins that
        transaction instead: nothing is begun, committed or rolled back here.
        """
        if conn is not None:
            yield conn
            return
        async with self._lock:
            await self._conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            try:
                yield self._conn
            except BaseException:
                await self._conn.rollback()
                raise
            await self._conn.commit()

    async def close(self) -> None:
        """Close the database connection."""
        await self._conn.close()
