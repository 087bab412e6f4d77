"""Async SQLite access for chatkeep: one shared connection, WAL mode, auto-schema."""

import sqlite3

import aiosqlite

from chatkeep.db.schema import SCHEMA_SQL

# Applied to every new connection, in order.
CONNECTION_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA foreign_keys=ON",
    "PRAGMA busy_timeout=5000",
)


class StoreUnavailableError(Exception):
    """Raised when the database cannot be reached."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Database unavailable: {reason}")


class Database:
    """Shared aiosqlite connection used by RecordStore and the import staging table.

    Every ``execute`` commits immediately, so each statement is its own
    transaction.
    """

    def __init__(self, connection: aiosqlite.Connection) -> None:
        self._conn = connection

    @classmethod
    async def connect(cls, path: str = "chatkeep.db") -> "Database":
        """Open ``path`` (or ``:memory:``), apply pragmas and create the schema."""
        conn = await aiosqlite.connect(path)
        conn.row_factory = aiosqlite.Row
        for pragma in CONNECTION_PRAGMAS:
            await conn.execute(pragma)
        await conn.executescript(SCHEMA_SQL)
        await conn.commit()
        return cls(conn)

    async def execute(self, sql: str, params: tuple | None = None) -> aiosqlite.Cursor:
        """Run a write statement and commit."""
        cursor = await self._conn.execute(sql, params or ())
        await self._conn.commit()
        return cursor

    async def fetchone(self, sql: str, params: tuple | None = None) -> aiosqlite.Row | None:
        cursor = await self._conn.execute(sql, params or ())
        return await cursor.fetchone()

    async def fetchall(self, sql: str, params: tuple | None = None) -> list[aiosqlite.Row]:
        cursor = await self._conn.execute(sql, params or ())
        return list(await cursor.fetchall())

    async def ping(self) -> None:
        """Round-trip a trivial query. Raises StoreUnavailableError on failure."""
        try:
            await self._conn.execute("SELECT 1")
        except (sqlite3.Error, ValueError) as e:
            raise StoreUnavailableError(str(e)) from e

    async def close(self) -> None:
        await self._conn.close()
