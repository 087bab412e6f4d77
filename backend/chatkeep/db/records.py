"""Record store: create/find/list by entity type over the Database wrapper."""

from chatkeep.db.connection import Database
from chatkeep.models import ENTITY_SPECS, EntityType


class RecordStore:
    """Entity-level access to the materialized tables.

    Each call is a single statement, so every create/find is atomic on its own.
    There is no multi-record transaction.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    async def ping(self) -> None:
        await self._db.ping()

    async def find(self, entity: EntityType, **key: object) -> dict | None:
        """Return the first row whose columns match ``key``, or None.

        None values compare with IS so that missing optional key parts
        (profile_name) match each other.
        """
        table = ENTITY_SPECS[entity].table
        clauses = [f"{column} IS ?" for column in key]
        row = await self._db.fetchone(
            f"SELECT * FROM {table} WHERE {' AND '.join(clauses)} LIMIT 1",
            tuple(key.values()),
        )
        return dict(row) if row is not None else None

    async def create(self, entity: EntityType, row: dict) -> dict:
        """Insert a row and return it as stored."""
        spec = ENTITY_SPECS[entity]
        columns = list(row)
        placeholders = ", ".join("?" for _ in columns)
        cursor = await self._db.execute(
            f"INSERT INTO {spec.table} ({', '.join(columns)}) VALUES ({placeholders})",
            tuple(row.values()),
        )
        if entity is EntityType.SETTING:
            return dict(row)
        assert cursor.lastrowid is not None
        return {**row, "id": cursor.lastrowid}

    async def list_all(self, entity: EntityType) -> list[dict]:
        """All rows of an entity type in stable export order."""
        spec = ENTITY_SPECS[entity]
        rows = await self._db.fetchall(
            f"SELECT * FROM {spec.table} ORDER BY {spec.order_by}"
        )
        return [dict(row) for row in rows]

    async def count(self, entity: EntityType) -> int:
        row = await self._db.fetchone(
            f"SELECT COUNT(*) AS n FROM {ENTITY_SPECS[entity].table}"
        )
        assert row is not None
        return row["n"]
