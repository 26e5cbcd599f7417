# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Table base class with Columns-based schema (async version)."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from .column import Columns

if TYPE_CHECKING:
    from .sqldb import SqlDb


class Table:
    """Base class for the policy tables.

    Subclasses declare their columns in ``configure()`` and add the queries
    the stores need. Columns declared ``json_encoded`` are serialized on the
    way in and parsed on the way out by every helper below.

    Attributes:
        name: Table name in database.
        db: Owning SqlDb.
        columns: Column definitions.
    """

    name: str

    def __init__(self, db: SqlDb) -> None:
        self.db = db
        if not getattr(self, "name", None):
            raise ValueError(f"{type(self).__name__} must define 'name'")

        self.columns = Columns()
        self.configure()

    def configure(self) -> None:
        """Override to define columns. Called during __init__."""

    def indexes(self) -> list[str]:
        """Override to return CREATE INDEX statements for this table."""
        return []

    # -------------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------------

    def create_table_sql(self) -> str:
        """Generate CREATE TABLE IF NOT EXISTS statement."""
        adapter = self.db.adapter
        col_defs = [
            adapter.pk_column(col.name) if col.primary_key and col.type_ == "INTEGER" else col.to_sql()
            for col in self.columns.values()
        ]
        col_defs += [
            f'FOREIGN KEY ("{col.name}") REFERENCES {col.relation_table}("{col.relation_pk}")'
            for col in self.columns.values()
            if col.relation_sql and col.relation_table
        ]
        body = ",\n    ".join(col_defs)
        return f"CREATE TABLE IF NOT EXISTS {self.name} (\n    {body}\n)"

    async def create_schema(self) -> None:
        """Create table and its indexes if they do not exist."""
        await self.db.adapter.execute(self.create_table_sql())
        for statement in self.indexes():
            await self.db.adapter.execute(statement)

    async def sync_schema(self) -> None:
        """Add any column defined in configure() but missing in the database.

        Safe to call on every startup: existing columns are skipped.
        """
        rows = await self.db.adapter.fetch_all(f"PRAGMA table_info({self.name})")
        existing = {row["name"] for row in rows}
        for col in self.columns.values():
            if col.primary_key or col.name in existing:
                continue
            await self.db.adapter.execute(
                f"ALTER TABLE {self.name} ADD COLUMN {col.to_sql()}"
            )

    # -------------------------------------------------------------------------
    # JSON columns
    # -------------------------------------------------------------------------

    def _encode(self, data: dict[str, Any]) -> dict[str, Any]:
        encoded = dict(data)
        for name in self.columns.json_columns():
            if encoded.get(name) is not None:
                encoded[name] = json.dumps(encoded[name])
        return encoded

    def _decode(self, row: dict[str, Any] | None) -> dict[str, Any] | None:
        if row is None:
            return None
        decoded = dict(row)
        for name in self.columns.json_columns():
            if decoded.get(name) is not None:
                decoded[name] = json.loads(decoded[name])
        return decoded

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def insert(self, data: dict[str, Any]) -> int:
        """Insert a row, return its id."""
        return await self.db.adapter.insert(self.name, self._encode(data))

    async def upsert(
        self,
        data: dict[str, Any],
        conflict_columns: list[str],
        update_extras: list[str] | None = None,
    ) -> int:
        """Insert or update on conflict."""
        return await self.db.adapter.upsert(
            self.name, self._encode(data), conflict_columns, update_extras
        )

    async def update(self, values: dict[str, Any], where: dict[str, Any]) -> int:
        """Update matching rows, return how many changed."""
        return await self.db.adapter.update(self.name, self._encode(values), where)

    async def delete(self, where: dict[str, Any]) -> int:
        return await self.db.adapter.delete(self.name, where)

    async def exists(self, where: dict[str, Any]) -> bool:
        return await self.db.adapter.exists(self.name, where)

    async def select(
        self,
        columns: list[str] | None = None,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        rows = await self.db.adapter.select(self.name, columns, where, order_by, limit)
        return [self._decode(row) for row in rows]

    async def select_one(
        self,
        columns: list[str] | None = None,
        where: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        return self._decode(await self.db.adapter.select_one(self.name, columns, where))

    async def fetch_one(
        self, query: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Run a raw query, return its first row."""
        return self._decode(await self.db.adapter.fetch_one(query, params))

    async def fetch_all(
        self, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Run a raw query, return all rows."""
        rows = await self.db.adapter.fetch_all(query, params)
        return [self._decode(row) for row in rows]

    async def execute(
        self, query: str, params: dict[str, Any] | None = None
    ) -> int:
        """Run a raw statement, return the affected row count."""
        return await self.db.adapter.execute(query, params)


__all__ = ["Table"]
