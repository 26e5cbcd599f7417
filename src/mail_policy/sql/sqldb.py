# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Database manager holding an adapter and a registry of table managers."""

from __future__ import annotations

from .adapters import DbAdapter, get_adapter
from .table import Table


class SqlDb:
    """Async database with registered tables.

    Example:
        db = SqlDb("/data/policy.db")
        db.add_table(UsersTable)
        await db.connect()
        await db.check_structure()
        users = db.table("users")
    """

    def __init__(self, connection_string: str) -> None:
        self.connection_string = connection_string
        self.adapter: DbAdapter = get_adapter(connection_string)
        self.tables: dict[str, Table] = {}

    def add_table(self, table_class: type[Table]) -> Table:
        """Instantiate and register a table manager."""
        table = table_class(self)
        self.tables[table.name] = table
        return table

    def table(self, name: str) -> Table:
        """Return a registered table manager by name."""
        if name not in self.tables:
            raise ValueError(f"Table '{name}' is not registered")
        return self.tables[name]

    async def connect(self) -> None:
        await self.adapter.connect()

    async def close(self) -> None:
        await self.adapter.close()

    async def check_structure(self) -> None:
        """Create every registered table (and indexes) if missing."""
        for table in self.tables.values():
            await table.create_schema()


__all__ = ["SqlDb"]
