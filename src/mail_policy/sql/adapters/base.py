# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Base adapter class for async database backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence


class DbAdapter(ABC):
    """Abstract base class for async database adapters.

    All queries use :name placeholders. The CRUD helpers (insert, select,
    update, delete, exists) are built on top of the abstract
    primitives so backends only implement raw execution.
    """

    def pk_column(self, name: str) -> str:
        """Return SQL definition for an autoincrement primary key column."""
        return f'"{name}" INTEGER PRIMARY KEY AUTOINCREMENT'

    @abstractmethod
    async def connect(self) -> None:
        """Establish database connection."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close database connection."""
        ...

    @abstractmethod
    async def execute(self, query: str, params: dict[str, Any] | None = None) -> int:
        """Execute query, return affected row count."""
        ...

    @abstractmethod
    async def execute_returning(
        self, query: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Execute a writing query with a RETURNING clause and commit it.

        Returns the first returned row as dict, or None.
        """
        ...

    @abstractmethod
    async def insert(self, table: str, data: dict[str, Any]) -> int:
        """Insert a row, return the id of the inserted row."""
        ...

    @abstractmethod
    async def fetch_one(
        self, query: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Execute query, return single row as dict or None."""
        ...

    @abstractmethod
    async def fetch_all(
        self, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Execute query, return all rows as list of dicts."""
        ...

    async def upsert(
        self,
        table: str,
        data: dict[str, Any],
        conflict_columns: Sequence[str],
        update_extras: Sequence[str] | None = None,
    ) -> int:
        """Insert or update row on conflict.

        Args:
            table: Table name.
            data: Column-value pairs to insert/update.
            conflict_columns: Columns that define uniqueness (typically PK).
            update_extras: Extra SQL expressions for UPDATE (e.g., "updated_at = CURRENT_TIMESTAMP").

        Returns:
            Affected row count.
        """
        columns = list(data.keys())
        placeholders = ", ".join(f":{c}" for c in columns)
        col_list = ", ".join(self._sql_name(c) for c in columns)
        conflict_cols = ", ".join(self._sql_name(c) for c in conflict_columns)
        update_parts = [
            f"{self._sql_name(c)} = excluded.{self._sql_name(c)}"
            for c in columns
            if c not in conflict_columns
        ]
        if update_extras:
            update_parts.extend(update_extras)
        if update_parts:
            action = f"DO UPDATE SET {', '.join(update_parts)}"
        else:
            action = "DO NOTHING"

        query = f"""
            INSERT INTO {table} ({col_list}) VALUES ({placeholders})
            ON CONFLICT ({conflict_cols}) {action}
        """
        return await self.execute(query, data)

    # -------------------------------------------------------------------------
    # CRUD helpers
    # -------------------------------------------------------------------------

    def _sql_name(self, name: str) -> str:
        """Quote identifier (handles reserved words like 'user')."""
        return f'"{name}"'

    def _where(self, where: dict[str, Any] | None) -> tuple[str, dict[str, Any]]:
        if not where:
            return "", {}
        parts = []
        params: dict[str, Any] = {}
        for key, value in where.items():
            if value is None:
                parts.append(f"{self._sql_name(key)} IS NULL")
            else:
                parts.append(f"{self._sql_name(key)} = :w_{key}")
                params[f"w_{key}"] = value
        return " WHERE " + " AND ".join(parts), params

    async def select(
        self,
        table: str,
        columns: list[str] | None = None,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        cols = ", ".join(self._sql_name(c) for c in columns) if columns else "*"
        where_sql, params = self._where(where)
        query = f"SELECT {cols} FROM {table}{where_sql}"
        if order_by:
            query += f" ORDER BY {order_by}"
        if limit is not None:
            query += f" LIMIT {int(limit)}"
        return await self.fetch_all(query, params)

    async def select_one(
        self,
        table: str,
        columns: list[str] | None = None,
        where: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        rows = await self.select(table, columns, where, limit=1)
        return rows[0] if rows else None

    async def update(self, table: str, values: dict[str, Any], where: dict[str, Any]) -> int:
        set_sql = ", ".join(f"{self._sql_name(k)} = :v_{k}" for k in values)
        where_sql, params = self._where(where)
        params.update({f"v_{k}": v for k, v in values.items()})
        return await self.execute(f"UPDATE {table} SET {set_sql}{where_sql}", params)

    async def delete(self, table: str, where: dict[str, Any]) -> int:
        where_sql, params = self._where(where)
        return await self.execute(f"DELETE FROM {table}{where_sql}", params)

    async def exists(self, table: str, where: dict[str, Any]) -> bool:
        where_sql, params = self._where(where)
        row = await self.fetch_one(f"SELECT 1 AS found FROM {table}{where_sql} LIMIT 1", params)
        return row is not None
