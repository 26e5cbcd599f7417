# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Column definitions used by Table.configure()."""

from __future__ import annotations

from typing import Any

String = "TEXT"
Integer = "INTEGER"
Timestamp = "TIMESTAMP"
Blob = "BLOB"


class Column:
    """Single column definition.

    Attributes:
        name: Column name.
        type_: SQL type (one of String, Integer, Timestamp, Blob).
        primary_key: True for the table primary key.
        nullable: False adds a NOT NULL constraint.
        default: SQL default (literal value or SQL keyword such as CURRENT_TIMESTAMP).
        unique: True adds a UNIQUE constraint.
        json_encoded: Values are stored as JSON text and decoded on read.
    """

    _SQL_KEYWORDS = ("CURRENT_TIMESTAMP", "CURRENT_DATE", "CURRENT_TIME", "NULL")

    def __init__(
        self,
        name: str,
        type_: str,
        *,
        primary_key: bool = False,
        nullable: bool = True,
        default: Any = None,
        unique: bool = False,
        json_encoded: bool = False,
    ) -> None:
        self.name = name
        self.type_ = type_
        self.primary_key = primary_key
        self.nullable = nullable
        self.default = default
        self.unique = unique
        self.json_encoded = json_encoded
        self.relation_table: str | None = None
        self.relation_pk = "id"
        self.relation_sql = False

    def relation(self, table: str, pk: str = "id", sql: bool = False) -> Column:
        """Declare a reference to another table. sql=True emits a FOREIGN KEY."""
        self.relation_table = table
        self.relation_pk = pk
        self.relation_sql = sql
        return self

    def to_sql(self) -> str:
        parts = [f'"{self.name}"', self.type_]
        if self.primary_key:
            parts.append("PRIMARY KEY")
        if not self.nullable:
            parts.append("NOT NULL")
        if self.unique:
            parts.append("UNIQUE")
        if self.default is not None:
            parts.append(f"DEFAULT {self._render_default()}")
        return " ".join(parts)

    def _render_default(self) -> str:
        if isinstance(self.default, str):
            if self.default.upper() in self._SQL_KEYWORDS:
                return self.default.upper()
            escaped = self.default.replace("'", "''")
            return f"'{escaped}'"
        if isinstance(self.default, bool):
            return "1" if self.default else "0"
        return str(self.default)


class Columns(dict[str, Column]):
    """Ordered column registry for a table."""

    def column(self, name: str, type_: str, **kwargs: Any) -> Column:
        col = Column(name, type_, **kwargs)
        self[name] = col
        return col

    def json_columns(self) -> list[str]:
        return [name for name, col in self.items() if col.json_encoded]

    def primary_key(self) -> str | None:
        for name, col in self.items():
            if col.primary_key:
                return name
        return None


__all__ = ["Blob", "Column", "Columns", "Integer", "String", "Timestamp"]
