# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Minimal async SQL layer with adapter pattern.

Usage:
    db = SqlDb("/data/policy.db")
    db.add_table(UsersTable)
    await db.connect()
    await db.check_structure()
    rows = await db.adapter.fetch_all(
        "SELECT * FROM users WHERE username = :username",
        {"username": "alice"},
    )
"""

from .adapters import DbAdapter, SqliteAdapter, get_adapter
from .column import Blob, Column, Columns, Integer, String, Timestamp
from .sqldb import SqlDb
from .table import Table

__all__ = [
    "Blob",
    "Column",
    "Columns",
    "DbAdapter",
    "Integer",
    "SqlDb",
    "SqliteAdapter",
    "String",
    "Table",
    "Timestamp",
    "get_adapter",
]
