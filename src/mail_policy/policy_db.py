# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Policy database manager with pre-registered tables.

Extends SqlDb with the tables backing the SQL implementations of the
identity store, counter store and archive sink.

Example:
    db = PolicyDb("/data/policy.db")
    await db.init_db()

    user_id = await db.add_user({"username": "alice", "address": "alice@example.com",
                                 "password": "secret", "recipients": 500})
    await db.add_address("alice@example.com", user_id)
"""

from __future__ import annotations

from typing import Any

from .entities import AddressesTable, ArchiveTable, CountersTable, UsersTable
from .sql import SqlDb


class PolicyDb(SqlDb):
    """Policy database with pre-registered tables."""

    def __init__(self, connection_string: str = "/data/policy.db"):
        """Initialize the policy database.

        Args:
            connection_string: Database connection string. Formats:
                - "/path/to/db.sqlite" - SQLite file
                - "sqlite:/path/to/db" - SQLite explicit
        """
        super().__init__(connection_string)

        self.add_table(UsersTable)
        self.add_table(AddressesTable)
        self.add_table(CountersTable)
        self.add_table(ArchiveTable)

    @property
    def users(self) -> UsersTable:
        return self.table("users")  # type: ignore[return-value]

    @property
    def addresses(self) -> AddressesTable:
        return self.table("addresses")  # type: ignore[return-value]

    @property
    def counters(self) -> CountersTable:
        return self.table("counters")  # type: ignore[return-value]

    @property
    def archive(self) -> ArchiveTable:
        return self.table("archive")  # type: ignore[return-value]

    async def init_db(self) -> None:
        """Initialize database: connect, create schema, add missing columns."""
        await self.connect()
        await self.check_structure()

        await self.users.sync_schema()
        await self.addresses.sync_schema()
        await self.counters.sync_schema()
        await self.archive.sync_schema()

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------
    async def add_user(self, user: dict[str, Any], register_address: bool = True) -> int:
        """Create a user; by default its default address joins the directory."""
        user_id = await self.users.add(user)
        if register_address:
            await self.addresses.add(user["address"], user_id)
        return user_id

    async def get_user(self, username: str) -> dict[str, Any] | None:
        return await self.users.get_by_username(username)

    async def list_users(self) -> list[dict[str, Any]]:
        return await self.users.list_all()

    # -------------------------------------------------------------------------
    # Addresses
    # -------------------------------------------------------------------------
    async def add_address(self, address: str, user_id: int) -> str:
        return await self.addresses.add(address, user_id)

    async def list_addresses(self) -> list[dict[str, Any]]:
        return await self.addresses.list_all()


__all__ = ["PolicyDb"]
