# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Addresses table manager: the local address directory."""

from __future__ import annotations

from typing import Any

from ...address import normalize_address
from ...sql import Integer, String, Table, Timestamp


class AddressesTable(Table):
    """Addresses table: every local address and the user owning it.

    Addresses are stored in their normalized form, so lookups must use
    ``normalize_address`` as well.
    """

    name = "addresses"

    def configure(self) -> None:
        c = self.columns
        c.column("id", Integer, primary_key=True)
        c.column("address", String, nullable=False, unique=True)
        c.column("user_id", Integer, nullable=False).relation("users", sql=True)
        c.column("created_at", Timestamp, default="CURRENT_TIMESTAMP")

    def indexes(self) -> list[str]:
        return ["CREATE INDEX IF NOT EXISTS idx_addresses_user ON addresses (user_id)"]

    async def add(self, address: str, user_id: int) -> str:
        """Register an address for a user. Returns the normalized address."""
        normalized = normalize_address(address)
        if not normalized:
            raise ValueError(f"Invalid address '{address}'")
        await self.upsert(
            {"address": normalized, "user_id": user_id},
            conflict_columns=["address"],
        )
        return normalized

    async def belongs(self, address: str, user_id: int | str) -> bool:
        return await self.exists(where={"address": address, "user_id": user_id})

    async def find(self, address: str) -> dict[str, Any] | None:
        return await self.select_one(columns=["id", "address", "user_id"], where={"address": address})

    async def list_for_user(self, user_id: int) -> list[dict[str, Any]]:
        return await self.select(columns=["address"], where={"user_id": user_id}, order_by="address")

    async def list_all(self) -> list[dict[str, Any]]:
        return await self.fetch_all(
            "SELECT a.address, u.username FROM addresses a "
            "JOIN users u ON u.id = a.user_id ORDER BY u.username, a.address"
        )

    async def remove(self, address: str) -> bool:
        return await self.delete(where={"address": normalize_address(address)}) > 0


__all__ = ["AddressesTable"]
