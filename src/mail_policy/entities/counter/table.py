# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Counters table manager: fixed-window rate counters."""

from __future__ import annotations

from typing import Any

from ...sql import Integer, String, Table

_CHECK_AND_INCR = """
    INSERT INTO counters ("key", "value", expires_at, applied)
    VALUES (:key, :cost, :now + :window, 1)
    ON CONFLICT ("key") DO UPDATE SET
        "value" = CASE
            WHEN counters.expires_at <= :now THEN :cost
            WHEN counters."value" >= :ceiling THEN counters."value"
            ELSE counters."value" + :cost
        END,
        applied = CASE
            WHEN counters.expires_at <= :now THEN 1
            WHEN counters."value" >= :ceiling THEN 0
            ELSE 1
        END,
        expires_at = CASE
            WHEN counters.expires_at <= :now THEN :now + :window
            ELSE counters.expires_at
        END
    RETURNING "value", expires_at, applied
"""


class CountersTable(Table):
    """Counters table: one row per rate window key.

    A row is reset in place once ``expires_at`` has passed, so expired rows
    never need a cleanup before reuse. ``applied`` records whether the last
    operation on the row actually incremented it.
    """

    name = "counters"

    def configure(self) -> None:
        c = self.columns
        c.column("key", String, primary_key=True)
        c.column("value", Integer, nullable=False, default=0)
        c.column("expires_at", Integer, nullable=False)
        c.column("applied", Integer, default=1)

    async def check_and_incr(
        self, key: str, cost: int, ceiling: int, window: int, now: int
    ) -> dict[str, Any]:
        """Single-statement check-and-increment. Returns value, expires_at, applied."""
        row = await self.db.adapter.execute_returning(
            _CHECK_AND_INCR,
            {"key": key, "cost": cost, "ceiling": ceiling, "window": window, "now": now},
        )
        if row is None:
            raise RuntimeError(f"Counter update for '{key}' returned no row")
        return row

    async def get(self, key: str, now: int) -> dict[str, Any] | None:
        """Return a live (non-expired) counter row."""
        return await self.fetch_one(
            'SELECT "key", "value", expires_at FROM counters WHERE "key" = :key AND expires_at > :now',
            {"key": key, "now": now},
        )

    async def purge_expired(self, now: int) -> int:
        return await self.execute("DELETE FROM counters WHERE expires_at <= :now", {"now": now})


__all__ = ["CountersTable"]
