# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Store implementations backed by the aiosqlite policy database."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

from ..address import normalize_address
from ..entities.user.table import verify_password
from ..models import ArchiveRecord, ArchiveResult, AuthResult
from ..policy_db import PolicyDb
from .base import IDENTITY_FIELDS, ArchiveSink, CounterHit, CounterStore, IdentityStore


class SqlIdentityStore(IdentityStore):
    """Identity store over the ``users`` and ``addresses`` tables."""

    def __init__(self, db: PolicyDb):
        self.db = db

    async def get_user(self, username: str) -> dict[str, Any] | None:
        return await self.db.users.get_by_username(username, columns=list(IDENTITY_FIELDS))

    async def _find_login(self, username: str) -> dict[str, Any] | None:
        user = await self.db.users.get_by_username(username)
        if user is None and "@" in username:
            # users may log in with any of their addresses
            entry = await self.db.addresses.find(normalize_address(username))
            if entry is not None:
                user = await self.db.users.get(entry["user_id"])
        return user

    async def authenticate(
        self, username: str, password: str, *, protocol: str, ip: str | None
    ) -> AuthResult | None:
        """Check the account password, then the application password.

        The account password yields the ``master`` scope, which the auth stage
        refuses for 2FA-protected users; the application password yields the
        ``smtp`` scope and is accepted regardless of 2FA.
        """
        user = await self._find_login(username)
        if user is None:
            return None
        if await asyncio.to_thread(verify_password, password, user.get("password")):
            scope = "master"
        elif await asyncio.to_thread(verify_password, password, user.get("app_password")):
            scope = "smtp"
        else:
            return None
        return AuthResult(
            user_id=user["id"],
            username=user["username"],
            scope=scope,
            enabled_2fa=bool(user.get("enabled_2fa")),
        )

    async def address_belongs(self, address: str, user_id: int | str) -> bool:
        return await self.db.addresses.belongs(address, user_id)

    async def find_address(self, address: str) -> dict[str, Any] | None:
        return await self.db.addresses.find(address)


class SqlCounterStore(CounterStore):
    """Counter store over the ``counters`` table (one UPSERT per check)."""

    def __init__(self, db: PolicyDb, clock: Callable[[], float] = time.time):
        self.db = db
        self._clock = clock

    async def check_and_incr(
        self, key: str, cost: int, ceiling: int, window: int
    ) -> CounterHit:
        now = int(self._clock())
        row = await self.db.counters.check_and_incr(key, cost, ceiling, window, now)
        applied = bool(row["applied"])
        value = int(row["value"])
        opened = applied and value == cost
        ttl = 0 if opened else max(int(row["expires_at"]) - now, 0)
        return CounterHit(applied=applied, value=value, ttl=ttl)


class SqlArchiveSink(ArchiveSink):
    """Archive sink over the ``archive`` table; updates the user's storage."""

    def __init__(self, db: PolicyDb):
        self.db = db

    async def add(self, record: ArchiveRecord) -> ArchiveResult | None:
        uid = await self.db.archive.add(
            {
                "user_id": record.user_id,
                "envelope_id": record.envelope_id,
                "special_use": record.special_use,
                "meta": record.meta.model_dump(by_alias=True),
                "flags": record.flags,
                "raw": record.raw,
            },
            skip_existing=record.skip_existing,
        )
        if uid is None:
            return None
        await self.db.users.add_storage(record.user_id, len(record.raw))
        return ArchiveResult(uid=uid)


__all__ = ["SqlArchiveSink", "SqlCounterStore", "SqlIdentityStore"]
