# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Archive table manager: copies of submitted mail (Sent folder)."""

from __future__ import annotations

import hashlib
import json
from typing import Any

from ...sql import Blob, Integer, String, Table, Timestamp

_COLUMNS = (
    "user_id", "envelope_id", "special_use", "meta", "flags", "raw", "size", "content_hash",
)

_INSERT_UNLESS_EXISTS = f"""
    INSERT INTO archive ({", ".join(_COLUMNS)})
    SELECT {", ".join(":" + c for c in _COLUMNS)}
    WHERE NOT EXISTS (
        SELECT 1 FROM archive WHERE user_id = :user_id AND content_hash = :content_hash
    )
    RETURNING id
"""


class ArchiveTable(Table):
    """Archive table: raw messages with metadata.

    JSON-encoded fields: meta, flags.
    ``content_hash`` (SHA-256 of ``raw``) drives duplicate suppression.
    """

    name = "archive"

    def configure(self) -> None:
        c = self.columns
        c.column("id", Integer, primary_key=True)
        c.column("user_id", Integer, nullable=False).relation("users", sql=True)
        c.column("envelope_id", String)
        c.column("special_use", String)
        c.column("meta", String, json_encoded=True)
        c.column("flags", String, json_encoded=True)
        c.column("raw", Blob, nullable=False)
        c.column("size", Integer, default=0)
        c.column("content_hash", String, nullable=False)
        c.column("created_at", Timestamp, default="CURRENT_TIMESTAMP")

    def indexes(self) -> list[str]:
        return [
            "CREATE INDEX IF NOT EXISTS idx_archive_user_hash ON archive (user_id, content_hash)"
        ]

    async def add(self, entry: dict[str, Any], skip_existing: bool = True) -> int | None:
        """Store a message. Returns the new uid, or None if a duplicate was skipped.

        With ``skip_existing`` the existence check and the insert are one
        statement, so concurrent submissions of the same content store one copy.
        """
        raw: bytes = entry["raw"]
        record = {
            "user_id": entry["user_id"],
            "envelope_id": entry.get("envelope_id"),
            "special_use": entry.get("special_use"),
            "meta": entry.get("meta") or {},
            "flags": entry.get("flags") or [],
            "raw": raw,
            "size": len(raw),
            "content_hash": hashlib.sha256(raw).hexdigest(),
        }
        if not skip_existing:
            return await self.insert(record)

        params = dict(record)
        params["meta"] = json.dumps(params["meta"])
        params["flags"] = json.dumps(params["flags"])
        row = await self.db.adapter.execute_returning(_INSERT_UNLESS_EXISTS, params)
        return int(row["id"]) if row else None

    async def list_for_user(self, user_id: int, limit: int = 50) -> list[dict[str, Any]]:
        return await self.select(
            columns=["id", "envelope_id", "special_use", "meta", "flags", "size", "created_at"],
            where={"user_id": user_id},
            order_by="id DESC",
            limit=limit,
        )

    async def get_raw(self, uid: int) -> bytes | None:
        row = await self.select_one(columns=["raw"], where={"id": uid})
        return row["raw"] if row else None


__all__ = ["ArchiveTable"]
