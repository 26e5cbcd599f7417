# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Users table manager: identity records and credentials."""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import Any

from ...sql import Integer, String, Table, Timestamp

PBKDF2_ITERATIONS = 260_000


def hash_password(password: str, *, iterations: int = PBKDF2_ITERATIONS) -> str:
    """Return a salted PBKDF2-SHA256 hash in ``pbkdf2_sha256$iter$salt$hash`` form."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("ascii"), iterations)
    return f"pbkdf2_sha256${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str | None) -> bool:
    """Check a password against a hash produced by ``hash_password``."""
    if not encoded:
        return False
    try:
        algorithm, iterations, salt, expected = encoded.split("$", 3)
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("ascii"), int(iterations)
    )
    return hmac.compare_digest(digest.hex(), expected)


class UsersTable(Table):
    """Users table: accounts allowed to submit mail.

    Fields:
    - id: Autoincrement user id (owner key for addresses and archive)
    - username: Login name, unique case-insensitively
    - address: Default sending address
    - password: PBKDF2 hash of the account (master) password
    - app_password: PBKDF2 hash of the application password used for SMTP
      submission when the master password is protected by 2FA
    - quota, storage_used: Storage accounting in bytes (quota 0 = unlimited)
    - recipients: Recipients allowed per rate window (0 = unlimited)
    - enabled_2fa: Account password is protected by a second factor
    """

    name = "users"

    def configure(self) -> None:
        c = self.columns
        c.column("id", Integer, primary_key=True)
        c.column("username", String, nullable=False, unique=True)
        c.column("address", String, nullable=False)
        c.column("password", String)
        c.column("app_password", String)
        c.column("quota", Integer, default=0)
        c.column("storage_used", Integer, default=0)
        c.column("recipients", Integer, default=0)
        c.column("enabled_2fa", Integer, default=0)
        c.column("created_at", Timestamp, default="CURRENT_TIMESTAMP")
        c.column("updated_at", Timestamp, default="CURRENT_TIMESTAMP")

    async def add(self, user: dict[str, Any]) -> int:
        """Insert a user and return its id. Passwords are hashed here."""
        password = user.get("password")
        app_password = user.get("app_password")
        return await self.insert(
            {
                "username": user["username"],
                "address": user["address"],
                "password": hash_password(password) if password else None,
                "app_password": hash_password(app_password) if app_password else None,
                "quota": int(user.get("quota") or 0),
                "storage_used": int(user.get("storage_used") or 0),
                "recipients": int(user.get("recipients") or 0),
                "enabled_2fa": 1 if user.get("enabled_2fa") else 0,
            }
        )

    async def get_by_username(
        self, username: str, columns: list[str] | None = None
    ) -> dict[str, Any] | None:
        """Fetch a user by username, ignoring case."""
        cols = ", ".join(f'"{c}"' for c in columns) if columns else "*"
        return await self.fetch_one(
            f"SELECT {cols} FROM users WHERE lower(username) = lower(:username) LIMIT 1",
            {"username": username},
        )

    async def get(self, user_id: int) -> dict[str, Any] | None:
        return await self.select_one(where={"id": user_id})

    async def list_all(self) -> list[dict[str, Any]]:
        return await self.select(
            columns=["id", "username", "address", "quota", "storage_used", "recipients", "enabled_2fa"],
            order_by="id",
        )

    async def update_fields(self, user_id: int, updates: dict[str, Any]) -> bool:
        """Update limits or flags of a user. Returns True if a row changed."""
        allowed = {"address", "quota", "storage_used", "recipients", "enabled_2fa"}
        values = {k: v for k, v in updates.items() if k in allowed}
        for secret in ("password", "app_password"):
            if updates.get(secret):
                values[secret] = hash_password(updates[secret])
        if not values:
            return False
        if "enabled_2fa" in values:
            values["enabled_2fa"] = 1 if values["enabled_2fa"] else 0
        return await self.update(values, where={"id": user_id}) > 0

    async def add_storage(self, user_id: int | str, size: int) -> None:
        """Atomically add ``size`` bytes to the storage used by a user."""
        await self.execute(
            "UPDATE users SET storage_used = storage_used + :size, "
            "updated_at = CURRENT_TIMESTAMP WHERE id = :user_id",
            {"size": size, "user_id": user_id},
        )


__all__ = ["UsersTable", "hash_password", "verify_password"]
