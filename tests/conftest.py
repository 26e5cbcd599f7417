"""Shared fixtures: a seeded policy database and in-memory collaborators."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio

from mail_policy.policy_config import LimitsConfig, PolicyConfig, RoutingConfig, SRSConfig
from mail_policy.policy_db import PolicyDb
from mail_policy.stores.base import MessageBodySource

BODY = b"Hello Bob,\r\nsee you tomorrow.\r\n"


class MemoryBodySource(MessageBodySource):
    """Serves message bodies from a dict, in fixed-size chunks."""

    def __init__(self, bodies: dict[str, bytes] | None = None, chunk_size: int = 8):
        self.bodies = bodies or {}
        self.chunk_size = chunk_size
        self.closed: list[str] = []

    async def stream(self, envelope_id: str) -> AsyncIterator[bytes]:
        body = self.bodies.get(envelope_id, BODY)
        try:
            for start in range(0, len(body), self.chunk_size):
                yield body[start:start + self.chunk_size]
        finally:
            self.closed.append(envelope_id)


@pytest_asyncio.fixture
async def policy_db(tmp_path) -> AsyncIterator[PolicyDb]:
    """Database with two users.

    - alice (recipients=3) may send as alice@example.com and alice.smith@example.com
    - carol is over quota
    """
    db = PolicyDb(str(tmp_path / "policy.db"))
    await db.init_db()

    alice_id = await db.add_user(
        {
            "username": "alice",
            "address": "alice@example.com",
            "password": "wonderland",
            "recipients": 3,
        }
    )
    await db.add_address("Alice.Smith@Example.com", alice_id)
    await db.add_user(
        {
            "username": "carol",
            "address": "carol@example.com",
            "password": "secret",
            "quota": 100,
            "storage_used": 500,
        }
    )
    yield db
    await db.close()


@pytest.fixture
def body_source() -> MemoryBodySource:
    return MemoryBodySource()


@pytest.fixture
def policy_config(tmp_path) -> PolicyConfig:
    return PolicyConfig(
        hostname="msa.example.net",
        db_path=str(tmp_path / "policy.db"),
        srs=SRSConfig(secret="test-secret", rewrite_domain="fwd.example.net"),
        routing=RoutingConfig(
            interfaces=["feeder"],
            forwarder="forwarder",
            mx=["127.0.0.1"],
            mx_port=24,
            zone_address="local",
        ),
        limits=LimitsConfig(window_seconds=3600),
    )
