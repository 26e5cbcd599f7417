# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Interfaces of the external collaborators consulted by the pipeline.

The policy engine never assumes exclusive access to any of these stores:
they are shared by every concurrent SMTP session.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from ..models import ArchiveRecord, ArchiveResult, AuthResult

IDENTITY_FIELDS = ("id", "username", "address", "quota", "storage_used", "recipients")


@dataclass(frozen=True)
class CounterHit:
    """Outcome of an atomic check-and-increment.

    Attributes:
        applied: False when the window was already exhausted and the
            increment was not recorded.
        value: Counter value after the operation.
        ttl: Remaining seconds of a window that existed before this call;
            0 when this call opened the window.
    """

    applied: bool
    value: int
    ttl: int


class IdentityStore(ABC):
    """User records and the addresses each user may send as."""

    @abstractmethod
    async def get_user(self, username: str) -> dict[str, Any] | None:
        """Return ``IDENTITY_FIELDS`` of a user, or None."""
        ...

    @abstractmethod
    async def authenticate(
        self, username: str, password: str, *, protocol: str, ip: str | None
    ) -> AuthResult | None:
        """Verify credentials. Returns None when they do not match."""
        ...

    @abstractmethod
    async def address_belongs(self, address: str, user_id: int | str) -> bool:
        """True if the normalized ``address`` is registered to ``user_id``."""
        ...

    @abstractmethod
    async def find_address(self, address: str) -> dict[str, Any] | None:
        """Look up a normalized address in the local address directory."""
        ...


class CounterStore(ABC):
    """Expiring counters with an atomic check-and-increment primitive."""

    @abstractmethod
    async def check_and_incr(
        self, key: str, cost: int, ceiling: int, window: int
    ) -> CounterHit:
        """Atomically add ``cost`` to ``key`` unless the window is exhausted.

        A single round trip to the store: the read, the increment and the
        expiry are applied as one operation.
        """
        ...


class ArchiveSink(ABC):
    """Destination of archived copies of sent mail."""

    @abstractmethod
    async def add(self, record: ArchiveRecord) -> ArchiveResult | None:
        """Store a record. Returns None when a duplicate was skipped."""
        ...


class MessageBodySource(ABC):
    """Access to the spooled body of a queued message."""

    @abstractmethod
    def stream(self, envelope_id: str) -> AsyncIterator[bytes]:
        """Yield the raw body of a message in chunks."""
        ...


__all__ = [
    "ArchiveSink",
    "CounterHit",
    "CounterStore",
    "IDENTITY_FIELDS",
    "IdentityStore",
    "MessageBodySource",
]
