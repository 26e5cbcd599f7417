# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Data models for the submission policy engine.

Store records are validated with Pydantic; hook contexts handed over by the
host transport are plain mutable dataclasses because the pipeline rewrites
them in place.

Models:
    - Identity: resolved user record (read-only snapshot)
    - AuthResult: outcome of a credential check
    - ArchiveMeta / ArchiveRecord / ArchiveResult: sent-mail archival
    - TlsInfo, Envelope: in-flight submission state
    - AuthRequest, RecipientCheck, Delivery: other hook contexts
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from .headers import HeaderCollection

SENT_SPECIAL_USE = "\\Sent"
SEEN_FLAG = "\\Seen"


class Identity(BaseModel):
    """Resolved account record governing a message's sending permissions.

    Attributes:
        id: Store identifier of the user, owner key for addresses and archive.
        username: Canonical username.
        address: Default (canonical) sending address.
        quota: Storage quota in bytes (0 = unlimited).
        storage_used: Bytes currently used.
        recipients: Recipient cap per rate window (0 = unlimited).
    """

    model_config = ConfigDict(frozen=True)

    id: Annotated[int | str, Field(description="User identifier")]
    username: Annotated[str, Field(description="Canonical username")]
    address: Annotated[str, Field(description="Default sending address")]
    quota: Annotated[int, Field(default=0, ge=0, description="Storage quota (0 = unlimited)")]
    storage_used: Annotated[int, Field(default=0, ge=0, description="Storage used in bytes")]
    recipients: Annotated[
        int, Field(default=0, ge=0, description="Recipients per window (0 = unlimited)")
    ]

    @property
    def over_quota(self) -> bool:
        return bool(self.quota) and self.storage_used > self.quota


class AuthResult(BaseModel):
    """Credential check result returned by the identity store."""

    model_config = ConfigDict(frozen=True)

    user_id: int | str
    username: str
    scope: str = "master"
    enabled_2fa: bool = False


class ArchiveMeta(BaseModel):
    """Metadata stored next to an archived message."""

    model_config = ConfigDict(populate_by_name=True)

    source: str = "SMTP"
    from_: Annotated[str, Field(alias="from")] = ""
    to: list[str] = Field(default_factory=list)
    origin: str | None = None
    originhost: str | None = None
    transhost: str | None = None
    transtype: str | None = None
    time: float = 0.0


class ArchiveRecord(BaseModel):
    """A composed message waiting to be stored in the user's Sent folder."""

    user_id: int | str
    envelope_id: str
    username: str | None = None
    special_use: str = SENT_SPECIAL_USE
    meta: ArchiveMeta
    flags: list[str] = Field(default_factory=lambda: [SEEN_FLAG])
    raw: bytes
    skip_existing: bool = True


class ArchiveResult(BaseModel):
    """Successful archive insert."""

    success: bool = True
    uid: int


@dataclass
class TlsInfo:
    """Negotiated TLS parameters of the inbound session."""

    version: str
    name: str


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Envelope:
    """Mutable per-message submission state.

    ``identity`` is the per-message identity slot: filled once by
    ``IdentityResolver`` and never shared with another envelope. Call
    ``release()`` when the host is done with the message.
    """

    id: str
    sender: str = ""
    recipients: list[str] = field(default_factory=list)
    user: str | None = None
    interface: str = "feeder"
    origin: str | None = None
    originhost: str | None = None
    transhost: str | None = None
    transtype: str = "ESMTP"
    tls: TlsInfo | None = None
    time: datetime = field(default_factory=_utc_now)
    headers: HeaderCollection = field(default_factory=HeaderCollection)
    identity: Identity | None = field(default=None, repr=False, compare=False)

    def release(self) -> None:
        """Drop per-message cached state."""
        self.identity = None


@dataclass
class AuthRequest:
    """SMTP AUTH attempt. ``username`` is rewritten on success."""

    username: str
    password: str
    interface: str = "feeder"
    remote_address: str | None = None
    method: str = "PLAIN"


@dataclass
class RecipientCheck:
    """RCPT TO command for an envelope under construction."""

    envelope: Envelope
    address: str

    @property
    def interface(self) -> str:
        return self.envelope.interface


@dataclass
class Delivery:
    """Outbound delivery of a queued message to a single recipient.

    The routing fields (``mx``, ``mx_port``, ``use_lmtp``, ``zone_address``)
    are ``None``/``False`` until a routing override sets them.
    """

    id: str
    seq: str
    interface: str
    sender: str
    recipient: str
    headers: HeaderCollection = field(default_factory=HeaderCollection)
    mx: list[str] | None = None
    mx_port: int | None = None
    use_lmtp: bool = False
    zone_address: str | None = None


__all__ = [
    "ArchiveMeta",
    "ArchiveRecord",
    "ArchiveResult",
    "AuthRequest",
    "AuthResult",
    "Delivery",
    "Envelope",
    "Identity",
    "RecipientCheck",
    "SEEN_FLAG",
    "SENT_SPECIAL_USE",
    "TlsInfo",
]
