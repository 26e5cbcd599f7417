# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Configuration dataclasses for the submission policy engine.

Provides a nested configuration structure:
- config.srs.rewrite_domain
- config.routing.forwarder
- config.limits.window_seconds
"""

from __future__ import annotations

import socket
from dataclasses import dataclass, field


@dataclass
class SRSConfig:
    """Sender Rewriting Scheme settings."""

    secret: str | None = None
    """Shared signing secret. SRS rewriting is disabled when unset."""

    rewrite_domain: str | None = None
    """Domain of rewritten envelope senders."""

    max_age_days: int = 21
    """Days after which a rewritten address is no longer accepted back."""


@dataclass
class RoutingConfig:
    """Interface selection and delivery routing."""

    interfaces: list[str] = field(default_factory=lambda: ["*"])
    """Interfaces the submission hooks apply to. ``*`` means all."""

    forwarder: str | None = None
    """Sending interface whose deliveries get SRS-rewritten senders."""

    mx: list[str] = field(default_factory=list)
    """MX hosts for local recipients. Empty disables the routing override."""

    mx_port: int | None = None
    """Port of the local MX hosts."""

    zone_address: str | None = None
    """Sending zone address used for local deliveries."""

    @property
    def all_interfaces(self) -> bool:
        return "*" in self.interfaces


@dataclass
class LimitsConfig:
    """Recipient rate limiting."""

    window_seconds: int = 24 * 3600
    """Length of the recipient counting window."""

    counter_prefix: str = "rcpt:"
    """Key prefix of per-user recipient counters."""


@dataclass
class ArchiveConfig:
    """Sent mail archival."""

    enabled: bool = True
    """Store a copy of submitted mail in the user's Sent folder."""

    queue_size: int = 1000
    """Maximum archive jobs waiting for the background worker."""


@dataclass
class PolicyConfig:
    """Main configuration container.

    Example:
        config = PolicyConfig(
            hostname="mx.example.com",
            srs=SRSConfig(secret="s3cret", rewrite_domain="fwd.example.com"),
            routing=RoutingConfig(forwarder="forwarder"),
        )
        pipeline = SubmissionPolicyPipeline(config, ...)
    """

    hostname: str = field(default_factory=socket.gethostname)
    """Host name used in the ``by`` clause of Received headers."""

    db_path: str = "/data/policy.db"
    """SQLite database for the SQL stores."""

    redis_url: str | None = None
    """When set, recipient counters are kept in Redis instead of SQLite."""

    original_from_header: str = "X-Original-From"
    """Trace header preserving a rewritten From: value."""

    srs: SRSConfig = field(default_factory=SRSConfig)
    routing: RoutingConfig = field(default_factory=RoutingConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    archive: ArchiveConfig = field(default_factory=ArchiveConfig)


__all__ = [
    "ArchiveConfig",
    "LimitsConfig",
    "PolicyConfig",
    "RoutingConfig",
    "SRSConfig",
]
