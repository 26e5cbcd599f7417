# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Submission policy pipeline.

The pipeline is a set of named stages, one per host extension point. Each
stage inspects or rewrites its hook context in place and returns a decision:

- ``Continue``: let the host proceed.
- ``Deny(code, reason)``: reject the SMTP command with ``code``.
- ``Fail(cause)``: an infrastructure error; the host decides what to do.

Stages:
    smtp:auth        authenticate, canonicalize the username
    message:headers  envelope sender and From: correction
    smtp:rcpt_to     per-user recipient rate limit
    message:queue    archive a copy in the user's Sent folder
    sender:headers   SRS rewrite on the forwarder interface
    sender:fetch     route local recipients to the local MX

Example:
    pipeline = SubmissionPolicyPipeline(config, identity_store, counter_store,
                                        archive_sink, body_source)
    await pipeline.start()
    decision = await pipeline.run("smtp:rcpt_to", RecipientCheck(envelope, "bob@example.org"))
    await pipeline.stop()
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any

from .address import (
    Mailbox,
    address_domain,
    format_address,
    normalize_address,
    parse_first_address,
)
from .archive import ArchiveWorker
from .errors import PolicyDenial
from .identity import IdentityResolver
from .logger import get_logger
from .metrics import PolicyMetrics
from .models import (
    ArchiveMeta,
    ArchiveRecord,
    AuthRequest,
    Delivery,
    Envelope,
    RecipientCheck,
)
from .policy_config import PolicyConfig
from .policy_db import PolicyDb
from .rate_limit import RateLimiter
from .received import build_received_header
from .srs import Err, Ok, SRSRewriter
from .stores.base import ArchiveSink, CounterStore, IdentityStore, MessageBodySource
from .stores.sql import SqlArchiveSink, SqlCounterStore, SqlIdentityStore

HOOK_AUTH = "smtp:auth"
HOOK_HEADERS = "message:headers"
HOOK_RCPT = "smtp:rcpt_to"
HOOK_QUEUE = "message:queue"
HOOK_SENDER_HEADERS = "sender:headers"
HOOK_SENDER_FETCH = "sender:fetch"

SUBMISSION_HOOKS = frozenset({HOOK_AUTH, HOOK_HEADERS, HOOK_RCPT, HOOK_QUEUE})

AUTH_FAILED = "Authentication failed"
RCPT_LIMIT_REACHED = "You reached a daily sending limit for your account"

rewrite_logger = get_logger("Rewrite")
sender_logger = get_logger("Sender")
srs_logger = get_logger("SRS")
auth_logger = get_logger("Auth")
logger = get_logger("Pipeline")


@dataclass(frozen=True)
class Continue:
    """Let the host proceed."""


@dataclass(frozen=True)
class Deny:
    """Reject the current SMTP command."""

    code: int
    reason: str


@dataclass(frozen=True)
class Fail:
    """Abort the current hook with an infrastructure error."""

    cause: BaseException


Decision = Continue | Deny | Fail

CONTINUE = Continue()


class SubmissionPolicyPipeline:
    """Policy stages applied to authenticated mail submission.

    Attributes:
        config: Engine configuration.
        identity_store: User and address directory.
        resolver: Per-envelope identity resolver.
        limiter: Recipient rate limiter.
        srs: Sender rewriter, None when no SRS secret is configured.
        archive: Background archive worker, None when archival is disabled.
    """

    def __init__(
        self,
        config: PolicyConfig,
        identity_store: IdentityStore,
        counter_store: CounterStore,
        archive_sink: ArchiveSink | None = None,
        body_source: MessageBodySource | None = None,
        metrics: PolicyMetrics | None = None,
    ):
        self.config = config
        self.identity_store = identity_store
        self.body_source = body_source
        self.metrics = metrics
        self.resolver = IdentityResolver(identity_store)
        self.limiter = RateLimiter(counter_store, window=config.limits.window_seconds)

        self.srs: SRSRewriter | None = None
        if config.srs.secret:
            self.srs = SRSRewriter(config.srs.secret, max_age=config.srs.max_age_days)

        self.archive: ArchiveWorker | None = None
        if config.archive.enabled and archive_sink is not None and body_source is not None:
            self.archive = ArchiveWorker(archive_sink, config.archive.queue_size, metrics)

        self._stages: dict[str, Callable[[Any], Awaitable[Decision]]] = {
            HOOK_AUTH: self.authenticate,
            HOOK_HEADERS: self.enforce_headers,
            HOOK_RCPT: self.check_recipient,
            HOOK_QUEUE: self.archive_message,
            HOOK_SENDER_HEADERS: self.rewrite_sender,
            HOOK_SENDER_FETCH: self.route_local,
        }

    @classmethod
    def from_db(
        cls,
        config: PolicyConfig,
        db: PolicyDb,
        body_source: MessageBodySource | None = None,
        metrics: PolicyMetrics | None = None,
    ) -> SubmissionPolicyPipeline:
        """Wire the pipeline to the SQL stores of ``db``.

        Recipient counters go to Redis when ``config.redis_url`` is set.
        """
        counter_store: CounterStore
        if config.redis_url:
            from .stores.redis_counter import RedisCounterStore

            counter_store = RedisCounterStore.from_url(config.redis_url)
        else:
            counter_store = SqlCounterStore(db)
        return cls(
            config,
            SqlIdentityStore(db),
            counter_store,
            SqlArchiveSink(db),
            body_source,
            metrics,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        if self.archive is not None:
            await self.archive.start()

    async def stop(self) -> None:
        if self.archive is not None:
            await self.archive.stop()

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    @property
    def hooks(self) -> list[str]:
        """Hooks to register with the host, in registration order."""
        hooks = [HOOK_AUTH, HOOK_HEADERS, HOOK_RCPT, HOOK_QUEUE, HOOK_SENDER_HEADERS]
        if self.config.routing.mx:
            hooks.append(HOOK_SENDER_FETCH)
        return hooks

    def check_interface(self, interface: str | None) -> bool:
        routing = self.config.routing
        return routing.all_interfaces or interface in routing.interfaces

    def applies(self, hook: str, ctx: Any) -> bool:
        """True if the stage of ``hook`` handles ``ctx``."""
        if hook in SUBMISSION_HOOKS:
            return self.check_interface(ctx.interface)
        if hook == HOOK_SENDER_HEADERS:
            forwarder = self.config.routing.forwarder
            return bool(ctx.sender) and forwarder is not None and ctx.interface == forwarder
        if hook == HOOK_SENDER_FETCH:
            return bool(self.config.routing.mx)
        return False

    async def run(self, hook: str, ctx: Any) -> Decision:
        """Run the stage of ``hook`` against its context.

        Raises:
            KeyError: Unknown hook name.
        """
        stage = self._stages[hook]
        if not self.applies(hook, ctx):
            return CONTINUE

        try:
            decision = await stage(ctx)
        except PolicyDenial as exc:
            decision = Deny(exc.response_code, exc.reason)
        except Exception as exc:
            logger.error(
                "%s %s failed user=%s error=%s",
                _context_id(ctx), hook, _context_user(ctx), exc,
            )
            decision = Fail(exc)

        if self.metrics:
            self.metrics.inc_decision(hook, type(decision).__name__.lower())
        return decision

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    async def authenticate(self, auth: AuthRequest) -> Decision:
        """Verify SMTP credentials and canonicalize the username."""
        result = await self.identity_store.authenticate(
            auth.username, auth.password, protocol="SMTP", ip=auth.remote_address
        )
        if result is None or (result.scope == "master" and result.enabled_2fa):
            auth_logger.info(
                "AUTHFAIL user=%s ip=%s method=%s", auth.username, auth.remote_address, auth.method
            )
            return Deny(535, AUTH_FAILED)

        auth.username = result.username
        return CONTINUE

    async def enforce_headers(self, envelope: Envelope) -> Decision:
        """Force the envelope sender and the From: header onto the user's own addresses."""
        header_from = envelope.headers.get_first("from")
        mailbox = parse_first_address(header_from)

        identity = await self.resolver.resolve(envelope)

        if not await self.identity_store.address_belongs(
            normalize_address(envelope.sender), identity.id
        ):
            rewrite_logger.info(
                '%s RWENVELOPE User %s tries to use "%s" as Return Path address, replacing with "%s"',
                envelope.id, identity.username, envelope.sender, identity.address,
            )
            envelope.sender = identity.address

        if mailbox is None:
            return CONTINUE

        if await self.identity_store.address_belongs(
            normalize_address(mailbox.address), identity.id
        ):
            return CONTINUE

        rewrite_logger.info(
            '%s RWFROM User %s tries to use "%s" as From address, replacing with "%s"',
            envelope.id, identity.username, mailbox.address, envelope.sender,
        )
        envelope.headers.update("From", format_address(Mailbox(mailbox.name, envelope.sender)))
        envelope.headers.update(self.config.original_from_header, header_from)
        return CONTINUE

    async def check_recipient(self, check: RecipientCheck) -> Decision:
        """Count one more recipient against the user's window."""
        envelope = check.envelope
        identity = await self.resolver.resolve(envelope)
        if not identity.recipients:
            return CONTINUE

        key = f"{self.config.limits.counter_prefix}{identity.id}"
        rate = await self.limiter.check_and_increment(key, 1, identity.recipients)

        if not rate.allowed:
            sender_logger.info(
                "%s RCPTDENY denied %s sent=%s allowed=%s expires=%ss.",
                envelope.id, check.address, rate.used, identity.recipients, rate.ttl,
            )
            if self.metrics:
                self.metrics.inc_rcpt_denied()
            reason = RCPT_LIMIT_REACHED
            if rate.ttl:
                reason += f". Limit expires in {rate.ttl_human}"
            return Deny(550, reason)

        sender_logger.info(
            "%s RCPTACCEPT accepted %s sent=%s allowed=%s",
            envelope.id, check.address, rate.used, identity.recipients,
        )
        return CONTINUE

    async def archive_message(self, envelope: Envelope) -> Decision:
        """Compose the submitted message and queue it for the Sent folder.

        Returns as soon as the record is queued; the write happens on the
        archive worker.
        """
        identity = await self.resolver.resolve(envelope)
        if self.archive is None or self.body_source is None:
            return CONTINUE

        if identity.over_quota:
            rewrite_logger.info(
                "%s MSAUPLSKIP user=%s message=over quota", envelope.id, envelope.user
            )
            if self.metrics:
                self.metrics.inc_archive("skipped")
            return CONTINUE

        prefix = (
            f"Return-Path: {envelope.sender}\r\n"
            f"{build_received_header(envelope, self.config.hostname)}\r\n"
        )
        chunks = [prefix.encode("utf-8"), envelope.headers.build()]
        async with aclosing(self.body_source.stream(envelope.id)) as body:
            async for chunk in body:
                chunks.append(chunk)

        record = ArchiveRecord(
            user_id=identity.id,
            envelope_id=envelope.id,
            username=envelope.user,
            meta=ArchiveMeta(
                from_=envelope.sender,
                to=list(envelope.recipients),
                origin=envelope.origin,
                originhost=envelope.originhost,
                transhost=envelope.transhost,
                transtype=envelope.transtype,
                time=time.time(),
            ),
            raw=b"".join(chunks),
        )
        self.archive.submit(record)
        return CONTINUE

    async def rewrite_sender(self, delivery: Delivery) -> Decision:
        """Add forwarding trace headers and SRS-rewrite the envelope sender."""
        sender = delivery.sender
        at = sender.rfind("@")
        local = sender[:at] if at >= 0 else ""
        domain = address_domain(sender)

        delivery.headers.add("X-Original-Sender", sender, index=None)
        delivery.headers.add("X-Forwarded-For-Sender", sender, index=None)
        delivery.headers.add("X-Forwarded-For-Recipient", delivery.recipient, index=None)

        rewrite_domain = self.config.srs.rewrite_domain
        if self.srs is None or not rewrite_domain:
            result = Err("SRS is not configured")
        else:
            result = self.srs.rewrite(local, domain)

        match result:
            case Ok(value=alias):
                delivery.sender = f"{alias}@{rewrite_domain}"
            case Err(reason=reason):
                srs_logger.error(
                    '%s.%s SRSFAIL Failed rewriting "%s". %s',
                    delivery.id, delivery.seq, sender, reason,
                )
                if self.metrics:
                    self.metrics.inc_srs_failure()
        return CONTINUE

    async def route_local(self, delivery: Delivery) -> Decision:
        """Send deliveries for local recipients to the local MX over LMTP."""
        entry = await self.identity_store.find_address(normalize_address(delivery.recipient))
        if entry is None:
            return CONTINUE

        routing = self.config.routing
        delivery.mx = list(routing.mx)
        delivery.mx_port = routing.mx_port
        delivery.use_lmtp = True
        delivery.zone_address = routing.zone_address
        sender_logger.debug(
            "%s.%s LOCALMX routing %s to %s", delivery.id, delivery.seq, delivery.recipient,
            ",".join(delivery.mx),
        )
        return CONTINUE


def _context_id(ctx: Any) -> str:
    if isinstance(ctx, RecipientCheck):
        return ctx.envelope.id
    if isinstance(ctx, Delivery):
        return f"{ctx.id}.{ctx.seq}"
    return getattr(ctx, "id", "-")


def _context_user(ctx: Any) -> str | None:
    if isinstance(ctx, RecipientCheck):
        return ctx.envelope.user
    if isinstance(ctx, AuthRequest):
        return ctx.username
    return getattr(ctx, "user", None)


__all__ = [
    "CONTINUE",
    "Continue",
    "Decision",
    "Deny",
    "Fail",
    "HOOK_AUTH",
    "HOOK_HEADERS",
    "HOOK_QUEUE",
    "HOOK_RCPT",
    "HOOK_SENDER_FETCH",
    "HOOK_SENDER_HEADERS",
    "SUBMISSION_HOOKS",
    "SubmissionPolicyPipeline",
]
