# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Prometheus metrics for monitoring the submission policy engine.

All metrics use the ``msa_`` prefix.

Metrics exposed:
    - ``msa_decisions_total``: Counter of hook decisions per hook and outcome
      (``continue``, ``deny``, ``fail``).
    - ``msa_rcpt_denied_total``: Counter of recipients refused by the rate limiter.
    - ``msa_archive_total``: Counter of archive attempts per status
      (``stored``, ``duplicate``, ``skipped``, ``dropped``, ``failed``).
    - ``msa_srs_failures_total``: Counter of failed sender rewrites.
    - ``msa_archive_pending``: Gauge of archive jobs waiting for the worker.
"""

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest


class PolicyMetrics:
    """Prometheus metrics collector for the policy engine.

    Attributes:
        registry: The Prometheus CollectorRegistry holding all metrics.
        decisions: Counter of stage decisions labeled by hook and outcome.
        rcpt_denied: Counter of rate-limited recipients.
        archive: Counter of archive outcomes labeled by status.
        srs_failures: Counter of SRS rewrite failures.
        archive_pending: Gauge of the archive queue depth.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()
        self.decisions = Counter(
            "msa_decisions_total",
            "Total hook decisions",
            ["hook", "outcome"],
            registry=self.registry,
        )
        self.rcpt_denied = Counter(
            "msa_rcpt_denied_total",
            "Total recipients denied by the rate limiter",
            registry=self.registry,
        )
        self.archive = Counter(
            "msa_archive_total",
            "Total sent mail archive attempts",
            ["status"],
            registry=self.registry,
        )
        self.srs_failures = Counter(
            "msa_srs_failures_total",
            "Total failed sender rewrites",
            registry=self.registry,
        )
        self.archive_pending = Gauge(
            "msa_archive_pending",
            "Archive jobs waiting for the worker",
            registry=self.registry,
        )

    def inc_decision(self, hook: str, outcome: str) -> None:
        self.decisions.labels(hook=hook, outcome=outcome).inc()

    def inc_rcpt_denied(self) -> None:
        self.rcpt_denied.inc()

    def inc_archive(self, status: str) -> None:
        self.archive.labels(status=status).inc()

    def inc_srs_failure(self) -> None:
        self.srs_failures.inc()

    def set_archive_pending(self, value: int) -> None:
        self.archive_pending.set(value)

    def generate_latest(self) -> bytes:
        """Export all metrics in Prometheus text exposition format."""
        return generate_latest(self.registry)
