# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Fixed-window rate limiter backed by an atomic counter store.

Each key accumulates a cost against a ceiling inside an expiring window.
The counter store performs check-and-increment in a single atomic operation,
so concurrent sessions of the same user never race, and the limiter itself
keeps no state: requests for different keys never wait on each other.

Over-limit accounting: a request that pushes the counter past the ceiling
keeps its increment (it is never refunded) and is denied. Once the window is
exhausted, later requests are denied without incrementing, so with unit
costs the counter never exceeds the ceiling after the first denial.

Example:
    Using the rate limiter::

        limiter = RateLimiter(SqlCounterStore(db), window=86400)
        check = await limiter.check_and_increment("rcpt:42", 1, 500)
        if not check.allowed:
            raise PolicyDenial(550, f"Limit expires in {check.ttl_human}")
"""

from __future__ import annotations

from dataclasses import dataclass

from .logger import get_logger
from .stores.base import CounterStore

logger = get_logger("RateLimit")

DAY_SECONDS = 24 * 3600


def humanize_ttl(ttl: int) -> str:
    """Render a remaining window for humans.

    ``<60`` seconds are shown as seconds, ``<3600`` as rounded minutes,
    anything longer as rounded hours.
    """
    if ttl < 60:
        return f"{ttl} seconds"
    if ttl < 3600:
        return f"{_round_half_up(ttl / 60)} minutes"
    return f"{_round_half_up(ttl / 3600)} hours"


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


@dataclass(frozen=True)
class RateCheck:
    """Result of a rate limiter check.

    Attributes:
        allowed: False once the ceiling is exceeded for the current window.
        used: Counter value after this check.
        ttl: Remaining seconds of the window; 0 for the first hit of a window.
    """

    allowed: bool
    used: int
    ttl: int

    @property
    def ttl_human(self) -> str | None:
        return humanize_ttl(self.ttl) if self.ttl else None


class RateLimiter:
    """Per-key fixed-window limiter.

    Attributes:
        store: Counter store providing the atomic check-and-increment.
        window: Window length in seconds.
    """

    def __init__(self, store: CounterStore, window: int = DAY_SECONDS):
        self.store = store
        self.window = window

    async def check_and_increment(self, key: str, cost: int, ceiling: int) -> RateCheck:
        """Add ``cost`` to ``key`` and compare the result with ``ceiling``.

        Store errors propagate to the caller unchanged.
        """
        hit = await self.store.check_and_incr(key, cost, ceiling, self.window)
        allowed = hit.applied and hit.value <= ceiling
        logger.debug(
            "Rate check %s: cost=%d used=%d ceiling=%d ttl=%d allowed=%s",
            key, cost, hit.value, ceiling, hit.ttl, allowed,
        )
        return RateCheck(allowed=allowed, used=hit.value, ttl=hit.ttl)


__all__ = ["DAY_SECONDS", "RateCheck", "RateLimiter", "humanize_ttl"]
