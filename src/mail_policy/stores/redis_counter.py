# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Counter store on Redis.

The check-and-increment runs as a Lua script, so Redis applies the read,
the increment and the expiry atomically in one round trip.
"""

from __future__ import annotations

from typing import Any

import redis.asyncio as aioredis

from .base import CounterHit, CounterStore

CHECK_AND_INCR_SCRIPT = """
local key = KEYS[1]
local cost = tonumber(ARGV[1])
local ceiling = tonumber(ARGV[2])
local window = tonumber(ARGV[3])

local current = tonumber(redis.call("GET", key) or "0")
local ttl = tonumber(redis.call("TTL", key))
if current > 0 and current >= ceiling then
    return {0, current, ttl}
end

local value = redis.call("INCRBY", key, cost)
if ttl < 0 then
    redis.call("EXPIRE", key, window)
    ttl = 0
end
return {1, value, ttl}
"""


class RedisCounterStore(CounterStore):
    """Counter store using ``redis.asyncio``.

    Example:
        store = RedisCounterStore.from_url("redis://localhost:6379/0")
        hit = await store.check_and_incr("rcpt:42", 1, 500, 86400)
    """

    def __init__(self, client: Any):
        self.client = client
        self._script = client.register_script(CHECK_AND_INCR_SCRIPT)

    @classmethod
    def from_url(cls, url: str) -> RedisCounterStore:
        return cls(aioredis.from_url(url))

    async def check_and_incr(
        self, key: str, cost: int, ceiling: int, window: int
    ) -> CounterHit:
        applied, value, ttl = await self._script(keys=[key], args=[cost, ceiling, window])
        return CounterHit(applied=bool(int(applied)), value=int(value), ttl=max(int(ttl), 0))

    async def close(self) -> None:
        await self.client.aclose()


__all__ = ["CHECK_AND_INCR_SCRIPT", "RedisCounterStore"]
