# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""External store interfaces and their implementations.

``RedisCounterStore`` lives in ``mail_policy.stores.redis_counter`` and is
imported on demand so the SQL stores do not require a Redis client.
"""

from .base import (
    IDENTITY_FIELDS,
    ArchiveSink,
    CounterHit,
    CounterStore,
    IdentityStore,
    MessageBodySource,
)
from .sql import SqlArchiveSink, SqlCounterStore, SqlIdentityStore

__all__ = [
    "ArchiveSink",
    "CounterHit",
    "CounterStore",
    "IDENTITY_FIELDS",
    "IdentityStore",
    "MessageBodySource",
    "SqlArchiveSink",
    "SqlCounterStore",
    "SqlIdentityStore",
]
