# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Per-message identity resolution.

The resolved identity is stored in the envelope's own ``identity`` slot:
the first resolution queries the store, every later one within the same
message returns the same snapshot, even if the store changes meanwhile.
Nothing is cached outside the envelope, so the cache ends with it.
"""

from __future__ import annotations

from pydantic import ValidationError

from .errors import InfrastructureFailure, InsufficientIdentityInfo, UserNotFound
from .logger import get_logger
from .models import Envelope, Identity
from .stores.base import IdentityStore

logger = get_logger("Identity")


class IdentityResolver:
    """Resolves the authenticated user of an envelope to an ``Identity``."""

    def __init__(self, store: IdentityStore):
        self.store = store

    async def resolve(self, envelope: Envelope) -> Identity:
        """Return the identity of ``envelope.user``.

        Raises:
            InsufficientIdentityInfo: The envelope has no authenticated user.
            UserNotFound: The store has no such user.
            InfrastructureFailure: The store returned an unusable record.
        """
        if envelope.identity is not None:
            return envelope.identity

        if not envelope.user:
            raise InsufficientIdentityInfo()

        record = await self.store.get_user(envelope.user)
        if not record:
            raise UserNotFound(envelope.user)

        try:
            identity = Identity(
                id=record["id"],
                username=record["username"],
                address=record["address"],
                quota=record.get("quota") or 0,
                storage_used=record.get("storage_used") or 0,
                recipients=record.get("recipients") or 0,
            )
        except (KeyError, ValidationError) as exc:
            raise InfrastructureFailure(
                f'Invalid identity record for user "{envelope.user}": {exc}'
            ) from exc

        envelope.identity = identity
        logger.debug("%s resolved user=%s id=%s", envelope.id, identity.username, identity.id)
        return identity


__all__ = ["IdentityResolver"]
