# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Sender Rewriting Scheme (SRS) for forwarded mail.

A forwarder that relays mail on behalf of a foreign domain rewrites the
envelope sender into an address of its own rewrite domain, so bounces come
back to the forwarder, which can then reverse the alias and route them to the
original sender.

Formats (``=`` is the separator, ``HHHH`` a truncated HMAC-SHA1, ``TT`` a
base32 day stamp)::

    SRS0=HHHH=TT=<orig-domain>=<orig-local>
    SRS1=HHHH=<first-forwarder>==HHHH=TT=<orig-domain>=<orig-local>

Example:
    rewriter = SRSRewriter("secret")
    match rewriter.rewrite("alice", "example.com"):
        case Ok(value=alias):
            sender = f"{alias}@forwarder.example"
        case Err(reason=reason):
            logger.error("rewrite failed: %s", reason)

    rewriter.reverse(alias)  # -> ("alice", "example.com")
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
from collections.abc import Callable
from dataclasses import dataclass

from .errors import ExpiredToken, InvalidOrTamperedToken, SRSError

BASE32_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
TIMESTAMP_PRECISION = 60 * 60 * 24
TIMESTAMP_SLOTS = len(BASE32_ALPHABET) ** 2


@dataclass(frozen=True)
class Ok:
    """Successful rewrite carrying the alias local part."""

    value: str


@dataclass(frozen=True)
class Err:
    """Failed rewrite; the caller keeps the original address."""

    reason: str


RewriteResult = Ok | Err


class SRSRewriter:
    """Signs and reverses SRS aliases under a shared secret.

    Attributes:
        separator: Character separating SRS fields.
        hash_length: Number of base64 characters of the HMAC kept in the alias.
        max_age: Days after which an alias is refused by ``reverse``.
    """

    def __init__(
        self,
        secret: str,
        *,
        separator: str = "=",
        hash_length: int = 4,
        max_age: int = 21,
        clock: Callable[[], float] = time.time,
    ):
        if not secret:
            raise SRSError("SRS secret is not configured")
        if separator not in ("=", "-"):
            raise SRSError(f"Invalid SRS separator '{separator}'")
        self._secret = secret.encode("utf-8")
        self.separator = separator
        self.hash_length = hash_length
        self.max_age = max_age
        self._clock = clock

    # -------------------------------------------------------------------------
    # Primitives
    # -------------------------------------------------------------------------

    def _hash(self, *parts: str) -> str:
        data = "".join(parts).lower().encode("utf-8")
        digest = hmac.new(self._secret, data, hashlib.sha1).digest()
        return base64.b64encode(digest).decode("ascii")[: self.hash_length]

    def _check_hash(self, received: str, *parts: str) -> None:
        expected = self._hash(*parts)
        if len(received) != len(expected) or not hmac.compare_digest(
            received.lower().encode(), expected.lower().encode()
        ):
            raise InvalidOrTamperedToken("SRS hash does not match")

    def _today(self) -> int:
        return int(self._clock() // TIMESTAMP_PRECISION) % TIMESTAMP_SLOTS

    def _timestamp(self) -> str:
        today = self._today()
        return BASE32_ALPHABET[today >> 5] + BASE32_ALPHABET[today & 31]

    def _check_timestamp(self, stamp: str) -> None:
        stamp = stamp.upper()
        if len(stamp) != 2 or any(c not in BASE32_ALPHABET for c in stamp):
            raise InvalidOrTamperedToken(f"Invalid SRS timestamp '{stamp}'")
        then = BASE32_ALPHABET.index(stamp[0]) << 5 | BASE32_ALPHABET.index(stamp[1])
        age = (self._today() - then) % TIMESTAMP_SLOTS
        if age > self.max_age:
            raise ExpiredToken(f"SRS address expired {age} days ago")

    @staticmethod
    def _has_tag(local: str, tag: str, strict: bool) -> bool:
        # relays may lowercase aliases on the way back; only reverse is lenient
        prefix = local[:4] if strict else local[:4].upper()
        return prefix == tag and local[4:5] in ("=", "+", "-")

    def _is_srs0(self, local: str, strict: bool = False) -> bool:
        return self._has_tag(local, "SRS0", strict)

    def _is_srs1(self, local: str, strict: bool = False) -> bool:
        return self._has_tag(local, "SRS1", strict)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def encode(self, local: str, domain: str) -> str:
        """Build the alias local part for ``local@domain``.

        Only an upper-case ``SRS0``/``SRS1`` tag marks an address that was
        already rewritten by a previous hop; ``srs0=foo`` is an ordinary local
        part and gets a fresh ``SRS0`` alias.

        Raises:
            SRSError: On empty input or malformed SRS input.
        """
        sep = self.separator
        if not local or not domain:
            raise SRSError("Cannot rewrite an address without local part or domain")
        if "@" in domain or sep in domain:
            raise SRSError(f"Invalid domain '{domain}'")

        if self._is_srs0(local, strict=True):
            # already rewritten once: keep the SRS0 payload, sign the hop
            payload = local[4:]
            return f"SRS1{sep}{self._hash(domain, payload)}{sep}{domain}{sep}{payload}"

        if self._is_srs1(local, strict=True):
            host, payload = self._split_srs1(local)
            return f"SRS1{sep}{self._hash(host, payload)}{sep}{host}{sep}{payload}"

        stamp = self._timestamp()
        return f"SRS0{sep}{self._hash(stamp, domain, local)}{sep}{stamp}{sep}{domain}{sep}{local}"

    def rewrite(self, local: str, domain: str) -> RewriteResult:
        """Rewrite ``local@domain`` into a signed alias local part.

        Returns:
            ``Ok(alias)`` or ``Err(reason)``. Never raises.
        """
        try:
            return Ok(self.encode(local, domain))
        except SRSError as exc:
            return Err(str(exc))

    def reverse(self, alias: str) -> tuple[str, str]:
        """Validate an alias local part and return the original ``(local, domain)``.

        For an ``SRS1`` alias this returns the ``SRS0`` alias and the first
        forwarder's domain, i.e. the next hop of the bounce.

        Raises:
            InvalidOrTamperedToken: The alias is malformed or the hash does not match.
            ExpiredToken: The alias is older than ``max_age`` days.
        """
        if "@" in alias:
            alias = alias[: alias.rfind("@")]

        if self._is_srs1(alias):
            host, payload = self._split_srs1(alias)
            received = alias[5:].split(alias[4], 1)[0]
            self._check_hash(received, host, payload)
            return "SRS0" + payload, host

        if self._is_srs0(alias):
            fields = alias[5:].split(alias[4], 3)
            if len(fields) != 4 or not all(fields):
                raise InvalidOrTamperedToken(f"Malformed SRS0 address '{alias}'")
            received, stamp, domain, local = fields
            self._check_hash(received, stamp, domain, local)
            self._check_timestamp(stamp)
            return local, domain

        raise InvalidOrTamperedToken(f"'{alias}' is not an SRS address")

    def _split_srs1(self, local: str) -> tuple[str, str]:
        sep = local[4]
        fields = local[5:].split(sep, 1)
        if len(fields) != 2:
            raise InvalidOrTamperedToken(f"Malformed SRS1 address '{local}'")
        rest = fields[1]
        index = rest.find(sep)
        while index > 0:
            payload = rest[index + 1:]
            if payload[:1] in ("=", "+", "-") and len(payload) > 1:
                return rest[:index], payload
            index = rest.find(sep, index + 1)
        raise InvalidOrTamperedToken(f"Malformed SRS1 address '{local}'")


__all__ = ["Err", "Ok", "RewriteResult", "SRSRewriter"]
