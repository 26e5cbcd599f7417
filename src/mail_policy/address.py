# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Address canonicalization and address-header helpers.

Every identity comparison in the policy engine goes through
``normalize_address``: two addresses belong to the same identity when their
normalized forms are equal.

Example::

    >>> normalize_address("John.Doe+news@XN--BCHER-KVA.Example")
    'john.doe@bücher.example'
"""

from __future__ import annotations

import unicodedata
from collections.abc import Mapping
from email.errors import HeaderParseError
from email.headerregistry import Address, HeaderRegistry
from email.utils import formataddr
from typing import Any, NamedTuple

_header_registry = HeaderRegistry()


class Mailbox(NamedTuple):
    """A single mailbox taken from an address header."""

    name: str
    address: str


def _split(address: str) -> tuple[str, str]:
    at = address.rfind("@")
    if at < 0:
        return "", address
    return address[:at], address[at + 1:]


def _local_part(local: str) -> str:
    local = unicodedata.normalize("NFC", local)
    plus = local.find("+")
    if plus >= 0:
        local = local[:plus]
    return unicodedata.normalize("NFC", local.lower()).strip()


def _domain(domain: str) -> str:
    domain = domain.lower().strip()
    try:
        return domain.encode("ascii").decode("idna")
    except UnicodeError:
        # already in Unicode form, or not a valid IDNA name
        return domain


def _extract(address: Any) -> tuple[str, str]:
    if isinstance(address, str):
        return "", address
    if isinstance(address, Mailbox):
        return address.name or "", address.address or ""
    if isinstance(address, Mapping):
        return address.get("name") or "", address.get("address") or ""
    if isinstance(address, (tuple, list)) and len(address) == 2:
        name, addr = address
        return name or "", addr or ""
    return "", ""


def normalize_address(address: Any, with_names: bool = False) -> Any:
    """Return the canonical ``localpart@domain`` form of an address.

    The local part drops any ``+tag``, is NFC normalized, lowercased and
    trimmed. The domain is lowercased, trimmed and converted from punycode to
    its Unicode form.

    Args:
        address: A string, a ``(name, address)`` pair, a ``Mailbox`` or a
            mapping with ``address`` (and optionally ``name``) keys.
        with_names: Return ``{"name": ..., "address": ...}`` instead of a
            plain string.

    Returns:
        The canonical address, or ``""`` when no address was given. Never raises.
    """
    name, raw = _extract(address)
    if not raw:
        return {"name": name, "address": ""} if with_names else ""

    local, domain = _split(raw)
    canonical = f"{_local_part(local)}@{_domain(domain)}"

    if with_names:
        return {"name": name, "address": canonical}
    return canonical


def address_domain(address: str) -> str:
    """Lowercased domain of a raw address (text after the last ``@``)."""
    return _split(address or "")[1].lower()


def parse_first_address(value: str | None) -> Mailbox | None:
    """Parse an address header and return its first mailbox.

    A group construct (``undisclosed: a@b;``) yields an empty mailbox, so the
    caller treats it as an unnamed, address-less sender.

    Returns:
        ``None`` when the header is empty or has no parseable address.
    """
    if not value or not value.strip():
        return None
    try:
        header = _header_registry("from", value)
        groups = header.groups
    except (HeaderParseError, IndexError, ValueError):
        return None
    if not groups:
        return None

    first = groups[0]
    if first.display_name is not None:
        return Mailbox("", "")
    if not first.addresses:
        return None
    mailbox = first.addresses[0]
    return Mailbox(mailbox.display_name or "", mailbox.addr_spec or "")


def format_address(mailbox: Mailbox) -> str:
    """Render a mailbox for an address header.

    Non-ASCII names are RFC 2047 encoded for ASCII addresses. Internationalized
    addresses can only travel in an SMTPUTF8 message, so the name is kept as
    UTF-8 there and only quoted.
    """
    if not mailbox.name:
        return mailbox.address
    if mailbox.address.isascii():
        return formataddr((mailbox.name, mailbox.address))
    local, domain = _split(mailbox.address)
    return str(Address(display_name=mailbox.name, username=local, domain=domain))


__all__ = [
    "Mailbox",
    "address_domain",
    "format_address",
    "normalize_address",
    "parse_first_address",
]
