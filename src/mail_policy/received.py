# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Received trace header rendering.

The layout is fixed because trace analyzers parse it::

    Received: from <transhost> <origin>
     (Authenticated sender: <user>)
     by <hostname> with <transtype> id <id>
     for <rcpt>
     (version=<tls version> cipher=<tls cipher>);
     <date>
"""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import format_datetime

from .models import Envelope


def _format_date(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True).replace("GMT", "+0000")


def _origin(envelope: Envelope) -> tuple[str, bool]:
    parts = []
    if envelope.origin:
        parts.append(f"[{envelope.origin}]")
    originhost = envelope.originhost if envelope.originhost and not envelope.originhost.startswith("[") else None
    if originhost:
        parts.append(originhost)

    if len(parts) > 1:
        return "(" + " ".join(parts) + ")", True
    return (" ".join(parts).strip() or "localhost"), bool(originhost)


def build_received_header(envelope: Envelope, hostname: str) -> str:
    """Render the ``Received:`` header line for an envelope.

    Args:
        envelope: Submission envelope providing transport metadata.
        hostname: Name of the receiving host (``by`` clause).

    Returns:
        The full header including the ``Received: `` key, with CRLF folds and
        no trailing line break.
    """
    origin, has_originhost = _origin(envelope)

    value = "from"
    if envelope.transhost:
        value += " " + envelope.transhost
    value += " " + origin
    if has_originhost:
        value += "\r\n"

    if envelope.user:
        value += f" (Authenticated sender: {envelope.user})\r\n"
    elif not has_originhost:
        value += "\r\n"

    value += f" by {hostname} with {envelope.transtype} id {envelope.id}"

    if len(envelope.recipients) == 1:
        value += f"\r\n for <{envelope.recipients[0]}>"

    if envelope.tls:
        value += f"\r\n (version={envelope.tls.version} cipher={envelope.tls.name})"

    value += ";\r\n " + _format_date(envelope.time)
    return "Received: " + value


__all__ = ["build_received_header"]
