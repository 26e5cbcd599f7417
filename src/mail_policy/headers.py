# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Ordered, mutable message header block.

The policy engine only rewrites address headers and adds trace headers, so
this collection keeps header lines as ``(key, value)`` pairs in their
original order and never re-encodes untouched values.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator

_FOLD = re.compile(r"\r?\n(?=[ \t])")


def _render(value: str | Iterable[str]) -> str:
    if isinstance(value, str):
        return value
    return ", ".join(value)


class HeaderCollection:
    """Header lines of a message, in order, with case-insensitive lookup.

    Example:
        headers = HeaderCollection.parse(b"From: a@example.com\\r\\nSubject: hi\\r\\n\\r\\n")
        headers.update("From", "b@example.com")
        raw = headers.build()
    """

    def __init__(self, lines: Iterable[tuple[str, str]] | None = None) -> None:
        self._lines: list[tuple[str, str]] = list(lines or [])

    @classmethod
    def parse(cls, raw: bytes | str) -> HeaderCollection:
        """Parse a header block (up to the first empty line)."""
        text = raw.decode("utf-8", errors="surrogateescape") if isinstance(raw, bytes) else raw
        block = re.split(r"\r?\n\r?\n", text, maxsplit=1)[0]
        lines: list[tuple[str, str]] = []
        for line in re.split(r"\r?\n(?![ \t])", block):
            if not line.strip() or ":" not in line:
                continue
            key, value = line.split(":", 1)
            lines.append((key.strip(), value.strip()))
        return cls(lines)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def get(self, key: str) -> list[str]:
        """Return every (unfolded) value of a header."""
        lkey = key.lower()
        return [_FOLD.sub("", value) for k, value in self._lines if k.lower() == lkey]

    def get_first(self, key: str) -> str:
        """Return the first (unfolded) value of a header, or ``""``."""
        values = self.get(key)
        return values[0] if values else ""

    def has(self, key: str) -> bool:
        lkey = key.lower()
        return any(k.lower() == lkey for k, _ in self._lines)

    def add(self, key: str, value: str | Iterable[str], index: int | None = 0) -> None:
        """Insert a header line.

        Args:
            key: Header name.
            value: Header value; an iterable of strings is joined with ``", "``.
            index: Position in the block. ``0`` (default) prepends, ``None``
                appends at the bottom.
        """
        line = (key, _render(value))
        if index is None or index >= len(self._lines):
            self._lines.append(line)
        else:
            self._lines.insert(max(index, 0), line)

    def update(self, key: str, value: str | Iterable[str]) -> None:
        """Replace a header in place, dropping extra occurrences; add it if missing."""
        lkey = key.lower()
        rendered = _render(value)
        position = None
        kept: list[tuple[str, str]] = []
        for k, v in self._lines:
            if k.lower() == lkey:
                if position is None:
                    position = len(kept)
                    kept.append((k, rendered))
                continue
            kept.append((k, v))
        if position is None:
            kept.insert(0, (key, rendered))
        self._lines = kept

    def remove(self, key: str) -> None:
        lkey = key.lower()
        self._lines = [(k, v) for k, v in self._lines if k.lower() != lkey]

    def build(self) -> bytes:
        """Render the header block, terminated by the empty separator line."""
        text = "".join(f"{key}: {value}\r\n" for key, value in self._lines)
        return (text + "\r\n").encode("utf-8", errors="surrogateescape")


__all__ = ["HeaderCollection"]
