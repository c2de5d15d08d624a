"""Normalization helpers for device log rows."""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping

from aaabridge.core.models import LogEvent

_WHITESPACE_RE = re.compile(r"[ \t]+")


def _normalize_line_endings(text: str) -> str:
    """Convert CRLF/CR line endings to LF for consistent processing."""

    return text.replace("\r\n", "\n").replace("\r", "\n")


def normalize_message(text: str) -> str:
    """Normalize a log message.

    - unify line endings and fold them into spaces
    - collapse runs of blanks
    - strip surrounding whitespace
    """

    folded = _normalize_line_endings(text).replace("\n", " ")
    return _WHITESPACE_RE.sub(" ", folded).strip()


def normalize_topics(value: str | Iterable[str] | None) -> tuple[str, ...]:
    """Return topic tags as a tuple, accepting ``"firewall,info"`` or a list."""

    if value is None:
        return ()
    items = value.split(",") if isinstance(value, str) else list(value)
    return tuple(item.strip() for item in items if item and item.strip())


def normalize_log_row(row: Mapping[str, Any]) -> LogEvent:
    """Build an unclassified :class:`LogEvent` from a ``/log/print`` reply row."""

    return LogEvent(
        id=row.get("id") or row.get(".id") or None,
        timestamp=row.get("time") or None,
        topics=normalize_topics(row.get("topics")),
        message=normalize_message(str(row.get("message") or "")),
        raw=dict(row),
    )
