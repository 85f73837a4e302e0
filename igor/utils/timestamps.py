"""Timestamp helpers for API payloads."""
from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(timezone.utc)


def parse_timestamp(value: object) -> datetime | None:
    """Parse an RFC 3339 timestamp such as ``2024-01-20T14:22:00.000Z``.

    Returns ``None`` for missing values and raises ``ValueError`` when the value
    is present but cannot be interpreted. Naive results are assumed to be UTC.
    """

    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Expected an ISO 8601 string, got {type(value).__name__}.")

    text = value.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(_trim_fraction(text))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_age(moment: datetime | None, *, now: datetime) -> str:
    """Render the distance between *moment* and *now* as a compact label."""

    if moment is None:
        return "never"

    seconds = int((now - moment).total_seconds())
    if seconds < 0:
        return "just now"
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def _trim_fraction(text: str) -> str:
    # fromisoformat on 3.10 only accepts 3 or 6 fractional digits.
    if "." not in text:
        return text
    head, _, rest = text.partition(".")
    digits = ""
    for char in rest:
        if not char.isdigit():
            break
        digits += char
    suffix = rest[len(digits):]
    return f"{head}.{digits[:6].ljust(6, '0')}{suffix}"


__all__ = ["format_age", "parse_timestamp", "utc_now"]
