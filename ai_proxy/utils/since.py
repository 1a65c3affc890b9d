"""Parse ``--since`` expressions into absolute UTC cutoffs.

Accepted forms are an integer followed by ``d``, ``h`` or ``m`` (days, hours,
minutes before now) and RFC3339 timestamps such as ``2024-05-01T12:00:00Z``.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

UTC = timezone.utc

_UNITS = {
    "d": "days",
    "h": "hours",
    "m": "minutes",
}

_RFC3339_PATTERN = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[Tt ](?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?(?P<offset>[Zz]|[+-]\d{2}:\d{2})$"
)


class InvalidSince(ValueError):
    """Base error for unparsable since expressions."""


class InvalidDuration(InvalidSince):
    """The numeric part of a relative expression is not an integer."""


class InvalidTimestamp(InvalidSince):
    """The expression is neither relative nor a valid RFC3339 timestamp."""


def parse_rfc3339(value: str) -> datetime:
    match = _RFC3339_PATTERN.match(value.strip())
    if not match:
        raise InvalidTimestamp(f"Invalid RFC3339 timestamp: {value!r}")

    # fromisoformat only takes 3 or 6 fractional digits before Python 3.11
    fraction = (match.group("fraction") or "")[:6].ljust(6, "0")
    offset = match.group("offset")
    if offset in ("Z", "z"):
        offset = "+00:00"
    normalized = f"{match.group('date')}T{match.group('time')}.{fraction}{offset}"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise InvalidTimestamp(f"Invalid RFC3339 timestamp: {value!r}") from exc
    return parsed.astimezone(UTC)


def parse_since(value: str, *, now: Optional[datetime] = None) -> datetime:
    """Return the absolute UTC instant described by *value*."""

    text = (value or "").strip()
    unit = _UNITS.get(text[-1:]) if text else None
    if unit is not None:
        number = text[:-1]
        try:
            amount = int(number)
        except ValueError as exc:
            raise InvalidDuration(f"Invalid duration: {value!r}") from exc
        current = now or datetime.now(UTC)
        return current - timedelta(**{unit: amount})

    return parse_rfc3339(text)


__all__ = [
    "InvalidDuration",
    "InvalidSince",
    "InvalidTimestamp",
    "parse_rfc3339",
    "parse_since",
]
