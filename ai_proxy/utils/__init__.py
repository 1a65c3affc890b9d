from .since import (
    InvalidDuration,
    InvalidSince,
    InvalidTimestamp,
    parse_since,
)

__all__ = [
    "InvalidDuration",
    "InvalidSince",
    "InvalidTimestamp",
    "parse_since",
]
