"""Extract visited URLs from Squid access-log lines.

The proxy is configured with this log format (see ``process.py``)::

    %ts.%03tu %6tr %>a %Ss/%03>Hs %<st %rm %ru %{Host}>h %un %Sh/%<a %mt

e.g. ``1234567890.123 456 192.168.1.1 TCP_MISS/200 1234 GET http://example.com/ example.com - DIRECT/93.184.216.34 text/html``
"""

from __future__ import annotations

from typing import Optional

MIN_FIELDS = 8

_METHOD_FIELD = 5
_TARGET_FIELD = 6
_HOST_FIELD = 7


def parse_line(line: str) -> Optional[str]:
    """Return the URL recorded by *line*, or ``None`` if it is not a request line."""

    parts = line.split()
    if len(parts) < MIN_FIELDS:
        return None

    target = parts[_TARGET_FIELD]
    if target.startswith(("http://", "https://")):
        return target

    host = parts[_HOST_FIELD]
    if parts[_METHOD_FIELD] == "CONNECT":
        return f"https://{host}"
    return f"http://{host}"


__all__ = ["MIN_FIELDS", "parse_line"]
