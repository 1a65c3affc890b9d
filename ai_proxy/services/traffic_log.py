"""Append-only NDJSON store of visited URLs."""

from __future__ import annotations

import threading
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

from pydantic import ValidationError

from ..logging_config import logger
from ..models import TrafficEvent, utc_now


class TrafficLog:
    """Append-only event log; one JSON object per line."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._ensure_directory()

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_directory(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("traffic log directory creation failed", extra={"error": str(exc)})

    def append(self, url: str, *, timestamp: Optional[datetime] = None) -> TrafficEvent:
        """Record *url* with the current UTC time."""
        event = TrafficEvent(url=url, ts=timestamp or utc_now())
        line = event.model_dump_json() + "\n"
        with self._lock:
            try:
                with self._path.open("a", encoding="utf-8") as handle:
                    handle.write(line)
            except OSError as exc:
                logger.error(
                    "traffic log append failed",
                    extra={"error": str(exc), "url": url, "path": str(self._path)},
                )
                raise
        return event

    def iter_events(self) -> Iterator[TrafficEvent]:
        """Yield stored events front-to-back, skipping malformed lines."""
        try:
            handle = self._path.open("r", encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return
        with handle:
            for line_number, raw_line in enumerate(handle, start=1):
                stripped = raw_line.strip()
                if not stripped:
                    continue
                try:
                    yield TrafficEvent.model_validate_json(stripped)
                except ValidationError as exc:
                    logger.warning(
                        "skipping malformed traffic log line %d",
                        line_number,
                        extra={"path": str(self._path), "error": str(exc)},
                    )

    def read_since(self, cutoff: datetime, limit: int) -> List[str]:
        """Return URLs recorded at or after *cutoff*, oldest first.

        At most *limit* URLs are returned. When more match, the earliest ones
        are kept and later ones are dropped; this is not a "most recent N".
        """
        urls: List[str] = []
        if limit <= 0:
            return urls
        for event in self.iter_events():
            if event.ts < cutoff:
                continue
            urls.append(event.url)
            if len(urls) >= limit:
                break
        return urls


__all__ = ["TrafficLog"]
