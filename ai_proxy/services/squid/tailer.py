"""Incremental reader for the Squid access log."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

from ...logging_config import logger
from ..traffic_log import TrafficLog
from .log_parser import parse_line

DEFAULT_POLL_INTERVAL_SECONDS = 0.1


class SquidLogTailer:
    """Poll an append-only access log and forward new URLs to the traffic log.

    The byte cursor lives in memory only. Only newline-terminated lines are
    consumed; a partially written trailing line stays unread until a later
    poll sees its terminator. If the file shrinks below the cursor it was
    truncated or rotated and the cursor jumps to the current size.
    """

    def __init__(
        self,
        source: Path,
        traffic_log: TrafficLog,
        stop_event: asyncio.Event,
        *,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        start_at_end: bool = True,
    ) -> None:
        self._source = source
        self._traffic_log = traffic_log
        self._stop_event = stop_event
        self._poll_interval = poll_interval_seconds
        self._cursor = 0
        if start_at_end:
            self._cursor = self._current_size() or 0

    @property
    def cursor(self) -> int:
        return self._cursor

    def _current_size(self) -> Optional[int]:
        try:
            return self._source.stat().st_size
        except FileNotFoundError:
            return None

    def poll_once(self) -> int:
        """Consume complete lines appended since the last poll.

        Returns the number of URLs handed to the traffic log.
        """
        size = self._current_size()
        if size is None:
            return 0

        if size < self._cursor:
            logger.info(
                "access log truncated or rotated; resetting cursor",
                extra={"path": str(self._source), "cursor": self._cursor, "size": size},
            )
            self._cursor = size
            return 0

        if size == self._cursor:
            return 0

        with self._source.open("rb") as handle:
            handle.seek(self._cursor)
            chunk = handle.read(size - self._cursor)

        last_newline = chunk.rfind(b"\n")
        if last_newline == -1:
            return 0

        complete = chunk[: last_newline + 1]
        self._cursor += len(complete)

        forwarded = 0
        for raw_line in complete.splitlines():
            url = parse_line(raw_line.decode("utf-8", errors="replace"))
            if url is None:
                continue
            try:
                self._traffic_log.append(url)
            except Exception as exc:
                # the cursor has already moved past this chunk; keep going with the rest
                logger.warning("failed to record url", extra={"url": url, "error": str(exc)})
                continue
            forwarded += 1
        return forwarded

    async def run(self) -> None:
        """Poll until the stop event is set."""
        logger.info(
            "access log tailer started",
            extra={"path": str(self._source), "cursor": self._cursor},
        )
        while not self._stop_event.is_set():
            try:
                count = self.poll_once()
                if count:
                    logger.debug("recorded %d urls", count)
            except Exception as exc:
                logger.exception("access log poll failed", extra={"error": str(exc)})
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                pass
        logger.info("access log tailer stopped")


__all__ = ["DEFAULT_POLL_INTERVAL_SECONDS", "SquidLogTailer"]
