"""Ambient mode: periodically fold recent traffic into the rolling summary."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Callable

from ...logging_config import logger
from ...models import SummaryState, utc_now
from ..traffic_log import TrafficLog
from .state import SummaryStore
from .summarizer import ActivitySummarizer, SummarizationFailed


class AmbientScheduler:
    """Every interval, summarize the URLs recorded during the previous interval."""

    def __init__(
        self,
        traffic_log: TrafficLog,
        summary_store: SummaryStore,
        summarizer: ActivitySummarizer,
        stop_event: asyncio.Event,
        *,
        interval_seconds: float,
        max_items: int,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._traffic_log = traffic_log
        self._summary_store = summary_store
        self._summarizer = summarizer
        self._stop_event = stop_event
        self._interval = interval_seconds
        self._max_items = max_items
        self._clock = clock
        self._lock = asyncio.Lock()

    async def run(self) -> None:
        logger.info("ambient scheduler started", extra={"interval": self._interval})
        loop = asyncio.get_running_loop()
        next_fire = loop.time()
        while not self._stop_event.is_set():
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception("ambient tick crashed", extra={"error": str(exc)})
            # fixed cadence: the wait absorbs the time spent in tick()
            next_fire += self._interval
            now = loop.time()
            if next_fire < now:
                logger.warning("ambient tick overran the interval by %.1fs", now - next_fire)
                next_fire = now
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=next_fire - now)
            except asyncio.TimeoutError:
                pass
        logger.info("ambient scheduler stopped")

    async def tick(self) -> bool:
        """Run one cycle. Returns True when a new summary was persisted."""
        async with self._lock:
            cutoff = self._clock() - timedelta(seconds=self._interval)
            urls = self._traffic_log.read_since(cutoff, self._max_items)
            if not urls:
                logger.debug("no new traffic since %s", cutoff.isoformat())
                return False

            state = self._summary_store.load()
            if state.is_empty:
                logger.info("starting fresh analysis with %d new urls", len(urls))
            else:
                logger.info("updating existing analysis with %d new urls", len(urls))

            try:
                summary = await self._summarizer.summarize(state.text, urls)
            except SummarizationFailed as exc:
                logger.error("summarization error: %s", exc)
                return False

            try:
                self._summary_store.save(SummaryState(text=summary, updated=self._clock()))
            except OSError as exc:
                logger.error("save error: %s", exc)
                return False
            return True


__all__ = ["AmbientScheduler"]
