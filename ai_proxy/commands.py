"""Top-level command implementations shared by the CLI."""

from __future__ import annotations

import asyncio
import signal
from dataclasses import dataclass
from datetime import datetime
from typing import Coroutine, List, Optional

from .config import Settings, resolve_data_dir
from .logging_config import logger
from .models import SummaryState, utc_now
from .services.squid import SquidLogTailer, SquidProcess, write_squid_config
from .services.summarization import ActivitySummarizer, AmbientScheduler, SummaryStore
from .services.traffic_log import TrafficLog
from .utils.since import parse_since

SHUTDOWN_GRACE_SECONDS = 1.0


@dataclass
class AnalysisResult:
    """Outcome of a one-shot analysis."""

    cutoff: datetime
    url_count: int
    summary: Optional[str] = None
    previous_updated: Optional[datetime] = None
    saved: bool = False


def _build_proxy(settings: Settings) -> SquidProcess:
    resolve_data_dir(settings)
    config_path = write_squid_config(
        settings.squid_config_path,
        port=settings.proxy_port,
        log_path=settings.squid_log_path,
    )
    return SquidProcess(config_path, port=settings.proxy_port)


def _install_signal_handlers(loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event) -> List[int]:
    installed: List[int] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops; Ctrl+C surfaces as KeyboardInterrupt instead
            continue
        installed.append(sig)
    return installed


async def _run_until_shutdown(stop_event: asyncio.Event, workers: List[Coroutine]) -> None:
    """Run *workers* until the stop event is set or one of them exits."""
    loop = asyncio.get_running_loop()
    installed = _install_signal_handlers(loop, stop_event)
    tasks = [loop.create_task(worker) for worker in workers]
    waiter = loop.create_task(stop_event.wait())
    try:
        await asyncio.wait([waiter, *tasks], return_when=asyncio.FIRST_COMPLETED)
        if stop_event.is_set():
            logger.info("shutting down proxy")
    finally:
        stop_event.set()
        waiter.cancel()
        _, pending = await asyncio.wait(tasks, timeout=SHUTDOWN_GRACE_SECONDS)
        for task in pending:
            task.cancel()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error("background task failed", extra={"error": str(result)})
        for sig in installed:
            loop.remove_signal_handler(sig)


async def run_log(settings: Settings) -> None:
    """Start the proxy and record traffic until shutdown."""
    traffic_log = TrafficLog(settings.event_log_path)
    stop_event = asyncio.Event()
    with _build_proxy(settings):
        tailer = SquidLogTailer(
            settings.squid_log_path,
            traffic_log,
            stop_event,
            poll_interval_seconds=settings.tail_poll_interval_seconds,
        )
        await _run_until_shutdown(stop_event, [tailer.run()])


async def run_ambient(settings: Settings) -> None:
    """Start the proxy, record traffic and refresh the summary on a timer."""
    summarizer = ActivitySummarizer.from_settings(settings)
    resolve_data_dir(settings)
    traffic_log = TrafficLog(settings.event_log_path)
    summary_store = SummaryStore(settings.summary_path)
    stop_event = asyncio.Event()
    with _build_proxy(settings):
        tailer = SquidLogTailer(
            settings.squid_log_path,
            traffic_log,
            stop_event,
            poll_interval_seconds=settings.tail_poll_interval_seconds,
        )
        scheduler = AmbientScheduler(
            traffic_log,
            summary_store,
            summarizer,
            stop_event,
            interval_seconds=settings.ambient_interval_seconds,
            max_items=settings.max_analysis_items,
        )
        await _run_until_shutdown(stop_event, [tailer.run(), scheduler.run()])


async def run_analyze(
    settings: Settings,
    since: str,
    *,
    max_items: Optional[int] = None,
    summarizer: Optional[ActivitySummarizer] = None,
    traffic_log: Optional[TrafficLog] = None,
    summary_store: Optional[SummaryStore] = None,
) -> AnalysisResult:
    """Summarize traffic recorded since *since* and persist the new summary.

    Raises ``InvalidSince`` for a bad expression and ``SummarizationFailed``
    when the model exchange fails. A failed save is logged, not raised.
    """
    cutoff = parse_since(since)
    logger.info("analyzing traffic since %s", cutoff.isoformat())

    if traffic_log is None or summary_store is None:
        resolve_data_dir(settings)
    traffic_log = traffic_log or TrafficLog(settings.event_log_path)
    summary_store = summary_store or SummaryStore(settings.summary_path)
    limit = max_items if max_items is not None else settings.max_analysis_items

    urls = traffic_log.read_since(cutoff, limit)
    result = AnalysisResult(cutoff=cutoff, url_count=len(urls))
    if not urls:
        return result

    summarizer = summarizer or ActivitySummarizer.from_settings(settings)
    state = summary_store.load()
    if not state.is_empty:
        result.previous_updated = state.updated
    logger.info(
        "found %d urls to analyze",
        len(urls),
        extra={"model": summarizer.model, "has_previous": not state.is_empty},
    )

    summary = await summarizer.summarize(state.text, urls)
    result.summary = summary

    try:
        summary_store.save(SummaryState(text=summary, updated=utc_now()))
        result.saved = True
    except OSError as exc:
        logger.warning("failed to save updated summary: %s", exc)
    return result


__all__ = ["AnalysisResult", "run_ambient", "run_analyze", "run_log"]
