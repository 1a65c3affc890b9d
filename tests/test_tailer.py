import asyncio
from datetime import datetime, timezone
from pathlib import Path

from ai_proxy.services.squid.tailer import SquidLogTailer

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

GET_LINE = "1717243200.123    12 127.0.0.1 TCP_MISS/200 512 GET http://example.com/ example.com - DIRECT/93.184.216.34 text/html\n"
CONNECT_LINE = "1717243201.456   340 127.0.0.1 TCP_TUNNEL/200 4096 CONNECT example.org:443 example.org:443 - HIER_DIRECT/1.2.3.4 -\n"


def _append(path: Path, text: str) -> None:
    with path.open("a", encoding="utf-8") as handle:
        handle.write(text)


def _make_tailer(source: Path, traffic_log, *, start_at_end: bool = False) -> SquidLogTailer:
    return SquidLogTailer(source, traffic_log, asyncio.Event(), start_at_end=start_at_end)


def test_single_poll_records_get_and_connect(tmp_path, traffic_log):
    source = tmp_path / "access.log"
    source.write_text(GET_LINE + CONNECT_LINE, encoding="utf-8")
    tailer = _make_tailer(source, traffic_log)

    assert tailer.poll_once() == 2
    assert traffic_log.read_since(EPOCH, 100) == ["http://example.com/", "https://example.org:443"]
    assert tailer.cursor == source.stat().st_size


def test_missing_source_is_a_noop(tmp_path, traffic_log):
    tailer = _make_tailer(tmp_path / "absent.log", traffic_log)
    assert tailer.poll_once() == 0
    assert tailer.cursor == 0


def test_previously_seen_bytes_are_not_reprocessed(tmp_path, traffic_log):
    source = tmp_path / "access.log"
    source.write_text(GET_LINE, encoding="utf-8")
    tailer = _make_tailer(source, traffic_log)

    tailer.poll_once()
    assert tailer.poll_once() == 0
    _append(source, CONNECT_LINE)
    assert tailer.poll_once() == 1

    assert traffic_log.read_since(EPOCH, 100) == ["http://example.com/", "https://example.org:443"]


def test_partial_line_waits_for_terminator(tmp_path, traffic_log):
    source = tmp_path / "access.log"
    half = len(CONNECT_LINE) // 2
    source.write_text(GET_LINE + CONNECT_LINE[:half], encoding="utf-8")
    tailer = _make_tailer(source, traffic_log)

    assert tailer.poll_once() == 1
    assert tailer.cursor == len(GET_LINE.encode())

    _append(source, CONNECT_LINE[half:])
    assert tailer.poll_once() == 1
    assert traffic_log.read_since(EPOCH, 100) == ["http://example.com/", "https://example.org:443"]


def test_cursor_resets_on_truncation_without_replay(tmp_path, traffic_log):
    source = tmp_path / "access.log"
    source.write_text(GET_LINE * 3, encoding="utf-8")
    tailer = _make_tailer(source, traffic_log)
    tailer.poll_once()
    first_cursor = tailer.cursor

    source.write_text(CONNECT_LINE, encoding="utf-8")
    assert tailer.poll_once() == 0
    assert tailer.cursor == len(CONNECT_LINE.encode())
    assert tailer.cursor < first_cursor

    _append(source, GET_LINE)
    assert tailer.poll_once() == 1
    assert traffic_log.read_since(EPOCH, 100) == ["http://example.com/"] * 4


def test_start_at_end_skips_existing_content(tmp_path, traffic_log):
    source = tmp_path / "access.log"
    source.write_text(GET_LINE, encoding="utf-8")
    tailer = _make_tailer(source, traffic_log, start_at_end=True)

    assert tailer.poll_once() == 0
    _append(source, CONNECT_LINE)
    assert tailer.poll_once() == 1
    assert traffic_log.read_since(EPOCH, 100) == ["https://example.org:443"]


def test_start_at_end_with_file_created_later(tmp_path, traffic_log):
    source = tmp_path / "access.log"
    tailer = _make_tailer(source, traffic_log, start_at_end=True)
    source.write_text(GET_LINE, encoding="utf-8")
    assert tailer.poll_once() == 1


def test_unparsable_lines_are_skipped(tmp_path, traffic_log):
    source = tmp_path / "access.log"
    source.write_text("short line\n" + GET_LINE, encoding="utf-8")
    tailer = _make_tailer(source, traffic_log)
    assert tailer.poll_once() == 1


def test_append_failure_drops_line_and_continues(tmp_path, traffic_log, monkeypatch):
    source = tmp_path / "access.log"
    source.write_text(GET_LINE + CONNECT_LINE, encoding="utf-8")
    tailer = _make_tailer(source, traffic_log)

    original_append = traffic_log.append
    calls = []

    def flaky_append(url, **kwargs):
        calls.append(url)
        if len(calls) == 1:
            raise OSError("disk full")
        return original_append(url, **kwargs)

    monkeypatch.setattr(traffic_log, "append", flaky_append)

    assert tailer.poll_once() == 1
    assert traffic_log.read_since(EPOCH, 100) == ["https://example.org:443"]
    assert tailer.cursor == source.stat().st_size


def test_run_exits_when_stop_event_is_set(tmp_path, traffic_log):
    source = tmp_path / "access.log"

    async def scenario():
        stop_event = asyncio.Event()
        tailer = SquidLogTailer(
            source,
            traffic_log,
            stop_event,
            poll_interval_seconds=0.01,
            start_at_end=False,
        )
        task = asyncio.create_task(tailer.run())
        await asyncio.sleep(0.05)
        _append(source, GET_LINE)
        for _ in range(100):
            if traffic_log.read_since(EPOCH, 10):
                break
            await asyncio.sleep(0.01)
        stop_event.set()
        await asyncio.wait_for(task, timeout=1)

    asyncio.run(scenario())
    assert traffic_log.read_since(EPOCH, 10) == ["http://example.com/"]


def test_unexpected_append_error_does_not_drop_rest_of_chunk(tmp_path, traffic_log, monkeypatch):
    source = tmp_path / "access.log"
    source.write_text(GET_LINE + CONNECT_LINE, encoding="utf-8")
    tailer = _make_tailer(source, traffic_log)

    original_append = traffic_log.append
    calls = []

    def broken_append(url, **kwargs):
        calls.append(url)
        if len(calls) == 1:
            raise ValueError("bad event")
        return original_append(url, **kwargs)

    monkeypatch.setattr(traffic_log, "append", broken_append)

    assert tailer.poll_once() == 1
    assert traffic_log.read_since(EPOCH, 100) == ["https://example.org:443"]
