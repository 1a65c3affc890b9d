import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from ai_proxy import cli
from ai_proxy.commands import run_analyze
from ai_proxy.config import Settings, get_settings
from ai_proxy.models import SummaryState
from ai_proxy.services.summarization import SummarizationFailed
from ai_proxy.services.summarization.summarizer import ActivitySummarizer
from ai_proxy.utils.since import InvalidSince

from fakes import FakeCompletion, FakePageFetcher, text_response


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(data_dir=tmp_path / "data", api_base="http://llm.local/v1", model="test-model")


def _summarizer(completion) -> ActivitySummarizer:
    return ActivitySummarizer(
        model="test-model",
        api_base="http://llm.local/v1",
        completion=completion,
        page_fetcher=FakePageFetcher(),
    )


def test_analyze_summarizes_and_saves(settings, traffic_log, summary_store):
    now = datetime.now(timezone.utc)
    traffic_log.append("http://old.example/", timestamp=now - timedelta(days=2))
    traffic_log.append("http://recent.example/", timestamp=now - timedelta(minutes=5))
    completion = FakeCompletion(text_response("fresh summary"))

    result = asyncio.run(
        run_analyze(
            settings,
            "1h",
            summarizer=_summarizer(completion),
            traffic_log=traffic_log,
            summary_store=summary_store,
        )
    )

    assert result.url_count == 1
    assert result.summary == "fresh summary"
    assert result.saved is True
    assert result.previous_updated is None
    assert summary_store.load().text == "fresh summary"
    assert "http://old.example/" not in completion.requests[0]["messages"][0]["content"]


def test_analyze_reports_previous_summary_time(settings, traffic_log, summary_store):
    previous = SummaryState(text="older", updated=datetime(2024, 1, 1, tzinfo=timezone.utc))
    summary_store.save(previous)
    traffic_log.append("http://recent.example/")
    completion = FakeCompletion(text_response("merged"))

    result = asyncio.run(
        run_analyze(
            settings,
            "1h",
            summarizer=_summarizer(completion),
            traffic_log=traffic_log,
            summary_store=summary_store,
        )
    )

    assert result.previous_updated == previous.updated
    assert "older" in completion.requests[0]["system"]


def test_analyze_without_traffic_skips_llm(settings, traffic_log, summary_store):
    completion = FakeCompletion()
    result = asyncio.run(
        run_analyze(
            settings,
            "7d",
            summarizer=_summarizer(completion),
            traffic_log=traffic_log,
            summary_store=summary_store,
        )
    )
    assert result.summary is None
    assert completion.requests == []
    assert not summary_store.path.exists()


def test_analyze_honours_max_items(settings, traffic_log, summary_store):
    for index in range(4):
        traffic_log.append(f"http://site{index}.example/")
    completion = FakeCompletion(text_response("ok"))

    result = asyncio.run(
        run_analyze(
            settings,
            "1h",
            max_items=3,
            summarizer=_summarizer(completion),
            traffic_log=traffic_log,
            summary_store=summary_store,
        )
    )
    assert result.url_count == 3


def test_analyze_failure_does_not_persist(settings, traffic_log, summary_store):
    traffic_log.append("http://recent.example/")
    completion = FakeCompletion({"choices": []})

    with pytest.raises(SummarizationFailed):
        asyncio.run(
            run_analyze(
                settings,
                "1h",
                summarizer=_summarizer(completion),
                traffic_log=traffic_log,
                summary_store=summary_store,
            )
        )
    assert not summary_store.path.exists()


def test_analyze_rejects_bad_since(settings):
    with pytest.raises(InvalidSince):
        asyncio.run(run_analyze(settings, "7x"))


@pytest.fixture
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setenv("AI_PROXY_DATA_DIR", str(tmp_path / "cli-data"))
    monkeypatch.delenv("API_BASE", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_cli_invalid_since_exits_with_usage_error(isolated_settings, capsys):
    assert cli.main(["analyze", "--since", "soon", "--api-base", "http://llm.local/v1"]) == cli.EXIT_USAGE
    assert "Invalid RFC3339 timestamp" in capsys.readouterr().err


def test_cli_analyze_without_traffic(isolated_settings, capsys):
    assert cli.main(["analyze", "--since", "1h", "--api-base", "http://llm.local/v1"]) == 0
    assert "No traffic since" in capsys.readouterr().out


def test_cli_overrides_settings():
    settings = Settings(data_dir="/tmp/x", model="default-model")
    args = cli.build_parser(settings).parse_args(["ambient", "--interval", "5", "--model", "other"])
    updated = cli._apply_overrides(settings, args)
    assert updated.ambient_interval_seconds == 5
    assert updated.model == "other"
