from __future__ import annotations

from pathlib import Path

import pytest

from ai_proxy.services.summarization import SummaryStore
from ai_proxy.services.traffic_log import TrafficLog


@pytest.fixture
def traffic_log(tmp_path: Path) -> TrafficLog:
    return TrafficLog(tmp_path / "data" / "log.ndjson")


@pytest.fixture
def summary_store(tmp_path: Path) -> SummaryStore:
    return SummaryStore(tmp_path / "data" / "rolling_summary.json")
