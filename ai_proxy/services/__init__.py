"""Service layer components."""

from .squid import (
    ProxyNotFoundError,
    ProxyStartupError,
    SquidLogTailer,
    SquidProcess,
    install_instructions,
    parse_line,
    write_squid_config,
)
from .summarization import (
    ActivitySummarizer,
    AmbientScheduler,
    SummarizationFailed,
    SummaryStore,
)
from .traffic_log import TrafficLog


__all__ = [
    "ActivitySummarizer",
    "AmbientScheduler",
    "ProxyNotFoundError",
    "ProxyStartupError",
    "SquidLogTailer",
    "SquidProcess",
    "SummarizationFailed",
    "SummaryStore",
    "TrafficLog",
    "install_instructions",
    "parse_line",
    "write_squid_config",
]
