"""Squid proxy integration: access-log parsing, tailing and process supervision."""

from .log_parser import parse_line
from .process import (
    ProxyNotFoundError,
    ProxyStartupError,
    SquidProcess,
    find_squid_binary,
    install_instructions,
    write_squid_config,
)
from .tailer import SquidLogTailer

__all__ = [
    "ProxyNotFoundError",
    "ProxyStartupError",
    "SquidLogTailer",
    "SquidProcess",
    "find_squid_binary",
    "install_instructions",
    "parse_line",
    "write_squid_config",
]
