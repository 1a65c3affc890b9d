"""Simplified configuration management."""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field


def _load_env_file() -> None:
    """Load .env from the working directory if present."""
    env_path = Path.cwd() / ".env"
    if not env_path.is_file():
        return
    try:
        for line in env_path.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if stripped and not stripped.startswith("#") and "=" in stripped:
                key, value = stripped.split("=", 1)
                key, value = key.strip(), value.strip().strip("'\"")
                if key and value and key not in os.environ:
                    os.environ[key] = value
    except OSError:
        pass


_load_env_file()


DEFAULT_APP_NAME = "ai-proxy"
DEFAULT_APP_VERSION = "0.1.0"
DEFAULT_MODEL = "gpt-oss:20b"

LOG_FILE_NAME = "log.ndjson"
SUMMARY_FILE_NAME = "rolling_summary.json"
SQUID_CONFIG_NAME = "squid.conf"


class DataDirectoryError(RuntimeError):
    """Raised when no writable data directory can be established."""


def _env_int(name: str, fallback: int) -> int:
    try:
        return int(os.getenv(name, str(fallback)))
    except (TypeError, ValueError):
        return fallback


def _env_float(name: str, fallback: float) -> float:
    try:
        return float(os.getenv(name, str(fallback)))
    except (TypeError, ValueError):
        return fallback


def _default_data_dir() -> Path:
    explicit = os.getenv("AI_PROXY_DATA_DIR")
    if explicit:
        return Path(explicit).expanduser()
    xdg = os.getenv("XDG_DATA_HOME")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".local" / "share"
    return base / DEFAULT_APP_NAME


class Settings(BaseModel):
    """Application settings with lightweight env fallbacks."""

    # App metadata
    app_version: str = Field(default=DEFAULT_APP_VERSION)

    # LLM endpoint
    model: str = Field(default_factory=lambda: os.getenv("MODEL", DEFAULT_MODEL))
    api_base: Optional[str] = Field(default_factory=lambda: os.getenv("API_BASE"))
    api_key: Optional[str] = Field(default_factory=lambda: os.getenv("API_KEY"))
    request_timeout_seconds: float = Field(default_factory=lambda: _env_float("LLM_TIMEOUT", 60.0))

    # Summarisation controls
    max_analysis_items: int = Field(default_factory=lambda: _env_int("MAX_ANALYSIS_ITEMS", 500))
    ambient_interval_seconds: int = Field(default_factory=lambda: _env_int("AMBIENT_INTERVAL", 30))
    page_content_max_chars: int = Field(default_factory=lambda: _env_int("PAGE_CONTENT_MAX_CHARS", 20000))

    # Proxy + storage
    data_dir: Path = Field(default_factory=_default_data_dir)
    squid_log_path: Path = Field(
        default_factory=lambda: Path(os.getenv("SQUID_LOG_PATH", "/tmp/squid_access.log"))
    )
    proxy_port: int = Field(default_factory=lambda: _env_int("PROXY_PORT", 8888))
    tail_poll_interval_seconds: float = Field(default_factory=lambda: _env_float("TAIL_POLL_INTERVAL", 0.1))

    @property
    def event_log_path(self) -> Path:
        return self.data_dir / LOG_FILE_NAME

    @property
    def summary_path(self) -> Path:
        return self.data_dir / SUMMARY_FILE_NAME

    @property
    def squid_config_path(self) -> Path:
        return self.data_dir / SQUID_CONFIG_NAME


def resolve_data_dir(settings: Settings) -> Path:
    """Create the data directory if needed and return it."""
    try:
        settings.data_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DataDirectoryError(f"Cannot create data directory {settings.data_dir}: {exc}") from exc
    if not os.access(settings.data_dir, os.W_OK):
        raise DataDirectoryError(f"Data directory {settings.data_dir} is not writable")
    return settings.data_dir


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
