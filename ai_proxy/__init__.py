"""Local proxy traffic logger with rolling LLM summaries."""

from .config import DEFAULT_APP_VERSION as __version__

__all__ = ["__version__"]
