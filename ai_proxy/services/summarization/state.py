from __future__ import annotations

import os
import threading
from pathlib import Path

from pydantic import ValidationError

from ...logging_config import logger
from ...models import SummaryState


class SummaryStore:
    """Single JSON file holding the rolling summary, replaced atomically on save."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> SummaryState:
        """Return the stored state, or an empty state if it is missing or unreadable."""
        with self._lock:
            try:
                data = self._path.read_bytes()
            except FileNotFoundError:
                return SummaryState.empty()
            except OSError as exc:
                logger.warning(
                    "summary state read failed",
                    extra={"error": str(exc), "path": str(self._path)},
                )
                return SummaryState.empty()

        try:
            return SummaryState.model_validate_json(data)
        except ValidationError as exc:
            logger.warning(
                "summary state unreadable; starting fresh",
                extra={"error": str(exc), "path": str(self._path)},
            )
            return SummaryState.empty()

    def save(self, state: SummaryState) -> None:
        """Write *state* to a temp file and rename it over the canonical path."""
        data = state.model_dump_json(indent=2)
        temp_path = self._path.with_suffix(".tmp")
        with self._lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with temp_path.open("w", encoding="utf-8") as handle:
                    handle.write(data)
                    handle.flush()
                    os.fsync(handle.fileno())
                temp_path.replace(self._path)
            except OSError as exc:
                logger.error(
                    "summary state write failed",
                    extra={"error": str(exc), "path": str(self._path)},
                )
                raise
            finally:
                if temp_path.exists():
                    try:
                        temp_path.unlink()
                    except OSError:  # pragma: no cover - cleanup only
                        pass


__all__ = ["SummaryStore"]
