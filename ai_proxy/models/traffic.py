from __future__ import annotations

from datetime import datetime, timezone

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TrafficEvent(BaseModel):
    """One visited URL as stored in the event log."""

    model_config = ConfigDict(frozen=True)

    url: str
    ts: AwareDatetime = Field(default_factory=utc_now)


class SummaryState(BaseModel):
    """Persisted rolling summary of browsing activity."""

    text: str = ""
    updated: AwareDatetime = EPOCH

    @classmethod
    def empty(cls) -> "SummaryState":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.text


__all__ = ["EPOCH", "SummaryState", "TrafficEvent", "utc_now"]
