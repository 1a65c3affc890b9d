from .traffic import EPOCH, SummaryState, TrafficEvent, utc_now

__all__ = [
    "EPOCH",
    "SummaryState",
    "TrafficEvent",
    "utc_now",
]
