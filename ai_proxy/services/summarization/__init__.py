"""Summarization service package."""

from .page_fetcher import PageFetchError, fetch_page_content
from .scheduler import AmbientScheduler
from .state import SummaryStore
from .summarizer import ActivitySummarizer, SummarizationFailed

__all__ = [
    "ActivitySummarizer",
    "AmbientScheduler",
    "PageFetchError",
    "SummarizationFailed",
    "SummaryStore",
    "fetch_page_content",
]
