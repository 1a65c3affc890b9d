from __future__ import annotations

from dataclasses import dataclass
from textwrap import dedent
from typing import Any, Dict, List, Sequence

FETCH_PAGE_TOOL_NAME = "fetch_page_content"

NO_PRIOR_ANALYSIS = "None - this is the first analysis."


@dataclass(frozen=True)
class SummaryPrompt:
    system_prompt: str
    messages: List[Dict[str, Any]]


_SYSTEM_PROMPT = dedent(
    """
    You are an intelligent browsing behavior analyst. Your task is to analyze web traffic patterns
    and provide meaningful insights.

    **Current Analysis:**
    {previous}

    **Instructions:**
    1. **Identify Patterns:** Look for recurring domains, workflows, or user behaviors
    2. **Categorize Activity:** Group URLs by purpose (work, research, entertainment, shopping, etc.)
    3. **Extract Insights:** What can you infer about the user's current tasks or interests?
    4. **Update Summary:** Merge new insights with existing analysis, prioritizing recent activity
    5. **Be Concise:** Provide a focused summary that highlights key patterns and changes
    6. **Tool Use:** You have a tool `fetch_page_content` that you can use to get the content of a page.
       Use it if you think a page is particularly interesting or relevant to the user's activity.

    **Output Format:**
    - **Key Patterns:** Main browsing behaviors observed
    - **Current Focus:** What the user seems to be working on or interested in
    - **Notable Changes:** How activity has evolved from the previous summary

    Provide your analysis:
    """
).strip()


FETCH_PAGE_TOOL: Dict[str, Any] = {
    "type": "function",
    "function": {
        "name": FETCH_PAGE_TOOL_NAME,
        "description": "Fetches the content of a web page.",
        "parameters": {
            "type": "object",
            "properties": {
                "url": {
                    "type": "string",
                    "description": "The URL of the page to fetch.",
                }
            },
            "required": ["url"],
        },
    },
}


def _format_previous_summary(previous_summary: str) -> str:
    summary = (previous_summary or "").strip()
    return summary if summary else NO_PRIOR_ANALYSIS


def build_summarization_prompt(previous_summary: str, urls: Sequence[str]) -> SummaryPrompt:
    system_prompt = _SYSTEM_PROMPT.replace("{previous}", _format_previous_summary(previous_summary))
    content = "**New Activity:**\n" + "\n".join(urls)
    messages: List[Dict[str, Any]] = [{"role": "user", "content": content}]
    return SummaryPrompt(system_prompt=system_prompt, messages=messages)


def get_tool_schemas() -> List[Dict[str, Any]]:
    return [FETCH_PAGE_TOOL]


__all__ = [
    "FETCH_PAGE_TOOL",
    "FETCH_PAGE_TOOL_NAME",
    "NO_PRIOR_ANALYSIS",
    "SummaryPrompt",
    "build_summarization_prompt",
    "get_tool_schemas",
]
