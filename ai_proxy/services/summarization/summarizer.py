"""Merge a batch of visited URLs into the rolling summary via the LLM."""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from ...config import Settings
from ...llm_client import DEFAULT_TIMEOUT_SECONDS, LLMError, request_chat_completion
from ...logging_config import logger
from .page_fetcher import PageFetchError, fetch_page_content
from .prompt_builder import FETCH_PAGE_TOOL_NAME, build_summarization_prompt, get_tool_schemas

CompletionFn = Callable[..., Awaitable[Dict[str, Any]]]
PageFetcher = Callable[[str], Awaitable[str]]


class SummarizationFailed(RuntimeError):
    """Raised when a summary could not be fully produced."""


@dataclass
class _ToolCall:
    """Parsed tool invocation from an LLM response."""

    identifier: Optional[str]
    name: str
    arguments: Dict[str, Any]


def _message_text(message: Dict[str, Any]) -> str:
    content = message.get("content")
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts = [part.get("text", "") for part in content if isinstance(part, dict)]
        return "".join(parts).strip()
    return ""


class ActivitySummarizer:
    """Runs the summarization exchange: one request plus at most one tool round."""

    def __init__(
        self,
        *,
        model: str,
        api_base: Optional[str],
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        completion: Optional[CompletionFn] = None,
        page_fetcher: Optional[PageFetcher] = None,
    ) -> None:
        if not api_base:
            raise ValueError("API base URL not configured. Set API_BASE or pass --api-base.")
        self.model = model
        self.api_base = api_base
        self.api_key = api_key
        self.timeout = timeout
        self.tool_schemas = get_tool_schemas()
        self._completion = completion or request_chat_completion
        self._page_fetcher = page_fetcher or fetch_page_content

    @classmethod
    def from_settings(cls, settings: Settings) -> "ActivitySummarizer":
        return cls(
            model=settings.model,
            api_base=settings.api_base,
            api_key=settings.api_key,
            timeout=settings.request_timeout_seconds,
            page_fetcher=partial(fetch_page_content, max_chars=settings.page_content_max_chars),
        )

    async def summarize(self, previous: str, urls: Sequence[str]) -> str:
        """Return the new summary text; may be empty if the model produced no text."""
        try:
            return await self._summarize(previous, urls)
        except SummarizationFailed:
            raise
        except (LLMError, PageFetchError) as exc:
            raise SummarizationFailed(str(exc)) from exc

    async def _summarize(self, previous: str, urls: Sequence[str]) -> str:
        prompt = build_summarization_prompt(previous, urls)
        messages: List[Dict[str, Any]] = list(prompt.messages)

        logger.info(
            "activity summarization started",
            extra={"model": self.model, "urls": len(urls), "has_previous": bool(previous)},
        )
        response = await self._make_llm_call(prompt.system_prompt, messages)
        assistant_message = self._extract_assistant_message(response)
        first_text = _message_text(assistant_message)

        raw_tool_calls = assistant_message.get("tool_calls") or []
        if not raw_tool_calls:
            return first_text

        # every raw call gets a tool message, or the follow-up request is rejected
        tool_calls = self._parse_tool_calls(raw_tool_calls)
        messages.append(
            {
                "role": "assistant",
                "content": assistant_message.get("content") or "",
                "tool_calls": raw_tool_calls,
            }
        )
        for tool_call in tool_calls:
            content = await self._execute_tool(tool_call)
            messages.append(
                {
                    "role": "tool",
                    "tool_call_id": tool_call.identifier or tool_call.name,
                    "content": content,
                }
            )

        # one follow-up round only; further tool requests are ignored
        follow_up = await self._make_llm_call(prompt.system_prompt, messages)
        follow_up_text = _message_text(self._extract_assistant_message(follow_up))
        return follow_up_text or first_text

    async def _make_llm_call(self, system_prompt: str, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        logger.debug(
            "summarizer calling LLM",
            extra={"model": self.model, "messages": len(messages)},
        )
        return await self._completion(
            model=self.model,
            messages=messages,
            system=system_prompt,
            base_url=self.api_base,
            api_key=self.api_key,
            tools=self.tool_schemas,
            tool_choice="auto",
            timeout=self.timeout,
        )

    def _extract_assistant_message(self, response: Any) -> Dict[str, Any]:
        if not isinstance(response, dict):
            raise LLMError("LLM response was not a JSON object")
        choices = response.get("choices") or []
        if not isinstance(choices, list) or not choices:
            raise LLMError("LLM response missing choices")
        choice = choices[0]
        if not isinstance(choice, dict):
            raise LLMError("LLM response choice was not an object")
        message = choice.get("message")
        if not isinstance(message, dict):
            raise LLMError("LLM response did not include an assistant message")
        return message

    def _parse_tool_calls(self, raw_tool_calls: Any) -> List[_ToolCall]:
        if not isinstance(raw_tool_calls, list):
            raise LLMError("LLM response tool_calls was not a list")
        parsed: List[_ToolCall] = []
        for raw in raw_tool_calls:
            if not isinstance(raw, dict):
                raise LLMError("LLM response tool call was not an object")
            function_block = raw.get("function") or {}
            if not isinstance(function_block, dict):
                raise LLMError("LLM response tool call function was not an object")
            name = function_block.get("name")
            if not isinstance(name, str) or not name:
                logger.warning("tool call without name", extra={"tool": raw})
                name = ""
            parsed.append(
                _ToolCall(
                    identifier=raw.get("id"),
                    name=name,
                    arguments=self._parse_tool_arguments(name, function_block.get("arguments")),
                )
            )
        return parsed

    def _parse_tool_arguments(self, name: str, raw_arguments: Any) -> Dict[str, Any]:
        if raw_arguments is None:
            return {}
        if isinstance(raw_arguments, dict):
            return raw_arguments
        if isinstance(raw_arguments, str):
            if not raw_arguments.strip():
                return {}
            try:
                decoded = json.loads(raw_arguments)
            except json.JSONDecodeError as exc:
                raise SummarizationFailed(f"Tool '{name}' arguments are not valid JSON: {exc}") from exc
            if isinstance(decoded, dict):
                return decoded
            raise SummarizationFailed(f"Tool '{name}' arguments were not an object")
        raise SummarizationFailed(f"Tool '{name}' arguments have unsupported type {type(raw_arguments).__name__}")

    async def _execute_tool(self, tool_call: _ToolCall) -> str:
        if not tool_call.name:
            return "Error: tool call is missing a function name"
        if tool_call.name != FETCH_PAGE_TOOL_NAME:
            logger.warning(f"Tool '{tool_call.name}' rejected (unknown tool)")
            return f"Error: unknown tool '{tool_call.name}'"

        url = tool_call.arguments.get("url")
        if not isinstance(url, str) or not url.strip():
            logger.warning(f"Tool '{tool_call.name}' rejected (missing url)")
            return "Error: missing required argument 'url'"

        content = await self._page_fetcher(url.strip())
        logger.info(f"Tool '{tool_call.name}' completed", extra={"url": url, "chars": len(content)})
        return content


__all__ = ["ActivitySummarizer", "SummarizationFailed"]
