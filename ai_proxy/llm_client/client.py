from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx

DEFAULT_TIMEOUT_SECONDS = 60.0


class LLMError(RuntimeError):
    """Raised when the chat-completion endpoint fails or returns an error response."""


def _headers(*, api_key: Optional[str] = None) -> Dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
    key = (api_key or "").strip()
    if key:
        headers["Authorization"] = f"Bearer {key}"
    return headers


def _build_messages(messages: List[Dict[str, Any]], system: Optional[str]) -> List[Dict[str, Any]]:
    if system:
        return [{"role": "system", "content": system}, *messages]
    return messages


def _handle_response_error(exc: httpx.HTTPStatusError) -> None:
    response = exc.response
    detail: str
    try:
        payload = response.json()
        error = payload.get("error") or payload.get("message") or payload
        if isinstance(error, dict):
            error = error.get("message") or json.dumps(error)
        detail = str(error)
    except (ValueError, AttributeError):
        detail = response.text
    raise LLMError(f"LLM request failed ({response.status_code}): {detail}") from exc


async def request_chat_completion(
    *,
    model: str,
    messages: List[Dict[str, Any]],
    base_url: str,
    system: Optional[str] = None,
    api_key: Optional[str] = None,
    tools: Optional[List[Dict[str, Any]]] = None,
    tool_choice: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """Request a chat completion and return the raw JSON payload."""

    if not base_url:
        raise LLMError("Missing API base URL")

    payload: Dict[str, object] = {
        "model": model,
        "messages": _build_messages(messages, system),
        "stream": False,
    }
    if tools:
        payload["tools"] = tools
        if tool_choice:
            payload["tool_choice"] = tool_choice

    url = f"{base_url.rstrip('/')}/chat/completions"

    async with httpx.AsyncClient(transport=transport) as client:
        try:
            response = await client.post(
                url,
                headers=_headers(api_key=api_key),
                json=payload,
                timeout=timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            _handle_response_error(exc)
        except httpx.HTTPError as exc:
            raise LLMError(f"LLM request failed: {exc}") from exc

    try:
        data = response.json()
    except ValueError as exc:
        raise LLMError("LLM response was not valid JSON") from exc
    if not isinstance(data, dict):
        raise LLMError("LLM response was not a JSON object")
    return data


__all__ = ["LLMError", "request_chat_completion", "DEFAULT_TIMEOUT_SECONDS"]
