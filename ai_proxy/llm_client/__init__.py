from .client import DEFAULT_TIMEOUT_SECONDS, LLMError, request_chat_completion

__all__ = ["DEFAULT_TIMEOUT_SECONDS", "LLMError", "request_chat_completion"]
