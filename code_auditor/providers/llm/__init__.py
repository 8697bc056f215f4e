"""Factory helpers for chat endpoint clients."""
from __future__ import annotations

from .base import (
    HTTPChatLLMClient,
    LLMClient,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    LLMResponseError,
    LLMRetryExhaustedError,
    LLMTimeoutError,
    Message,
    ModelReply,
    RetryConfig,
    ToolCall,
)
from .ollama import DEFAULT_BASE_URL as OLLAMA_DEFAULT_BASE_URL, OllamaClient
from .openai_compat import DEFAULT_BASE_URL as OPENAI_COMPAT_DEFAULT_BASE_URL, OpenAICompatibleClient

_PROVIDER_MAP = {
    "ollama": {
        "client": OllamaClient,
        "default_base_url": OLLAMA_DEFAULT_BASE_URL,
    },
    "openai": {
        "client": OpenAICompatibleClient,
        "default_base_url": OPENAI_COMPAT_DEFAULT_BASE_URL,
    },
}


def create_client(
    provider: str,
    model: str,
    base_url: str | None = None,
    **client_kwargs,
) -> LLMClient:
    key = provider.lower()
    try:
        provider_entry = _PROVIDER_MAP[key]
    except KeyError as exc:
        raise ValueError(f"Unsupported LLM provider: {provider}") from exc

    init_kwargs = {k: v for k, v in client_kwargs.items() if k in {"api_key", "timeout", "retry_config"}}
    init_kwargs["base_url"] = base_url or provider_entry["default_base_url"]
    return provider_entry["client"](model=model, **init_kwargs)


__all__ = [
    "create_client",
    "HTTPChatLLMClient",
    "LLMClient",
    "LLMConnectionError",
    "LLMError",
    "LLMRateLimitError",
    "LLMResponseError",
    "LLMRetryExhaustedError",
    "LLMTimeoutError",
    "Message",
    "ModelReply",
    "OLLAMA_DEFAULT_BASE_URL",
    "OPENAI_COMPAT_DEFAULT_BASE_URL",
    "OllamaClient",
    "OpenAICompatibleClient",
    "RetryConfig",
    "ToolCall",
]
