"""Client for the Ollama native chat API."""
from __future__ import annotations

import random  # noqa: F401 - used for monkeypatch compatibility in tests
from typing import Any, Dict, List, Sequence

from .base import HTTPChatLLMClient, LLMResponseError, Message, ModelReply, RetryConfig

DEFAULT_BASE_URL = "http://localhost:11434"


class OllamaClient(HTTPChatLLMClient):
    """Non-streaming ``/api/chat`` client with tool-calling support."""

    _CHAT_PATH = "/api/chat"
    _MODELS_PATH = "/api/tags"

    def __init__(
        self,
        model: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        api_key: str | None = None,
        timeout: float = 120.0,
        retry_config: RetryConfig | None = None,
    ) -> None:
        super().__init__(
            "Ollama",
            model,
            base_url=base_url,
            api_key=api_key,
            timeout=timeout,
            retry_config=retry_config,
        )

    def _prepare_payload(
        self,
        messages: Sequence[Message],
        tools: List[Dict[str, Any]] | None,
        temperature: float,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [_message_payload(message) for message in messages],
            "stream": False,
            "options": {"temperature": temperature},
        }
        if tools:
            payload["tools"] = tools
        return payload

    def _parse_reply(self, data: Dict[str, Any]) -> ModelReply:
        if data.get("error"):
            raise LLMResponseError(f"Ollama reported an error: {data['error']}")
        message = data.get("message")
        if not isinstance(message, dict):
            raise LLMResponseError("Unexpected Ollama response structure: missing 'message'")
        content = message.get("content")
        return ModelReply(
            content=content.strip() if isinstance(content, str) else None,
            calls=self._parse_tool_calls(message.get("tool_calls") or []),
        )

    def _parse_model_names(self, data: Dict[str, Any]) -> List[str]:
        return [str(entry.get("name")) for entry in data.get("models") or [] if entry.get("name")]


def _message_payload(message: Message) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"role": message.role, "content": message.content or ""}
    if message.tool_calls:
        payload["tool_calls"] = [
            {"function": {"name": call.name, "arguments": call.arguments}}
            for call in message.tool_calls
        ]
    if message.tool_call_id is not None:
        payload["tool_call_id"] = message.tool_call_id
    return payload


__all__ = ["OllamaClient", "DEFAULT_BASE_URL"]
