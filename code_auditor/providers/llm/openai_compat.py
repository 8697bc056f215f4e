"""Client for OpenAI-compatible ``/chat/completions`` endpoints."""
from __future__ import annotations

import json
import random  # noqa: F401 - used for monkeypatch compatibility in tests
from typing import Any, Dict, List, Sequence

from .base import HTTPChatLLMClient, LLMResponseError, Message, ModelReply, RetryConfig

DEFAULT_BASE_URL = "http://localhost:11434/v1"


class OpenAICompatibleClient(HTTPChatLLMClient):
    """Chat-completions client for gateways that speak the OpenAI wire format."""

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
            "OpenAI-compatible",
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
            "temperature": temperature,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        return payload

    def _parse_reply(self, data: Dict[str, Any]) -> ModelReply:
        try:
            message = data["choices"][0]["message"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMResponseError("Unexpected OpenAI-compatible response structure") from exc
        content = message.get("content")
        return ModelReply(
            content=content.strip() if isinstance(content, str) else None,
            calls=self._parse_tool_calls(message.get("tool_calls") or []),
        )

    def _parse_model_names(self, data: Dict[str, Any]) -> List[str]:
        return [str(entry.get("id")) for entry in data.get("data") or [] if entry.get("id")]


def _message_payload(message: Message) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"role": message.role}
    if message.content is not None:
        payload["content"] = message.content
    if message.tool_calls:
        payload["tool_calls"] = [
            {
                "id": call.call_id,
                "type": "function",
                "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
            }
            for call in message.tool_calls
        ]
    if message.tool_call_id is not None:
        payload["tool_call_id"] = message.tool_call_id
    return payload


__all__ = ["OpenAICompatibleClient", "DEFAULT_BASE_URL"]
