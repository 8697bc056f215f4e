"""Abstractions shared by the chat endpoint clients."""
from __future__ import annotations

import json
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Protocol, Sequence, Tuple

import requests

from code_auditor.core.errors import TransportError
from code_auditor.core.utils.logger import get_logger

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class ToolCall:
    """Single tool invocation requested by the model."""

    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    call_id: str | None = None
    parse_error: str | None = None


@dataclass(frozen=True)
class Message:
    role: str
    content: str | None = None
    tool_call_id: str | None = None
    tool_calls: Tuple[ToolCall, ...] = ()

    @property
    def call_ids(self) -> Tuple[str, ...]:
        return tuple(call.call_id for call in self.tool_calls if call.call_id)


@dataclass
class ModelReply:
    """Parsed outcome of one chat exchange."""

    content: str | None = None
    calls: List[ToolCall] = field(default_factory=list)
    raw_response: Dict[str, Any] | None = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.calls)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    initial_delay: float = 0.5
    max_delay: float = 5.0
    backoff_multiplier: float = 2.0
    jitter_ratio: float = 0.1
    retryable_status_codes: set[int] = field(default_factory=lambda: {429, 500, 502, 503, 504})


class LLMError(TransportError):
    """Raised when a chat endpoint encounters an error."""


class LLMRateLimitError(LLMError):
    """Raised when the endpoint reports a rate limit condition."""


class LLMTimeoutError(LLMError):
    """Raised when a request times out before the endpoint responds."""


class LLMConnectionError(LLMError):
    """Raised when the client is unable to reach the endpoint."""


class LLMResponseError(LLMError):
    """Raised when the endpoint returns a malformed or error response."""


class LLMRetryExhaustedError(LLMError):
    """Raised when retry attempts are exhausted without success."""


class LLMClient(Protocol):
    """Protocol for chat clients used by the analysis agent."""

    model: str

    def chat(
        self,
        messages: Sequence[Message],
        tools: List[Dict[str, Any]] | None = None,
        *,
        temperature: float = 0.1,
    ) -> ModelReply:
        """Run one blocking chat exchange."""
        ...

    def configure_retry(self, retry_config: RetryConfig) -> None:
        ...

    def configure_timeout(self, timeout: float) -> None:
        ...


class HTTPChatLLMClient(ABC):
    """Common HTTP/JSON client functionality shared by endpoint implementations."""

    _CHAT_PATH = "/chat/completions"
    _MODELS_PATH = "/models"

    def __init__(
        self,
        provider_name: str,
        model: str,
        *,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 120.0,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._provider_name = provider_name
        self.model = model
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig()

    def configure_retry(self, retry_config: RetryConfig) -> None:
        """Configure retry behavior."""
        self.retry_config = retry_config

    def configure_timeout(self, timeout: float) -> None:
        """Configure the per-request timeout."""
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Request helpers
    # ------------------------------------------------------------------

    def _request_url(self, path: str | None = None) -> str:
        return f"{self.base_url}{path or self._CHAT_PATH}"

    def _build_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _error_from_status(self, status_code: int, response_text: str) -> LLMError:
        message = f"{self._provider_name} API error {status_code}: {response_text}"
        if status_code == 429:
            return LLMRateLimitError(message)
        if status_code in {408, 504}:
            return LLMTimeoutError(message)
        if status_code in {502, 503}:
            return LLMConnectionError(message)
        return LLMResponseError(message)

    def _calculate_delay(self, attempt: int) -> float:
        base_delay = min(
            self.retry_config.max_delay,
            self.retry_config.initial_delay * (self.retry_config.backoff_multiplier ** (attempt - 1)),
        )
        if base_delay <= 0:
            return 0.0
        jitter_ratio = max(0.0, self.retry_config.jitter_ratio)
        if jitter_ratio == 0:
            return base_delay
        jitter_span = base_delay * jitter_ratio
        lower = max(0.0, base_delay - jitter_span)
        upper = base_delay + jitter_span
        return random.uniform(lower, upper)

    def _wrap_transport_error(self, exc: Exception) -> LLMError:
        if isinstance(exc, requests.Timeout):
            return LLMTimeoutError(f"{self._provider_name} request timed out: {exc}")
        return LLMConnectionError(f"{self._provider_name} connection failed: {exc}")

    def _decode_json(self, response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise LLMResponseError(f"Invalid JSON response from {self._provider_name} API") from exc
        if not isinstance(data, dict):
            raise LLMResponseError(f"Unexpected {self._provider_name} response type: {type(data).__name__}")
        return data

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = self._request_url()
        headers = self._build_headers()
        body = json.dumps(payload)
        attempts = max(1, self.retry_config.max_retries)
        last_error: LLMError | None = None

        for attempt in range(1, attempts + 1):
            try:
                response = requests.post(
                    url,
                    headers=headers,
                    data=body,
                    timeout=self.timeout,
                )

                if response.status_code in self.retry_config.retryable_status_codes:
                    error = self._error_from_status(response.status_code, response.text)
                    last_error = error
                    if attempt == attempts:
                        raise LLMRetryExhaustedError(
                            f"{self._provider_name} request exhausted retries: {error}"
                        ) from error
                    LOGGER.warning("%s (attempt %d/%d), retrying", error, attempt, attempts)
                    time.sleep(self._calculate_delay(attempt))
                    continue

                if response.status_code >= 400:
                    raise self._error_from_status(response.status_code, response.text)

                return self._decode_json(response)

            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = self._wrap_transport_error(exc)
                if attempt == attempts:
                    raise last_error from exc
                LOGGER.warning("%s (attempt %d/%d), retrying", last_error, attempt, attempts)
                time.sleep(self._calculate_delay(attempt))
            except requests.RequestException as exc:
                raise LLMResponseError(f"{self._provider_name} request failed: {exc}") from exc

        raise LLMRetryExhaustedError(
            f"{self._provider_name} request failed after {attempts} attempts: {last_error}"
        ) from last_error

    def list_models(self) -> List[str]:
        """Return the model names advertised by the endpoint."""
        try:
            response = requests.get(
                self._request_url(self._MODELS_PATH),
                headers=self._build_headers(),
                timeout=min(self.timeout, 10.0),
            )
        except requests.RequestException as exc:
            raise self._wrap_transport_error(exc) from exc
        if response.status_code >= 400:
            raise self._error_from_status(response.status_code, response.text)
        return self._parse_model_names(self._decode_json(response))

    def check_health(self) -> bool:
        """Return True when the endpoint answers and knows the configured model."""
        try:
            names = self.list_models()
        except LLMError as exc:
            LOGGER.debug("Health probe failed: %s", exc)
            return False
        if not names:
            return True
        return any(name == self.model or name.split(":")[0] == self.model.split(":")[0] for name in names)

    # ------------------------------------------------------------------
    # High level API
    # ------------------------------------------------------------------

    @abstractmethod
    def _prepare_payload(
        self,
        messages: Sequence[Message],
        tools: List[Dict[str, Any]] | None,
        temperature: float,
    ) -> Dict[str, Any]:
        """Return the endpoint-specific request payload."""

    @abstractmethod
    def _parse_reply(self, data: Dict[str, Any]) -> ModelReply:
        """Convert a decoded response body into a ModelReply."""

    @abstractmethod
    def _parse_model_names(self, data: Dict[str, Any]) -> List[str]:
        """Extract model names from a model listing response."""

    def chat(
        self,
        messages: Sequence[Message],
        tools: List[Dict[str, Any]] | None = None,
        *,
        temperature: float = 0.1,
    ) -> ModelReply:
        payload = self._prepare_payload(messages, tools, temperature)
        LOGGER.debug(
            "Sending %d messages to %s (tools=%d)",
            len(messages),
            self._provider_name,
            len(tools or ()),
        )
        data = self._post(payload)
        reply = self._parse_reply(data)
        reply.raw_response = data
        return reply

    # ------------------------------------------------------------------
    # Response parsing helpers
    # ------------------------------------------------------------------

    def _parse_tool_calls(self, tool_calls_raw: Iterable[Dict[str, Any]]) -> List[ToolCall]:
        parsed: List[ToolCall] = []
        for call in tool_calls_raw:
            if not isinstance(call, dict):
                parsed.append(ToolCall(name="", parse_error="tool call is not an object"))
                continue
            function_data = call.get("function") or {}
            if not isinstance(function_data, dict):
                parsed.append(ToolCall(name="", call_id=call.get("id"), parse_error="function is not an object"))
                continue
            name = str(function_data.get("name") or "")
            raw_args = function_data.get("arguments")
            arguments, error = _decode_arguments(raw_args)
            parsed.append(
                ToolCall(
                    name=name,
                    arguments=arguments,
                    call_id=call.get("id"),
                    parse_error=error,
                )
            )
        return parsed


def _decode_arguments(raw_args: Any) -> tuple[Dict[str, Any], str | None]:
    if raw_args is None or raw_args == "":
        return {}, None
    if isinstance(raw_args, dict):
        return raw_args, None
    if isinstance(raw_args, str):
        try:
            decoded = json.loads(raw_args)
        except json.JSONDecodeError as exc:
            return {}, f"arguments are not valid JSON: {exc.msg}"
        if isinstance(decoded, dict):
            return decoded, None
    return {}, "arguments must be a JSON object"


__all__ = [
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
    "RetryConfig",
    "ToolCall",
]
