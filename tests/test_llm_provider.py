import json

import pytest
import requests

from code_auditor.core.errors import TransportError
from code_auditor.providers.llm import create_client
from code_auditor.providers.llm.base import (
    LLMConnectionError,
    LLMRateLimitError,
    LLMResponseError,
    LLMRetryExhaustedError,
    Message,
    RetryConfig,
    ToolCall,
)
from code_auditor.providers.llm.ollama import OllamaClient
from code_auditor.providers.llm.openai_compat import OpenAICompatibleClient


class _FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text or json.dumps(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def test_ollama_backoff_jitter_range(monkeypatch):
    config = RetryConfig(initial_delay=1.0, max_delay=10.0, backoff_multiplier=2.0, jitter_ratio=0.25)
    client = OllamaClient(model="demo", retry_config=config)

    captured = {}

    def fake_uniform(low: float, high: float) -> float:
        captured["low"] = low
        captured["high"] = high
        return high

    monkeypatch.setattr("code_auditor.providers.llm.ollama.random.uniform", fake_uniform)

    delay = client._calculate_delay(3)

    assert delay == pytest.approx(5.0)
    assert captured["low"] == pytest.approx(3.0)
    assert captured["high"] == pytest.approx(5.0)


def test_delay_capped_by_max_delay():
    config = RetryConfig(initial_delay=1.0, max_delay=2.0, backoff_multiplier=10.0, jitter_ratio=0.0)
    client = OllamaClient(model="demo", retry_config=config)

    assert client._calculate_delay(1) == pytest.approx(1.0)
    assert client._calculate_delay(4) == pytest.approx(2.0)


def test_error_mapping():
    client = OllamaClient(model="demo")

    assert isinstance(client._error_from_status(429, "Too Many Requests"), LLMRateLimitError)
    assert isinstance(client._error_from_status(503, "Unavailable"), LLMConnectionError)
    assert isinstance(client._error_from_status(500, "Server error"), LLMResponseError)
    assert issubclass(LLMResponseError, TransportError)


def test_post_retries_retryable_status_then_succeeds(monkeypatch):
    client = OllamaClient(model="demo", retry_config=RetryConfig(max_retries=3, jitter_ratio=0.0))
    responses = [
        _FakeResponse(503, text="busy"),
        _FakeResponse(200, {"message": {"role": "assistant", "content": "ok"}}),
    ]
    calls = []
    sleeps = []

    def fake_post(url, headers=None, data=None, timeout=None):
        calls.append((url, json.loads(data), timeout))
        return responses.pop(0)

    monkeypatch.setattr("code_auditor.providers.llm.base.requests.post", fake_post)
    monkeypatch.setattr("code_auditor.providers.llm.base.time.sleep", sleeps.append)

    reply = client.chat([Message(role="user", content="hi")], temperature=0.3)

    assert reply.content == "ok"
    assert len(calls) == 2
    assert calls[0][0] == "http://localhost:11434/api/chat"
    assert calls[0][1]["stream"] is False
    assert calls[0][1]["options"] == {"temperature": 0.3}
    assert sleeps == [pytest.approx(0.5)]


def test_post_exhausts_retries(monkeypatch):
    client = OllamaClient(model="demo", retry_config=RetryConfig(max_retries=2, jitter_ratio=0.0))
    attempts = []

    def fake_post(url, headers=None, data=None, timeout=None):
        attempts.append(url)
        return _FakeResponse(500, text="boom")

    monkeypatch.setattr("code_auditor.providers.llm.base.requests.post", fake_post)
    monkeypatch.setattr("code_auditor.providers.llm.base.time.sleep", lambda _delay: None)

    with pytest.raises(LLMRetryExhaustedError):
        client.chat([Message(role="user", content="hi")])
    assert len(attempts) == 2


def test_post_wraps_connection_errors(monkeypatch):
    client = OllamaClient(model="demo", retry_config=RetryConfig(max_retries=2, jitter_ratio=0.0))

    def fake_post(url, headers=None, data=None, timeout=None):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr("code_auditor.providers.llm.base.requests.post", fake_post)
    monkeypatch.setattr("code_auditor.providers.llm.base.time.sleep", lambda _delay: None)

    with pytest.raises(LLMConnectionError):
        client.chat([Message(role="user", content="hi")])


def test_client_error_is_not_retried(monkeypatch):
    client = OllamaClient(model="demo")
    attempts = []

    def fake_post(url, headers=None, data=None, timeout=None):
        attempts.append(url)
        return _FakeResponse(404, text="model not found")

    monkeypatch.setattr("code_auditor.providers.llm.base.requests.post", fake_post)

    with pytest.raises(LLMResponseError, match="model not found"):
        client.chat([Message(role="user", content="hi")])
    assert len(attempts) == 1


def test_ollama_tool_call_parsing(monkeypatch):
    client = OllamaClient(model="demo")
    captured = {}

    def fake_post(payload):
        captured.update(payload)
        return {
            "message": {
                "role": "assistant",
                "content": "  Reading the entry point  ",
                "tool_calls": [
                    {"function": {"name": "read_file", "arguments": {"path": "src/main.rs"}}},
                    {"function": {"name": "search_code", "arguments": "{\"pattern\": \"unwrap\"}"}},
                ],
            }
        }

    monkeypatch.setattr(client, "_post", fake_post)

    tools = [{"type": "function", "function": {"name": "read_file", "parameters": {"type": "object"}}}]
    reply = client.chat([Message(role="user", content="review")], tools)

    assert captured["tools"] == tools
    assert reply.content == "Reading the entry point"
    assert [call.name for call in reply.calls] == ["read_file", "search_code"]
    assert reply.calls[0].arguments == {"path": "src/main.rs"}
    assert reply.calls[1].arguments == {"pattern": "unwrap"}
    assert all(call.parse_error is None for call in reply.calls)


def test_invalid_arguments_are_flagged_not_raised(monkeypatch):
    client = OllamaClient(model="demo")

    monkeypatch.setattr(
        client,
        "_post",
        lambda payload: {
            "message": {
                "content": "",
                "tool_calls": [
                    {"function": {"name": "read_file", "arguments": "{not json"}},
                    {"function": {"name": "read_file", "arguments": "[1, 2]"}},
                ],
            }
        },
    )

    reply = client.chat([Message(role="user", content="review")])

    assert reply.calls[0].parse_error.startswith("arguments are not valid JSON")
    assert reply.calls[1].parse_error == "arguments must be a JSON object"
    assert reply.calls[0].arguments == {}


def test_non_object_function_entry_is_flagged(monkeypatch):
    client = OllamaClient(model="demo")
    monkeypatch.setattr(
        client,
        "_post",
        lambda payload: {"message": {"content": "", "tool_calls": [{"function": "read_file"}, {"function": ["x"]}]}},
    )

    reply = client.chat([Message(role="user", content="review")])

    assert [call.name for call in reply.calls] == ["", ""]
    assert all(call.parse_error == "function is not an object" for call in reply.calls)


def test_ollama_error_body_raises(monkeypatch):
    client = OllamaClient(model="demo")
    monkeypatch.setattr(client, "_post", lambda payload: {"error": "model 'demo' not found"})

    with pytest.raises(LLMResponseError, match="not found"):
        client.chat([Message(role="user", content="hi")])


def test_ollama_serializes_tool_history():
    client = OllamaClient(model="demo")
    call = ToolCall(name="read_file", arguments={"path": "a.py"}, call_id="call_1_0")
    payload = client._prepare_payload(
        [
            Message(role="assistant", content="", tool_calls=(call,)),
            Message(role="tool", content="1 | x = 1", tool_call_id="call_1_0"),
        ],
        None,
        0.1,
    )

    assistant, tool = payload["messages"]
    assert assistant["tool_calls"] == [{"function": {"name": "read_file", "arguments": {"path": "a.py"}}}]
    assert tool == {"role": "tool", "content": "1 | x = 1", "tool_call_id": "call_1_0"}
    assert "tools" not in payload


def test_openai_compatible_round_trip(monkeypatch):
    client = OpenAICompatibleClient(model="demo", api_key="secret")
    captured = {}

    def fake_post(payload):
        captured.update(payload)
        return {
            "choices": [
                {
                    "message": {
                        "content": None,
                        "tool_calls": [
                            {
                                "id": "abc",
                                "type": "function",
                                "function": {"name": "finish", "arguments": "{\"summary\": \"done\"}"},
                            }
                        ],
                    }
                }
            ]
        }

    monkeypatch.setattr(client, "_post", fake_post)

    call = ToolCall(name="read_file", arguments={"path": "a.py"}, call_id="call_1_0")
    reply = client.chat(
        [Message(role="assistant", tool_calls=(call,)), Message(role="tool", content="ok", tool_call_id="call_1_0")],
        [{"type": "function", "function": {"name": "finish"}}],
        temperature=0.0,
    )

    sent_call = captured["messages"][0]["tool_calls"][0]
    assert json.loads(sent_call["function"]["arguments"]) == {"path": "a.py"}
    assert captured["tool_choice"] == "auto"
    assert captured["temperature"] == 0.0
    assert client._build_headers()["Authorization"] == "Bearer secret"
    assert reply.content is None
    assert reply.calls == [ToolCall(name="finish", arguments={"summary": "done"}, call_id="abc")]


def test_openai_compatible_bad_structure(monkeypatch):
    client = OpenAICompatibleClient(model="demo")
    monkeypatch.setattr(client, "_post", lambda payload: {"choices": []})

    with pytest.raises(LLMResponseError):
        client.chat([Message(role="user", content="hi")])


def test_check_health_matches_model_family(monkeypatch):
    client = OllamaClient(model="deepseek-coder:33b")

    def fake_get(url, headers=None, timeout=None):
        assert url.endswith("/api/tags")
        return _FakeResponse(200, {"models": [{"name": "deepseek-coder:6.7b"}, {"name": "llama3:8b"}]})

    monkeypatch.setattr("code_auditor.providers.llm.base.requests.get", fake_get)

    assert client.list_models() == ["deepseek-coder:6.7b", "llama3:8b"]
    assert client.check_health() is True


def test_check_health_false_when_unreachable(monkeypatch):
    client = OllamaClient(model="demo")

    def fake_get(url, headers=None, timeout=None):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr("code_auditor.providers.llm.base.requests.get", fake_get)

    assert client.check_health() is False


def test_create_client_factory():
    retry = RetryConfig(max_retries=5)
    ollama = create_client("ollama", "demo", retry_config=retry, timeout=30.0, unknown="ignored")
    openai = create_client("OpenAI", "demo", "http://gateway:8080/v1/")

    assert isinstance(ollama, OllamaClient)
    assert ollama.retry_config is retry
    assert ollama.timeout == 30.0
    assert ollama.base_url == "http://localhost:11434"
    assert isinstance(openai, OpenAICompatibleClient)
    assert openai.base_url == "http://gateway:8080/v1"

    with pytest.raises(ValueError, match="Unsupported LLM provider"):
        create_client("unknown", "demo")
