"""Immutable per-session configuration of the analysis agent."""
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from code_auditor.core.utils.constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_MAX_CHUNK_LINES,
    DEFAULT_MAX_CONTEXT_MESSAGES,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MODEL,
    DEFAULT_OLLAMA_URL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SESSION_TIMEOUT,
    DEFAULT_TEMPERATURE,
)


class AgentConfig(BaseModel):
    """Settings the agent reads for the whole lifetime of one session."""

    model_config = ConfigDict(frozen=True)

    endpoint_url: str = DEFAULT_OLLAMA_URL
    model_name: str = Field(default=DEFAULT_MODEL, min_length=1)
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=1.0)
    max_iterations: int = Field(default=DEFAULT_MAX_ITERATIONS, gt=0)
    timeout_seconds: float = Field(default=DEFAULT_SESSION_TIMEOUT, gt=0)
    single_call_mode: bool = False
    max_context_messages: int = Field(default=DEFAULT_MAX_CONTEXT_MESSAGES, gt=0)
    request_timeout_seconds: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0)
    max_retries: int = Field(default=3, ge=1)
    concurrency: int = Field(default=DEFAULT_CONCURRENCY, gt=0)
    max_chunk_lines: int = Field(default=DEFAULT_MAX_CHUNK_LINES, gt=0)
    provider: Literal["ollama", "openai"] = "ollama"
    api_key: Optional[str] = Field(default=None, repr=False)

    @field_validator("endpoint_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("endpoint URL must start with 'http://' or 'https://'")
        return value.rstrip("/")


__all__ = ["AgentConfig"]
