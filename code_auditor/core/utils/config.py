"""Configuration loading utilities for the code auditor."""
from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Sequence

import yaml

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - fallback for <3.11
    import tomli as tomllib  # type: ignore

from code_auditor.core.errors import ConfigError
from code_auditor.core.utils.constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_EXCLUDE_PATTERNS,
    DEFAULT_EXTENSIONS,
    DEFAULT_MAX_CHUNK_LINES,
    DEFAULT_MAX_CONTEXT_MESSAGES,
    DEFAULT_MAX_FILES,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MODEL,
    DEFAULT_OLLAMA_URL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SESSION_TIMEOUT,
    DEFAULT_TEMPERATURE,
)
from code_auditor.core.utils.logger import get_logger

if TYPE_CHECKING:  # pragma: no cover
    from code_auditor.agent.config import AgentConfig

LOGGER = get_logger(__name__)

CONFIG_FILENAMES: tuple[str, ...] = (".code-auditor.toml", "code-auditor.toml", ".code-auditor.yaml")
DEFAULT_CONFIG_PATHS = (
    Path.home() / ".config" / "code-auditor" / "config.toml",
    Path.home() / ".config" / "code-auditor" / "config.yaml",
)
ENV_PREFIX = "CODE_AUDITOR_"

# Keys accepted inside the [model] table, mapped to Settings fields.
_MODEL_KEYS = {
    "name": "model",
    "model": "model",
    "ollama_url": "base_url",
    "url": "base_url",
    "base_url": "base_url",
    "provider": "provider",
    "api_key": "api_key",
    "temperature": "temperature",
    "timeout_seconds": "timeout_seconds",
    "request_timeout_seconds": "request_timeout_seconds",
    "max_retries": "max_retries",
    "single_call_mode": "single_call_mode",
    "max_context_messages": "max_context_messages",
}

_BOOL_FIELDS = {"single_call_mode", "structured_logging"}
_INT_FIELDS = {"max_files", "concurrency", "max_chunk_lines", "max_retries", "max_context_messages"}
_FLOAT_FIELDS = {"temperature", "timeout_seconds", "request_timeout_seconds"}
_LIST_FIELDS = {"extensions", "exclude"}


def find_config_in_parents(
    start_path: Path, config_name: str | Sequence[str] = CONFIG_FILENAMES
) -> Optional[Path]:
    """Search parent directories starting from ``start_path`` for configuration files."""

    if isinstance(config_name, str):
        candidate_names: tuple[str, ...] = (config_name,)
    else:
        candidate_names = tuple(config_name)

    current = start_path.resolve()
    if current.is_file():
        current = current.parent

    while True:
        for name in candidate_names:
            candidate = current / name
            if candidate.is_file():
                return candidate.resolve()
        if current.parent == current:
            break
        current = current.parent
    return None


@dataclass
class Settings:
    """Runtime configuration for the CLI."""

    provider: str = "ollama"
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_OLLAMA_URL
    api_key: Optional[str] = None
    temperature: float = DEFAULT_TEMPERATURE
    timeout_seconds: float = DEFAULT_SESSION_TIMEOUT
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT
    max_retries: int = 3
    single_call_mode: bool = False
    max_context_messages: int = DEFAULT_MAX_CONTEXT_MESSAGES
    max_files: int = DEFAULT_MAX_FILES
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    exclude: tuple[str, ...] = DEFAULT_EXCLUDE_PATTERNS
    concurrency: int = DEFAULT_CONCURRENCY
    max_chunk_lines: int = DEFAULT_MAX_CHUNK_LINES
    log_level: str = "INFO"
    structured_logging: bool = False
    source: Optional[Path] = None

    def merge(self, overrides: Mapping[str, Any]) -> "Settings":
        """Return a copy with every non-``None`` override applied."""
        known = {item.name for item in fields(self)}
        updates = {key: value for key, value in overrides.items() if key in known and value is not None}
        return replace(self, **_coerce(updates))

    def to_agent_config(self) -> "AgentConfig":
        from code_auditor.agent.config import AgentConfig

        return AgentConfig(
            endpoint_url=self.base_url,
            model_name=self.model,
            temperature=self.temperature,
            max_iterations=DEFAULT_MAX_ITERATIONS,
            timeout_seconds=self.timeout_seconds,
            single_call_mode=self.single_call_mode,
            max_context_messages=self.max_context_messages,
            request_timeout_seconds=self.request_timeout_seconds,
            max_retries=self.max_retries,
            concurrency=self.concurrency,
            max_chunk_lines=self.max_chunk_lines,
            provider=self.provider,
            api_key=self.api_key,
        )


def _cast_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in {"1", "true", "on", "yes", "y"}
    return bool(value)


def _split_list(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return tuple(filter(None, (item.strip() for item in value.split(","))))
    return tuple(str(item).strip() for item in value if str(item).strip())


def _coerce(data: Mapping[str, Any]) -> Dict[str, Any]:
    coerced: Dict[str, Any] = {}
    for key, value in data.items():
        try:
            if key in _BOOL_FIELDS:
                coerced[key] = _cast_bool(value)
            elif key in _INT_FIELDS:
                coerced[key] = int(value)
            elif key in _FLOAT_FIELDS:
                coerced[key] = float(value)
            elif key in _LIST_FIELDS:
                coerced[key] = _split_list(value)
            elif key == "source":
                coerced[key] = Path(value)
            else:
                coerced[key] = value
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid value for '{key}': {value!r}") from exc
    return coerced


def _flatten(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Collapse ``[model]``/``[analysis]``/``[logging]`` tables into flat setting names."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        key = key.replace("-", "_")
        if key == "model" and isinstance(value, Mapping):
            for inner, inner_value in value.items():
                inner = inner.replace("-", "_")
                flat[_MODEL_KEYS.get(inner, inner)] = inner_value
        elif key in {"analysis", "logging"} and isinstance(value, Mapping):
            for inner, inner_value in value.items():
                inner = inner.replace("-", "_")
                flat["log_level" if inner == "level" else inner] = inner_value
        elif key == "ollama_url":
            flat["base_url"] = value
        else:
            flat[key] = value
    return flat


def _load_from_file(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        if path.suffix in {".yaml", ".yml"}:
            with path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
        else:
            with path.open("rb") as handle:
                data = tomllib.load(handle)
    except (OSError, yaml.YAMLError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a table of settings")
    flat = _flatten(data)
    flat["source"] = path
    return flat


def _load_from_env(prefix: str = ENV_PREFIX) -> Dict[str, Any]:
    env: Dict[str, Any] = {}
    if os.environ.get("OLLAMA_URL"):
        env["base_url"] = os.environ["OLLAMA_URL"]
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        field = key[len(prefix) :].lower()
        if field in {"ollama_url", "url"}:
            field = "base_url"
        env[field] = value
    return env


def _build(data: Mapping[str, Any]) -> Settings:
    known = {item.name for item in fields(Settings)}
    for key in sorted(set(data) - known):
        LOGGER.debug("Ignoring unknown setting '%s'", key)
    return Settings(**_coerce({key: value for key, value in data.items() if key in known}))


def load_settings(explicit_path: Optional[Path] = None) -> Settings:
    """Load configuration, merging file and environment sources.

    An explicit path that cannot be parsed raises ``ConfigError``; a broken
    file found by the default search is logged and ignored.
    """

    file_data: Dict[str, Any] = {}
    if explicit_path:
        if not Path(explicit_path).is_file():
            raise ConfigError(f"Config file not found: {explicit_path}")
        file_data = _load_from_file(Path(explicit_path))
        LOGGER.info("Loaded config from %s", explicit_path)
    else:
        search_paths = []
        project_config = find_config_in_parents(Path.cwd(), CONFIG_FILENAMES)
        if project_config:
            search_paths.append(project_config)
        search_paths.extend(DEFAULT_CONFIG_PATHS)
        for candidate in search_paths:
            try:
                file_data = _load_from_file(candidate)
            except ConfigError as exc:
                LOGGER.warning("%s; using defaults", exc)
                file_data = {}
                break
            if file_data:
                LOGGER.info("Loaded config from %s", candidate)
                break

    merged: Dict[str, Any] = {**file_data, **_load_from_env()}
    return _build(merged)


def load_repo_settings(repo_path: Path) -> Optional[Settings]:
    """Return settings from a config file shipped at the repository root, if any."""
    for name in CONFIG_FILENAMES:
        candidate = repo_path / name
        if candidate.is_file():
            LOGGER.info("Found %s in repository", name)
            return _build({**_load_from_file(candidate), **_load_from_env()})
    return None


__all__ = [
    "CONFIG_FILENAMES",
    "Settings",
    "find_config_in_parents",
    "load_repo_settings",
    "load_settings",
]
