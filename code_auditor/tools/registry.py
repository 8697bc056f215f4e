"""Tool registry and validation helpers."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping

from jsonschema import Draft7Validator

from code_auditor.analysis.issues import RawModelIssue
from code_auditor.core.errors import ToolExecutionError
from code_auditor.core.utils.logger import get_logger

LOGGER = get_logger(__name__)

SCHEMA_DIR = Path(__file__).resolve().parent / "schemas"


@dataclass
class ToolContext:
    """Runtime context passed to tool handlers."""

    repo_root: Path
    pending_issues: List[RawModelIssue] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolSpec:
    """Metadata for a registered tool."""

    name: str
    handler: Callable[[Mapping[str, Any], ToolContext], str]
    schema_path: Path
    description: str = ""

    @property
    def parameters(self) -> Dict[str, Any]:
        schema = dict(_load_schema(self.schema_path))
        schema.pop("$schema", None)
        return schema

    def to_function_schema(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolRegistry:
    """Registry that manages tool specifications and argument validation."""

    def __init__(self) -> None:
        self._tools: Dict[str, ToolSpec] = {}

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            LOGGER.debug("Overwriting existing tool registration for %s", spec.name)
        self._tools[spec.name] = spec

    def get(self, name: str) -> ToolSpec:
        if name not in self._tools:
            raise KeyError(f"Tool '{name}' is not registered")
        return self._tools[name]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def available(self) -> Iterable[str]:
        return sorted(self._tools.keys())

    def function_schemas(self) -> List[Dict[str, Any]]:
        """Return the tool list in the function-calling format sent to the model."""
        return [self._tools[name].to_function_schema() for name in self.available()]

    def invoke(self, name: str, payload: Mapping[str, Any], context: ToolContext) -> str:
        spec = self.get(name)
        validator = _load_validator(spec.schema_path)
        errors = sorted(validator.iter_errors(dict(payload)), key=lambda exc: list(exc.path))
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.path)
            detail = f"{location}: {first.message}" if location else first.message
            raise ToolExecutionError(f"Invalid arguments for {name}: {detail}")
        return spec.handler(payload, context)


@lru_cache(maxsize=32)
def _load_schema(schema_path: Path) -> Dict[str, Any]:
    with schema_path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


@lru_cache(maxsize=32)
def _load_validator(schema_path: Path) -> Draft7Validator:
    return Draft7Validator(_load_schema(schema_path))


# Global registry instance -------------------------------------------------

registry = ToolRegistry()


__all__ = ["SCHEMA_DIR", "ToolContext", "ToolSpec", "ToolRegistry", "registry"]
