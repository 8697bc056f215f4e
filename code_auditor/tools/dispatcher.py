"""Route model tool calls to the registered handlers."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from code_auditor.analysis.issues import RawModelIssue
from code_auditor.core.errors import MalformedResponseError, ToolExecutionError
from code_auditor.core.utils.constants import MAX_TOOL_OUTPUT_CHARS
from code_auditor.core.utils.logger import get_logger

from .names import ToolKind
from .registry import ToolContext, ToolRegistry, registry

LOGGER = get_logger(__name__)


class ToolDispatcher:
    """Execute tool calls against one repository on behalf of one session."""

    def __init__(
        self,
        repo_root: Path,
        *,
        pending_issues: Optional[List[RawModelIssue]] = None,
        tool_registry: ToolRegistry | None = None,
        max_output_chars: int = MAX_TOOL_OUTPUT_CHARS,
    ) -> None:
        self.registry = tool_registry or registry
        self.context = ToolContext(
            repo_root=Path(repo_root).resolve(),
            pending_issues=pending_issues if pending_issues is not None else [],
        )
        self.max_output_chars = max_output_chars

    def tool_schemas(self) -> List[Dict[str, Any]]:
        return self.registry.function_schemas()

    def kind_of(self, name: str | None) -> ToolKind:
        kind = ToolKind.from_name(name)
        if kind is not ToolKind.UNKNOWN and kind.value not in self.registry:
            return ToolKind.UNKNOWN
        return kind

    def execute(self, name: str, arguments: Mapping[str, Any]) -> str:
        """Run one tool and return its textual result.

        Raises ToolExecutionError for failures the model can correct and
        MalformedResponseError for names outside the known tool set.
        """
        kind = self.kind_of(name)
        if kind is ToolKind.UNKNOWN:
            raise MalformedResponseError(f"Unknown tool '{name}'")

        LOGGER.debug("Executing %s with %s", kind.value, dict(arguments))
        try:
            result = self.registry.invoke(kind.value, arguments, self.context)
        except ToolExecutionError as exc:
            LOGGER.info("Tool %s failed: %s", kind.value, exc)
            raise
        except OSError as exc:
            LOGGER.info("Tool %s failed with OS error: %s", kind.value, exc)
            raise ToolExecutionError(f"{kind.value} failed: {exc.strerror or exc}") from exc
        return self._clip(result)

    def _clip(self, text: str) -> str:
        if len(text) <= self.max_output_chars:
            return text
        omitted = len(text) - self.max_output_chars
        return text[: self.max_output_chars] + f"\n[... truncated: {omitted} characters omitted ...]"


__all__ = ["ToolDispatcher"]
