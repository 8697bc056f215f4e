"""Tools through which the model reports findings and ends the review."""
from __future__ import annotations

from typing import Any, Mapping

from pydantic import ValidationError

from code_auditor.analysis.issues import coerce_raw_issue
from code_auditor.core.errors import ToolExecutionError

from .names import FINISH, REPORT_ISSUE
from .registry import SCHEMA_DIR, ToolContext, ToolSpec, registry


def _report_issue(payload: Mapping[str, Any], context: ToolContext) -> str:
    try:
        raw = coerce_raw_issue(payload)
    except ValidationError as exc:
        raise ToolExecutionError(f"report_issue arguments are invalid: {exc.error_count()} field error(s)") from exc
    context.pending_issues.append(raw)
    location = raw.file_path or "unknown"
    if raw.line_number:
        location = f"{location}:{raw.line_number}"
    return f"Issue recorded: {raw.title or 'untitled'} ({location}). Continue the review or call finish."


def _finish(payload: Mapping[str, Any], context: ToolContext) -> str:
    summary = (payload.get("summary") or "").strip()
    if summary:
        context.extra["summary"] = summary
    return "Review finished."


registry.register(
    ToolSpec(
        name=REPORT_ISSUE,
        handler=_report_issue,
        schema_path=SCHEMA_DIR / "report_issue.json",
        description=(
            "Report one concrete problem found in the code. Call once per issue with the file, "
            "line, severity (critical, high, medium or low), category, title, description and "
            "an optional suggestion."
        ),
    )
)

registry.register(
    ToolSpec(
        name=FINISH,
        handler=_finish,
        schema_path=SCHEMA_DIR / "finish.json",
        description="Signal that the review is complete. No further tool calls will be processed.",
    )
)
