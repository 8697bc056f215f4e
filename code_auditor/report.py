"""Report models and their Markdown/JSON renderings."""
from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from code_auditor.agent.state import AnalysisResult
from code_auditor.analysis.issues import ReportedIssue, Severity
from code_auditor.scanner import language_for

SEVERITY_ICONS: Dict[Severity, str] = {
    Severity.CRITICAL: "🔴",
    Severity.HIGH: "🟠",
    Severity.MEDIUM: "🟡",
    Severity.LOW: "🟢",
}

DEFAULT_RECOMMENDATIONS = (
    "Review all reported issues and prioritize by severity.",
    "Address critical and high severity issues first.",
)


class IssueSummary(BaseModel):
    total: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    by_category: Dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_issues(cls, issues: Sequence[ReportedIssue]) -> "IssueSummary":
        summary = cls(total=len(issues))
        for issue in issues:
            attr = issue.severity.value.lower()
            setattr(summary, attr, getattr(summary, attr) + 1)
            summary.by_category[issue.category] = summary.by_category.get(issue.category, 0) + 1
        return summary


class AnalyzedFile(BaseModel):
    path: str
    language: str = "Unknown"
    issues: List[ReportedIssue] = Field(default_factory=list)


class ReportMetadata(BaseModel):
    repo_url: str
    analysis_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    model_used: str
    mode: str = "agentic"
    outcome: str
    files_analyzed: int = 0
    total_issues: int = 0
    iterations: int = 0
    model_calls: int = 0
    duration_seconds: float = 0.0


class Report(BaseModel):
    metadata: ReportMetadata
    project_overview: str = ""
    files: List[AnalyzedFile] = Field(default_factory=list)
    summary: IssueSummary = Field(default_factory=IssueSummary)
    warnings: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


def build_report(
    result: AnalysisResult,
    *,
    repo_url: str,
    model_used: str,
    mode: str,
    duration_seconds: Optional[float] = None,
) -> Report:
    """Group the findings of one run by file, most severe files first."""

    grouped: "OrderedDict[str, List[ReportedIssue]]" = OrderedDict()
    for issue in sorted(result.issues, key=lambda item: (item.file_path, item.line_number or 0)):
        grouped.setdefault(issue.file_path, []).append(issue)

    files = [
        AnalyzedFile(
            path=path,
            language=language_for(path),
            issues=sorted(issues, key=lambda item: (item.severity.rank, item.line_number or 0)),
        )
        for path, issues in grouped.items()
    ]
    files.sort(key=lambda entry: (min(issue.severity.rank for issue in entry.issues), entry.path))

    summary = IssueSummary.from_issues(result.issues)
    overview = result.summary or (
        "Analysis performed by an AI agent with tool-calling capabilities."
        if mode == "agentic"
        else "Analysis performed in a single model request covering all selected files."
    )
    recommendations = list(DEFAULT_RECOMMENDATIONS)
    if not result.is_complete:
        recommendations.append("The analysis stopped early; re-run it for full coverage.")

    return Report(
        metadata=ReportMetadata(
            repo_url=repo_url,
            model_used=model_used,
            mode=mode,
            outcome=result.outcome.value,
            files_analyzed=len(files),
            total_issues=summary.total,
            iterations=result.iterations,
            model_calls=result.model_calls,
            duration_seconds=round(duration_seconds if duration_seconds is not None else result.elapsed_seconds, 2),
        ),
        project_overview=overview,
        files=files,
        summary=summary,
        warnings=list(result.warnings),
        recommendations=recommendations,
    )


def generate_json_report(report: Report) -> str:
    return report.model_dump_json(indent=2)


def generate_markdown_report(report: Report) -> str:
    meta = report.metadata
    summary = report.summary
    lines: List[str] = [
        "# Code Audit Report",
        "",
        f"**Repository:** {meta.repo_url}  ",
        f"**Date:** {meta.analysis_date.strftime('%Y-%m-%d %H:%M:%S UTC')}  ",
        f"**Model:** {meta.model_used}  ",
        f"**Mode:** {meta.mode}  ",
        f"**Outcome:** {meta.outcome}  ",
        f"**Duration:** {meta.duration_seconds:.1f}s",
        "",
        "## Overview",
        "",
        report.project_overview,
        "",
        "## Summary",
        "",
        "| Severity | Count |",
        "|----------|-------|",
    ]
    for severity in Severity:
        lines.append(f"| {SEVERITY_ICONS[severity]} {severity.value} | {getattr(summary, severity.value.lower())} |")
    lines.append(f"| **Total** | **{summary.total}** |")
    lines.append("")

    if summary.by_category:
        lines.extend(["### By category", ""])
        for category, count in sorted(summary.by_category.items(), key=lambda item: (-item[1], item[0])):
            lines.append(f"- {category}: {count}")
        lines.append("")

    if report.warnings:
        lines.extend(["## Warnings", ""])
        lines.extend(f"- {warning}" for warning in report.warnings)
        lines.append("")

    lines.extend(["## Issues", ""])
    if not report.files:
        lines.extend(["No issues found.", ""])
    for entry in report.files:
        lines.extend([f"### `{entry.path}` ({entry.language})", ""])
        for issue in entry.issues:
            location = f"line {issue.line_number}" if issue.line_number else "location unknown"
            lines.append(f"#### {SEVERITY_ICONS[issue.severity]} {issue.title}")
            lines.append("")
            lines.append(f"*{issue.severity.value} · {issue.category} · {location}*")
            lines.append("")
            if issue.description:
                lines.extend([issue.description, ""])
            if issue.suggestion:
                lines.extend([f"**Suggestion:** {issue.suggestion}", ""])

    if report.recommendations:
        lines.extend(["## Recommendations", ""])
        lines.extend(f"{index}. {text}" for index, text in enumerate(report.recommendations, start=1))
        lines.append("")

    return "\n".join(lines)


__all__ = [
    "AnalyzedFile",
    "IssueSummary",
    "Report",
    "ReportMetadata",
    "build_report",
    "generate_json_report",
    "generate_markdown_report",
]
