"""Issue records and the normalization from raw model findings."""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from code_auditor.core.errors import MalformedResponseError
from code_auditor.core.utils.constants import (
    DEFAULT_CATEGORY,
    MAX_TITLE_LENGTH,
    UNKNOWN_FILE,
    UNTITLED_ISSUE,
)
from code_auditor.core.utils.logger import get_logger

LOGGER = get_logger(__name__)

JSON_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(?P<body>.*?)\s*```", re.DOTALL | re.IGNORECASE)
_LEADING_INT = re.compile(r"^\s*(\d+)")


class Severity(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @classmethod
    def from_label(cls, label: Any) -> "Severity":
        """Match a free-text label case-insensitively; anything unknown is Low."""
        if isinstance(label, Severity):
            return label
        text = str(label or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.LOW

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)


_SEVERITY_ORDER = [Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW]


class RawModelIssue(BaseModel):
    """A finding exactly as the model reported it, before any cleanup."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    file_path: Optional[str] = Field(default=None, validation_alias=AliasChoices("file_path", "file", "path"))
    line_number: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("line_number", "line", "start_line")
    )
    severity: Optional[str] = None
    category: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    suggestion: Optional[str] = None

    @field_validator("file_path", "severity", "category", "title", "description", "suggestion", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, str):
            return value
        if isinstance(value, (list, tuple)):
            return "\n".join(str(item) for item in value)
        return str(value)

    @field_validator("line_number", mode="before")
    @classmethod
    def _coerce_line(cls, value: Any) -> Optional[int]:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        try:
            if isinstance(value, float):
                return int(value)
            if isinstance(value, str):
                # Ranges such as "12-15" keep their first line.
                match = _LEADING_INT.match(value)
                return int(match.group(1)) if match else None
        except (OverflowError, ValueError):
            return None
        return None


class ReportedIssue(BaseModel):
    """Canonical issue record shared by both execution modes."""

    model_config = ConfigDict(frozen=True)

    file_path: str = Field(min_length=1)
    line_number: Optional[int] = Field(default=None, ge=1)
    severity: Severity = Severity.LOW
    category: str = DEFAULT_CATEGORY
    title: str = Field(min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str = ""
    suggestion: Optional[str] = None


def truncate_title(text: str, limit: int = MAX_TITLE_LENGTH) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _clean_path(value: Optional[str]) -> str:
    path = _clean(value).replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path or UNKNOWN_FILE


def normalize(raw: RawModelIssue) -> ReportedIssue:
    """Turn a raw finding into a canonical record. Never fails."""

    description = _clean(raw.description)
    title = _clean(raw.title)
    if not title:
        title = description.splitlines()[0] if description else UNTITLED_ISSUE
    title = truncate_title(title) or UNTITLED_ISSUE

    line_number = raw.line_number if raw.line_number is not None and raw.line_number >= 1 else None
    suggestion = _clean(raw.suggestion) or None

    return ReportedIssue(
        file_path=_clean_path(raw.file_path),
        line_number=line_number,
        severity=Severity.from_label(raw.severity),
        category=_clean(raw.category) or DEFAULT_CATEGORY,
        title=title,
        description=description,
        suggestion=suggestion,
    )


def coerce_raw_issue(arguments: Mapping[str, Any]) -> RawModelIssue:
    """Build a raw issue from loosely typed tool arguments."""
    return RawModelIssue.model_validate(dict(arguments))


@dataclass
class ParsedIssueList:
    issues: List[RawModelIssue] = field(default_factory=list)
    skipped: int = 0


def parse_issue_list(text: Optional[str]) -> ParsedIssueList:
    """Parse a model reply that should contain a JSON list of issues.

    Accepts a bare array, an object with an ``issues`` array, a single issue
    object, or any of those wrapped in a fenced code block. Raises
    MalformedResponseError when no such structure can be recovered.
    """

    if not text or not text.strip():
        raise MalformedResponseError("model reply is empty")

    data = _load_json_payload(text)
    if isinstance(data, dict):
        if isinstance(data.get("issues"), list):
            items = data["issues"]
        elif any(key in data for key in ("title", "description", "file_path", "file")):
            items = [data]
        else:
            raise MalformedResponseError("JSON object in reply has no 'issues' list")
    elif isinstance(data, list):
        items = data
    else:
        raise MalformedResponseError(f"expected a JSON list of issues, got {type(data).__name__}")

    parsed = ParsedIssueList()
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            LOGGER.warning("Skipping issue #%d: expected an object, got %s", index, type(item).__name__)
            parsed.skipped += 1
            continue
        try:
            parsed.issues.append(RawModelIssue.model_validate(item))
        except ValidationError as exc:
            LOGGER.warning("Skipping issue #%d: %s", index, exc.errors()[0].get("msg"))
            parsed.skipped += 1
    return parsed


def _load_json_payload(text: str) -> Any:
    candidates = [match.group("body") for match in JSON_FENCE_PATTERN.finditer(text)]
    candidates.append(text.strip())
    for opener, closer in (("[", "]"), ("{", "}")):
        start, end = text.find(opener), text.rfind(closer)
        if start != -1 and end > start:
            candidates.append(text[start : end + 1])

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    raise MalformedResponseError("reply does not contain a parsable JSON issue list")


__all__ = [
    "ParsedIssueList",
    "RawModelIssue",
    "ReportedIssue",
    "Severity",
    "coerce_raw_issue",
    "normalize",
    "parse_issue_list",
    "truncate_title",
]
