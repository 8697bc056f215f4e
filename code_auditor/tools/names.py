"""Central definitions for canonical tool identifiers."""
from __future__ import annotations

from enum import Enum

LIST_DIRECTORY = "list_directory"
READ_FILE = "read_file"
SEARCH_CODE = "search_code"
REPORT_ISSUE = "report_issue"
FINISH = "finish"

ALL_TOOLS = (
    LIST_DIRECTORY,
    READ_FILE,
    SEARCH_CODE,
    REPORT_ISSUE,
    FINISH,
)


class ToolKind(str, Enum):
    """Closed set of tools the model may call, plus a catch-all for anything else."""

    LIST_DIRECTORY = LIST_DIRECTORY
    READ_FILE = READ_FILE
    SEARCH_CODE = SEARCH_CODE
    REPORT_ISSUE = REPORT_ISSUE
    FINISH = FINISH
    UNKNOWN = "unknown"

    @classmethod
    def from_name(cls, name: str | None) -> "ToolKind":
        normalized = (name or "").strip()
        if normalized == cls.UNKNOWN.value:
            return cls.UNKNOWN
        try:
            return cls(normalized)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self is ToolKind.FINISH


__all__ = [
    "ALL_TOOLS",
    "FINISH",
    "LIST_DIRECTORY",
    "READ_FILE",
    "REPORT_ISSUE",
    "SEARCH_CODE",
    "ToolKind",
]
