"""Issue extraction and normalization."""
from .issues import (
    ParsedIssueList,
    RawModelIssue,
    ReportedIssue,
    Severity,
    coerce_raw_issue,
    normalize,
    parse_issue_list,
)

__all__ = [
    "ParsedIssueList",
    "RawModelIssue",
    "ReportedIssue",
    "Severity",
    "coerce_raw_issue",
    "normalize",
    "parse_issue_list",
]
