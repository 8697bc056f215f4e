"""Prompt text for the agentic and single-call review modes."""
from __future__ import annotations

from textwrap import dedent
from typing import List, Optional, Sequence

from code_auditor.core.utils.constants import MAX_INSTRUCTION_FILES
from code_auditor.providers.llm.base import Message
from code_auditor.tools.names import FINISH, LIST_DIRECTORY, READ_FILE, REPORT_ISSUE, SEARCH_CODE

_REVIEW_FOCUS = dedent(
    """\
    Look for problems a senior reviewer would flag:
    - bugs and logic errors (off-by-one, wrong conditions, unhandled errors, race conditions)
    - security issues (injection, path traversal, hard-coded secrets, unsafe deserialization)
    - performance problems (needless allocations, quadratic loops, blocking calls in hot paths)
    - maintainability concerns (dead code, duplicated logic, misleading names)
    Severity levels: critical (exploitable or data loss), high (likely bug), medium
    (quality risk), low (style or minor improvement). Only report issues you can point to
    in the code."""
)

AGENT_SYSTEM_PROMPT = dedent(
    f"""\
    You are an expert code auditor reviewing a source repository through tools.

    Tools:
    - {LIST_DIRECTORY}: see the project layout.
    - {READ_FILE}: read a file slice with line numbers.
    - {SEARCH_CODE}: find where something is used or defined.
    - {REPORT_ISSUE}: record one finding. Call it once per issue, as soon as you are sure.
    - {FINISH}: end the review.

    Rules:
    - Every reply must call at least one tool. Plain text answers are not accepted.
    - Paths are relative to the repository root.
    - Do not re-read files you have already read; earlier tool results may be dropped from
      the conversation to save space, so report findings immediately.
    - When you have reviewed the important files, call {FINISH}.

    """
) + _REVIEW_FOCUS

BATCH_SYSTEM_PROMPT = dedent(
    """\
    You are an expert code auditor. You receive the full content of several source files
    (large files are split into labelled parts) and must review all of them at once.

    Reply with a JSON array and nothing else. Each element is an object with the keys:
    "file_path", "line_number", "severity", "category", "title", "description", "suggestion".
    Use the file paths exactly as given in the file headers. Reply with [] when you find nothing.

    """
) + _REVIEW_FOCUS

PLAIN_TEXT_CORRECTION = (
    f"Your reply did not call any tool. Continue the review using the tools, record findings "
    f"with {REPORT_ISSUE}, and call {FINISH} when you are done."
)


def build_agent_messages(repo_name: str, candidate_files: Optional[Sequence[str]] = None) -> List[Message]:
    """Return the pinned system prompt and task instruction for an agentic session."""

    lines = [f"Review the repository '{repo_name}'."]
    files = list(candidate_files or [])
    if files:
        shown = files[:MAX_INSTRUCTION_FILES]
        lines.append("Candidate source files, most important first:")
        lines.extend(f"- {path}" for path in shown)
        if len(files) > len(shown):
            lines.append(f"- ... and {len(files) - len(shown)} more (use {LIST_DIRECTORY})")
    else:
        lines.append(f"Start with {LIST_DIRECTORY} to discover the source files.")
    return [
        Message(role="system", content=AGENT_SYSTEM_PROMPT),
        Message(role="user", content="\n".join(lines)),
    ]


def malformed_call_feedback(reason: str) -> str:
    return (
        f"Error: {reason}. Valid tools are {LIST_DIRECTORY}, {READ_FILE}, {SEARCH_CODE}, "
        f"{REPORT_ISSUE} and {FINISH}; arguments must be a JSON object."
    )


__all__ = [
    "AGENT_SYSTEM_PROMPT",
    "BATCH_SYSTEM_PROMPT",
    "PLAIN_TEXT_CORRECTION",
    "build_agent_messages",
    "malformed_call_feedback",
]
