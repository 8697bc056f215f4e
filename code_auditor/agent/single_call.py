"""Single-request review: every file embedded in one prompt, no tool loop."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from code_auditor.analysis.issues import ReportedIssue, normalize, parse_issue_list
from code_auditor.core.errors import MalformedResponseError, ToolExecutionError
from code_auditor.core.utils.logger import get_logger
from code_auditor.providers.llm.base import LLMClient, Message
from code_auditor.tools.filesystem import is_binary, resolve_path

from .config import AgentConfig
from .prompts import BATCH_SYSTEM_PROMPT

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class FileContent:
    path: str
    content: str


@dataclass(frozen=True)
class FileChunk:
    path: str
    start_line: int
    end_line: int
    part: int
    parts: int
    text: str

    @property
    def label(self) -> str:
        if self.parts == 1:
            return f"{self.path} (lines {self.start_line}-{self.end_line})"
        return f"{self.path} (lines {self.start_line}-{self.end_line}, part {self.part}/{self.parts})"


@dataclass
class BatchResult:
    issues: List[ReportedIssue] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def chunk_file(path: str, content: str, max_lines: int) -> List[FileChunk]:
    """Split a file into labelled pieces of at most ``max_lines`` lines."""
    lines = content.splitlines()
    if not lines:
        return [FileChunk(path, 0, 0, 1, 1, "")]
    spans = [(start, min(start + max_lines, len(lines))) for start in range(0, len(lines), max_lines)]
    return [
        FileChunk(
            path=path,
            start_line=start + 1,
            end_line=end,
            part=index,
            parts=len(spans),
            text="\n".join(lines[start:end]),
        )
        for index, (start, end) in enumerate(spans, start=1)
    ]


def read_files(
    repo_path: Path,
    paths: Sequence[str],
    *,
    concurrency: int = 4,
) -> Tuple[List[FileContent], List[str]]:
    """Read ``paths`` with a bounded worker pool, preserving the input order.

    Unreadable, binary or out-of-tree files are skipped with a warning.
    """
    slots: List[Optional[FileContent]] = [None] * len(paths)
    problems: List[Optional[str]] = [None] * len(paths)

    def _load(index: int) -> None:
        rel = paths[index]
        try:
            target = resolve_path(repo_path, rel)
            if is_binary(target):
                problems[index] = f"Skipped binary file {rel}"
                return
            slots[index] = FileContent(rel, target.read_text(encoding="utf-8", errors="replace"))
        except (OSError, ToolExecutionError) as exc:
            problems[index] = f"Could not read {rel}: {exc}"

    with ThreadPoolExecutor(max_workers=max(1, concurrency)) as pool:
        list(pool.map(_load, range(len(paths))))

    warnings = [problem for problem in problems if problem]
    for problem in warnings:
        LOGGER.warning(problem)
    return [item for item in slots if item is not None], warnings


class SingleCallExecutor:
    """Review a set of files with exactly one model request."""

    def __init__(self, client: LLMClient) -> None:
        self.client = client
        self.calls = 0

    def build_messages(self, files: Sequence[FileContent], config: AgentConfig) -> List[Message]:
        sections: List[str] = []
        for item in files:
            for chunk in chunk_file(item.path, item.content, config.max_chunk_lines):
                sections.append(f"=== FILE: {chunk.label} ===\n{chunk.text}\n=== END FILE ===")
        body = f"Review the following {len(files)} files.\n\n" + "\n\n".join(sections)
        return [
            Message(role="system", content=BATCH_SYSTEM_PROMPT),
            Message(role="user", content=body),
        ]

    def run_batch(self, files_with_content: Sequence[FileContent], config: AgentConfig) -> BatchResult:
        """Send every file in one request and normalize the issues in the reply.

        TransportError propagates to the caller; an unparsable reply yields no
        issues and a warning.
        """
        result = BatchResult()
        if not files_with_content:
            result.warnings.append("No readable files to review")
            return result

        messages = self.build_messages(files_with_content, config)
        LOGGER.info(
            "Sending %d files (%d characters) in a single request",
            len(files_with_content),
            sum(len(message.content or "") for message in messages),
        )
        self.calls += 1
        reply = self.client.chat(messages, None, temperature=config.temperature)

        try:
            parsed = parse_issue_list(reply.content)
        except MalformedResponseError as exc:
            LOGGER.warning("Could not parse the issue list from the model reply: %s", exc)
            result.warnings.append(f"Model reply was not a valid issue list: {exc}")
            return result

        result.issues = [normalize(raw) for raw in parsed.issues]
        if parsed.skipped:
            result.warnings.append(f"Skipped {parsed.skipped} malformed entries in the issue list")
        LOGGER.info("Model reported %d issues", len(result.issues))
        return result


__all__ = ["BatchResult", "FileChunk", "FileContent", "SingleCallExecutor", "chunk_file", "read_files"]
