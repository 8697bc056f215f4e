"""Read-only filesystem tools scoped to the repository under review."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Iterator, List, Mapping

from code_auditor.core.errors import ToolExecutionError
from code_auditor.core.utils.constants import (
    DEFAULT_IGNORED_REPO_DIRS,
    DEFAULT_LIST_MAX_ENTRIES,
    DEFAULT_READ_MAX_LINES,
    MAX_READ_LINES,
)

from .names import LIST_DIRECTORY, READ_FILE
from .registry import SCHEMA_DIR, ToolContext, ToolSpec, registry

_BINARY_SNIFF_BYTES = 8192


def resolve_path(repo_root: Path, relative: str) -> Path:
    """Resolve ``relative`` under ``repo_root``, rejecting anything that escapes it."""
    root = repo_root.resolve()
    candidate = (root / (relative or ".")).resolve()
    if root not in candidate.parents and candidate != root:
        raise ToolExecutionError(f"Path '{relative}' escapes the repository root")
    return candidate


def relative_display(repo_root: Path, target: Path) -> str:
    rel = target.relative_to(repo_root.resolve()).as_posix()
    return rel or "."


def is_binary(path: Path) -> bool:
    try:
        with path.open("rb") as handle:
            return b"\0" in handle.read(_BINARY_SNIFF_BYTES)
    except OSError:
        return False


def iter_repository_files(root: Path) -> Iterator[Path]:
    """Yield files under ``root`` in a stable order, skipping ignored directories."""
    try:
        entries = sorted(root.iterdir(), key=lambda item: item.name)
    except OSError:
        return
    for entry in entries:
        if entry.is_dir():
            if entry.name in DEFAULT_IGNORED_REPO_DIRS or entry.is_symlink():
                continue
            yield from iter_repository_files(entry)
        elif entry.is_file():
            yield entry


def _list_directory(payload: Mapping[str, Any], context: ToolContext) -> str:
    rel = payload.get("path") or "."
    recursive = bool(payload.get("recursive", False))
    limit = int(payload.get("max_entries") or DEFAULT_LIST_MAX_ENTRIES)

    target = resolve_path(context.repo_root, rel)
    if not target.exists():
        raise ToolExecutionError(f"Directory '{rel}' not found in repository")
    if not target.is_dir():
        raise ToolExecutionError(f"'{rel}' is a file, use read_file instead")

    entries: List[str] = []
    truncated = False
    for line in _walk(target, context.repo_root, recursive):
        if len(entries) >= limit:
            truncated = True
            break
        entries.append(line)

    header = f"Contents of {relative_display(context.repo_root, target)}:"
    if not entries:
        return f"{header}\n(empty)"
    body = "\n".join(entries)
    if truncated:
        body += f"\n... (truncated after {limit} entries)"
    return f"{header}\n{body}"


def _walk(directory: Path, repo_root: Path, recursive: bool) -> Iterator[str]:
    try:
        children = sorted(directory.iterdir(), key=lambda item: (not item.is_dir(), item.name.lower()))
    except OSError as exc:
        raise ToolExecutionError(f"Cannot list '{directory.name}': {exc.strerror or exc}") from exc
    for child in children:
        if child.is_dir():
            if child.name in DEFAULT_IGNORED_REPO_DIRS:
                continue
            yield relative_display(repo_root, child) + "/"
            if recursive and not child.is_symlink():
                yield from _walk(child, repo_root, recursive)
        else:
            try:
                size = child.stat().st_size
            except OSError:
                size = 0
            yield f"{relative_display(repo_root, child)} ({size} bytes)"


def _read_file(payload: Mapping[str, Any], context: ToolContext) -> str:
    rel = payload["path"]
    start_line = int(payload.get("start_line") or 1)
    max_lines = min(int(payload.get("max_lines") or DEFAULT_READ_MAX_LINES), MAX_READ_LINES)

    target = resolve_path(context.repo_root, rel)
    if not target.exists():
        raise ToolExecutionError(f"File '{rel}' not found in repository")
    if not target.is_file():
        raise ToolExecutionError(f"'{rel}' is a directory, use list_directory instead")
    if is_binary(target):
        raise ToolExecutionError(f"'{rel}' is a binary file")

    try:
        lines = target.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError as exc:
        raise ToolExecutionError(f"Cannot read '{rel}': {exc.strerror or exc}") from exc

    total = len(lines)
    if total == 0:
        return f"{relative_display(context.repo_root, target)} is empty."
    if start_line > total:
        raise ToolExecutionError(f"start_line {start_line} is past the end of '{rel}' ({total} lines)")

    end_line = min(total, start_line + max_lines - 1)
    width = len(str(end_line))
    numbered = [
        f"{number:>{width}} | {text}"
        for number, text in enumerate(lines[start_line - 1 : end_line], start=start_line)
    ]
    header = f"{relative_display(context.repo_root, target)} (lines {start_line}-{end_line} of {total})"
    footer = ""
    if end_line < total:
        footer = f"\n... {total - end_line} more lines, continue with start_line={end_line + 1}"
    return header + "\n" + "\n".join(numbered) + footer


registry.register(
    ToolSpec(
        name=LIST_DIRECTORY,
        handler=_list_directory,
        schema_path=SCHEMA_DIR / "list_directory.json",
        description=(
            "List files and directories under a path relative to the repository root. "
            "Set 'recursive' to include nested entries. Use this first to get an overview "
            "of the project layout."
        ),
    )
)

registry.register(
    ToolSpec(
        name=READ_FILE,
        handler=_read_file,
        schema_path=SCHEMA_DIR / "read_file.json",
        description=(
            "Read a slice of a text file with line numbers. Provide 'path' and optionally "
            "'start_line' and 'max_lines' (at most 500) to page through large files."
        ),
    )
)


__all__ = ["is_binary", "iter_repository_files", "relative_display", "resolve_path"]
