"""Plain-Python content search across the repository."""
from __future__ import annotations

import re
from pathlib import Path
from typing import Any, List, Mapping

from code_auditor.core.errors import ToolExecutionError
from code_auditor.core.utils.constants import DEFAULT_SEARCH_MAX_RESULTS, MAX_SCANNED_FILE_BYTES

from .filesystem import is_binary, iter_repository_files, relative_display, resolve_path
from .names import SEARCH_CODE
from .registry import SCHEMA_DIR, ToolContext, ToolSpec, registry

_MAX_LINE_CHARS = 200


def _search_code(payload: Mapping[str, Any], context: ToolContext) -> str:
    pattern = payload["pattern"]
    rel = payload.get("path") or "."
    limit = int(payload.get("max_results") or DEFAULT_SEARCH_MAX_RESULTS)

    if payload.get("regex"):
        try:
            matcher = re.compile(pattern)
        except re.error as exc:
            raise ToolExecutionError(f"Invalid regular expression '{pattern}': {exc}") from exc
    else:
        matcher = re.compile(re.escape(pattern))

    target = resolve_path(context.repo_root, rel)
    if not target.exists():
        raise ToolExecutionError(f"Path '{rel}' not found in repository")
    candidates = [target] if target.is_file() else iter_repository_files(target)

    root = context.repo_root.resolve()
    matches: List[str] = []
    truncated = False
    for path in candidates:
        if not _searchable(path, root):
            continue
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            continue
        for number, line in enumerate(text.splitlines(), start=1):
            if not matcher.search(line):
                continue
            if len(matches) >= limit:
                truncated = True
                break
            snippet = line.strip()
            if len(snippet) > _MAX_LINE_CHARS:
                snippet = snippet[:_MAX_LINE_CHARS] + "..."
            matches.append(f"{relative_display(root, path)}:{number}: {snippet}")
        if truncated:
            break

    if not matches:
        return f"No matches for '{pattern}'."
    body = "\n".join(matches)
    if truncated:
        body += f"\n... (stopped after {limit} matches)"
    return body


def _searchable(path: Path, root: Path) -> bool:
    resolved = path.resolve()
    if root not in resolved.parents:
        return False
    try:
        if resolved.stat().st_size > MAX_SCANNED_FILE_BYTES:
            return False
    except OSError:
        return False
    return not is_binary(resolved)


registry.register(
    ToolSpec(
        name=SEARCH_CODE,
        handler=_search_code,
        schema_path=SCHEMA_DIR / "search_code.json",
        description=(
            "Search text files for a string (or a regular expression when 'regex' is true). "
            "Returns 'path:line: text' matches. Use it to find callers, definitions or risky patterns."
        ),
    )
)
