"""Source file discovery and prioritization for a checked-out repository."""
from __future__ import annotations

from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path, PurePosixPath
from typing import Iterator, List, Sequence, Tuple

from code_auditor.core.utils.constants import (
    DEFAULT_EXCLUDE_PATTERNS,
    DEFAULT_EXTENSIONS,
    DEFAULT_MAX_FILES,
    MAX_SCANNED_FILE_BYTES,
)
from code_auditor.core.utils.logger import get_logger

LOGGER = get_logger(__name__)

_LANGUAGES = {
    "rs": "Rust", "py": "Python", "js": "JavaScript", "jsx": "JavaScript", "ts": "TypeScript",
    "tsx": "TypeScript", "go": "Go", "java": "Java", "c": "C", "h": "C", "cpp": "C++", "hpp": "C++",
    "cs": "C#", "rb": "Ruby", "php": "PHP", "swift": "Swift", "kt": "Kotlin", "scala": "Scala",
    "vue": "Vue", "svelte": "Svelte",
}
_ENTRY_POINT_STEMS = frozenset({"main", "app", "index", "lib", "server", "cli", "mod", "manage", "wsgi", "asgi"})
_SOURCE_DIRS = frozenset({"src", "lib", "app", "pkg", "cmd", "internal", "core", "server", "api"})
_LOW_PRIORITY_DIRS = frozenset(
    {"test", "tests", "spec", "specs", "__tests__", "docs", "doc", "examples", "example", "benchmarks", "bench", "fixtures"}
)


@dataclass
class ScanOptions:
    extensions: Sequence[str] = DEFAULT_EXTENSIONS
    exclude: Sequence[str] = DEFAULT_EXCLUDE_PATTERNS
    max_files: int = DEFAULT_MAX_FILES
    max_file_bytes: int = MAX_SCANNED_FILE_BYTES

    def normalized_extensions(self) -> frozenset:
        return frozenset(ext.strip().lstrip(".").lower() for ext in self.extensions if ext.strip())


@dataclass(frozen=True)
class ScannedFile:
    path: str
    size: int
    language: str = "Unknown"


@dataclass
class ScanSummary:
    files: List[ScannedFile] = field(default_factory=list)
    skipped_large: int = 0
    truncated: int = 0


def language_for(path: str) -> str:
    return _LANGUAGES.get(PurePosixPath(path).suffix.lstrip(".").lower(), "Unknown")


def is_excluded(rel_path: str, patterns: Sequence[str]) -> bool:
    """Return True when any pattern matches a path component, the name, or the full path."""
    pure = PurePosixPath(rel_path)
    for pattern in patterns:
        pattern = pattern.strip().rstrip("/")
        if not pattern:
            continue
        if any(ch in pattern for ch in "*?["):
            if fnmatch(pure.name, pattern) or fnmatch(rel_path, pattern):
                return True
        elif pattern in pure.parts or rel_path == pattern:
            return True
    return False


def priority(rel_path: str) -> Tuple[int, int, str]:
    pure = PurePosixPath(rel_path)
    directories = {part.lower() for part in pure.parts[:-1]}
    stem = pure.stem.lower()
    if directories & _LOW_PRIORITY_DIRS or stem.startswith("test_") or stem.endswith(("_test", ".test", ".spec")):
        rank = 3
    elif stem in _ENTRY_POINT_STEMS:
        rank = 0
    elif directories & _SOURCE_DIRS:
        rank = 1
    else:
        rank = 2
    return rank, len(pure.parts), rel_path


def scan(root: Path, options: ScanOptions) -> ScanSummary:
    root = root.resolve()
    extensions = options.normalized_extensions()
    summary = ScanSummary()
    found: List[ScannedFile] = []

    for path in _walk(root, root, options.exclude):
        rel = path.relative_to(root).as_posix()
        if path.suffix.lstrip(".").lower() not in extensions:
            continue
        try:
            size = path.stat().st_size
        except OSError:
            continue
        if size == 0:
            continue
        if size > options.max_file_bytes:
            summary.skipped_large += 1
            LOGGER.debug("Skipping %s (%d bytes)", rel, size)
            continue
        found.append(ScannedFile(path=rel, size=size, language=language_for(rel)))

    found.sort(key=lambda item: priority(item.path))
    if len(found) > options.max_files:
        summary.truncated = len(found) - options.max_files
        found = found[: options.max_files]
    summary.files = found
    LOGGER.info(
        "Scanned %s: %d files selected (%d over the file cap, %d too large)",
        root,
        len(found),
        summary.truncated,
        summary.skipped_large,
    )
    return summary


def scan_repository(root: Path, options: ScanOptions | None = None) -> List[ScannedFile]:
    """Return candidate files under ``root`` ordered by review priority."""
    return scan(root, options or ScanOptions()).files


def _walk(directory: Path, root: Path, exclude: Sequence[str]) -> Iterator[Path]:
    try:
        entries = sorted(directory.iterdir(), key=lambda item: item.name)
    except OSError as exc:
        LOGGER.debug("Cannot list %s: %s", directory, exc)
        return
    for entry in entries:
        rel = entry.relative_to(root).as_posix()
        if is_excluded(rel, exclude):
            continue
        if entry.is_symlink():
            continue
        if entry.is_dir():
            yield from _walk(entry, root, exclude)
        elif entry.is_file():
            yield entry


__all__ = [
    "ScanOptions",
    "ScanSummary",
    "ScannedFile",
    "is_excluded",
    "language_for",
    "priority",
    "scan",
    "scan_repository",
]
