"""Repository acquisition through the git command line."""
from __future__ import annotations

import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from code_auditor.core.errors import RepositoryError
from code_auditor.core.utils.logger import get_logger

LOGGER = get_logger(__name__)

CLONE_TIMEOUT_SECONDS = 600


@dataclass
class CloneOptions:
    branch: Optional[str] = None
    depth: Optional[int] = 1
    show_progress: bool = False
    target_dir: Optional[Path] = None


@dataclass
class CloneResult:
    """A checked-out repository; temporary checkouts are removed by ``cleanup``."""

    path: Path
    temporary: bool = False

    def into_path(self) -> Path:
        return self.path

    def cleanup(self) -> None:
        if self.temporary and self.path.exists():
            root = self.path.parent if self.path.parent.name.startswith("code-auditor-") else self.path
            shutil.rmtree(root, ignore_errors=True)


def _run_git(args: Sequence[str], cwd: Optional[Path] = None, *, capture: bool = True) -> subprocess.CompletedProcess[str]:
    if shutil.which("git") is None:
        raise RepositoryError("git executable not found on PATH")
    try:
        process = subprocess.run(
            ["git", *args],
            cwd=str(cwd) if cwd else None,
            capture_output=capture,
            text=True,
            timeout=CLONE_TIMEOUT_SECONDS,
        )
    except subprocess.TimeoutExpired as exc:
        raise RepositoryError(f"git {' '.join(args)} timed out") from exc
    if process.returncode != 0:
        message = (process.stderr or "").strip() or (process.stdout or "").strip() or "Unknown git error"
        raise RepositoryError(f"git {' '.join(args)} failed: {message}")
    return process


def repo_name_from_url(url: str) -> str:
    name = url.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name or "repository"


def clone_repository(url: str, options: CloneOptions | None = None) -> CloneResult:
    """Clone ``url`` and return the checkout location."""
    options = options or CloneOptions()
    temporary = options.target_dir is None
    if temporary:
        parent = Path(tempfile.mkdtemp(prefix="code-auditor-"))
        target = parent / repo_name_from_url(url)
    else:
        target = Path(options.target_dir)
        if target.exists() and any(target.iterdir()):
            raise RepositoryError(f"Target directory {target} already exists and is not empty")

    args: List[str] = ["clone"]
    if options.depth:
        args.extend(["--depth", str(options.depth)])
    if options.branch:
        args.extend(["--branch", options.branch, "--single-branch"])
    if not options.show_progress:
        args.append("--quiet")
    args.extend([url, str(target)])

    LOGGER.info("Cloning %s into %s", url, target)
    try:
        _run_git(args, capture=not options.show_progress)
    except RepositoryError:
        if temporary:
            shutil.rmtree(target.parent, ignore_errors=True)
        raise
    return CloneResult(path=target, temporary=temporary)


__all__ = ["CloneOptions", "CloneResult", "clone_repository", "repo_name_from_url"]
