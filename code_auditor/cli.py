"""Command line interface for the code auditor."""
from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional

import click
from pydantic import ValidationError

from code_auditor.agent import CodeAnalysisAgent, build_client
from code_auditor.core.errors import AuditorError
from code_auditor.core.utils.config import Settings, load_repo_settings, load_settings
from code_auditor.core.utils.logger import configure_logging, get_logger
from code_auditor.repo import CloneOptions, CloneResult, clone_repository
from code_auditor.report import build_report, generate_json_report, generate_markdown_report
from code_auditor.scanner import ScanOptions, scan

LOGGER = get_logger(__name__)


def _split(value: Optional[str]) -> Optional[tuple[str, ...]]:
    if value is None:
        return None
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _validate(
    repo: Optional[str],
    local: Optional[Path],
    ollama_url: Optional[str],
    verbose: bool,
    quiet: bool,
) -> None:
    if verbose and quiet:
        raise click.UsageError("Cannot use both --verbose and --quiet")
    if repo is None and local is None:
        raise click.UsageError("Provide --repo URL or --local DIR")
    if local is None and repo and not repo.startswith(("https://", "git@")):
        raise click.BadParameter("Repository URL must start with 'https://' or 'git@'", param_hint="--repo")
    if ollama_url and not ollama_url.startswith(("http://", "https://")):
        raise click.BadParameter("Ollama URL must start with 'http://' or 'https://'", param_hint="--ollama-url")
    if local is not None:
        if not local.exists():
            raise click.BadParameter(f"Local directory does not exist: {local}", param_hint="--local")
        if not local.is_dir():
            raise click.BadParameter(f"Local path is not a directory: {local}", param_hint="--local")


def _echo(message: str, quiet: bool) -> None:
    if not quiet:
        click.echo(message)


@click.command(name="code-auditor")
@click.option("--repo", "-r", metavar="URL", help="Git repository URL to analyze.")
@click.option("--local", type=click.Path(path_type=Path), metavar="DIR", help="Analyze a local directory instead of cloning.")
@click.option("--branch", "-b", help="Branch to check out (defaults to the remote default branch).")
@click.option("--model", "-m", help="Model name to use for analysis.")
@click.option("--ollama-url", "ollama_url", help="Model endpoint base URL.")
@click.option("--provider", type=click.Choice(["ollama", "openai"]), help="Endpoint protocol.")
@click.option(
    "--output", "-o", type=click.Path(path_type=Path), default=Path("code_audit_report.md"),
    show_default=True, help="Report output file.",
)
@click.option(
    "--format", "output_format", type=click.Choice(["markdown", "json"]), default="markdown",
    show_default=True, help="Report format.",
)
@click.option("--max-files", type=click.IntRange(min=1), help="Maximum number of files to analyze.")
@click.option("--extensions", help="Comma-separated file extensions to include, e.g. rs,py,js.")
@click.option("--exclude", help="Comma-separated patterns to exclude, e.g. 'test/*,vendor'.")
@click.option("--concurrency", type=click.IntRange(min=1), help="Number of files read concurrently.")
@click.option("--temperature", type=click.FloatRange(0.0, 1.0), help="Sampling temperature (0.0 - 1.0).")
@click.option("--max-chunk-lines", type=click.IntRange(min=1), help="Lines per file chunk in single-call mode.")
@click.option("--timeout", "timeout_seconds", type=click.FloatRange(min=0.0, min_open=True), help="Session time budget in seconds.")
@click.option("--single-call/--agentic", "single_call", default=None, help="Embed all files in one request or explore with tools.")
@click.option("--config", "-c", "config_path", type=click.Path(path_type=Path), help="Path to config file.")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging output.")
@click.option("--quiet", "-q", is_flag=True, help="Only print errors.")
@click.option("--skip-preflight", is_flag=True, help="Do not probe the model endpoint before starting.")
@click.version_option(package_name="code-auditor")
def main(
    repo: Optional[str],
    local: Optional[Path],
    branch: Optional[str],
    model: Optional[str],
    ollama_url: Optional[str],
    provider: Optional[str],
    output: Path,
    output_format: str,
    max_files: Optional[int],
    extensions: Optional[str],
    exclude: Optional[str],
    concurrency: Optional[int],
    temperature: Optional[float],
    max_chunk_lines: Optional[int],
    timeout_seconds: Optional[float],
    single_call: Optional[bool],
    config_path: Optional[Path],
    verbose: bool,
    quiet: bool,
    skip_preflight: bool,
) -> None:
    """Analyze a source repository with an LLM and write an audit report."""
    _validate(repo, local, ollama_url, verbose, quiet)

    overrides: Dict[str, Any] = {
        "model": model,
        "base_url": ollama_url,
        "provider": provider,
        "max_files": max_files,
        "extensions": _split(extensions),
        "exclude": _split(exclude),
        "concurrency": concurrency,
        "temperature": temperature,
        "max_chunk_lines": max_chunk_lines,
        "timeout_seconds": timeout_seconds,
        "single_call_mode": single_call,
    }

    try:
        settings = load_settings(config_path).merge(overrides)
    except AuditorError as exc:
        raise click.ClickException(str(exc)) from exc

    level = "ERROR" if quiet else "DEBUG" if verbose else settings.log_level
    configure_logging(level, structured=settings.structured_logging)

    started = time.monotonic()
    checkout: Optional[CloneResult] = None
    try:
        if local is not None:
            repo_path = local.resolve()
            LOGGER.info("Using local directory: %s", repo_path)
        else:
            _echo(f"Cloning repository: {repo}", quiet)
            checkout = clone_repository(repo, CloneOptions(branch=branch, show_progress=not quiet))
            repo_path = checkout.into_path()

        repo_settings = load_repo_settings(repo_path)
        if repo_settings is not None:
            settings = repo_settings.merge(overrides)

        result, report_mode = _run(settings, repo_path, quiet=quiet, skip_preflight=skip_preflight)
    except AuditorError as exc:
        LOGGER.error("Audit failed: %s", exc)
        raise click.ClickException(str(exc)) from exc
    finally:
        if checkout is not None:
            checkout.cleanup()

    report = build_report(
        result,
        repo_url=repo or str(local),
        model_used=settings.model,
        mode=report_mode,
        duration_seconds=time.monotonic() - started,
    )
    rendered = generate_json_report(report) if output_format == "json" else generate_markdown_report(report)
    try:
        output.write_text(rendered, encoding="utf-8")
    except OSError as exc:
        raise click.ClickException(f"Failed to write report to {output}: {exc}") from exc

    summary = report.summary
    _echo("\nAnalysis summary:", quiet)
    _echo(f"   Outcome: {result.outcome.value}", quiet)
    _echo(f"   Files with issues: {len(report.files)}", quiet)
    _echo(f"   Total issues: {summary.total}", quiet)
    _echo(
        f"   Critical: {summary.critical} | High: {summary.high} | Medium: {summary.medium} | Low: {summary.low}",
        quiet,
    )
    _echo(f"   Duration: {report.metadata.duration_seconds:.1f}s", quiet)
    for warning in result.warnings:
        LOGGER.warning(warning)

    if result.failed:
        click.echo(f"Audit failed: {result.warnings[-1] if result.warnings else result.outcome.value}", err=True)
        sys.exit(1)
    _echo(f"\nAudit complete! Report saved to: {output}", quiet)


def _run(settings: Settings, repo_path: Path, *, quiet: bool, skip_preflight: bool):
    try:
        config = settings.to_agent_config()
    except ValidationError as exc:
        raise click.ClickException(f"Invalid configuration: {exc.errors()[0].get('msg')}") from exc

    summary = scan(repo_path, ScanOptions(settings.extensions, settings.exclude, settings.max_files))
    if not summary.files:
        LOGGER.warning("No source files matched in %s", repo_path)

    client = build_client(config)
    if not skip_preflight:
        probe = getattr(client, "check_health", None)
        if probe is not None and not probe():
            raise click.ClickException(
                f"Model '{config.model_name}' is not available at {config.endpoint_url}. "
                "Start the server, pull the model, or pass --skip-preflight."
            )

    mode = "single-call" if config.single_call_mode else "agentic"
    _echo(f"Model: {config.model_name} ({config.provider} at {config.endpoint_url})", quiet)
    _echo(f"Mode: {mode}, {len(summary.files)} candidate files", quiet)

    agent = CodeAnalysisAgent(config, repo_path, client=client, files=[entry.path for entry in summary.files])
    return agent.run(), mode


__all__ = ["main"]
