"""Public package interface for the code auditor."""
from __future__ import annotations

from importlib import metadata as _metadata

try:
    __version__ = _metadata.version("code-auditor")
except _metadata.PackageNotFoundError:  # pragma: no cover - fallback when not installed
    __version__ = "0.1.0"

from .agent import (
    AgentConfig,
    AnalysisOutcome,
    AnalysisResult,
    CodeAnalysisAgent,
    SingleCallExecutor,
    run_analysis,
)
from .analysis import ReportedIssue, Severity, normalize, parse_issue_list
from .core import (
    AuditorError,
    BudgetExceededError,
    ConfigError,
    MalformedResponseError,
    RepositoryError,
    Settings,
    ToolExecutionError,
    TransportError,
    configure_logging,
    get_logger,
    load_settings,
)
from .providers.llm import LLMClient, Message, ModelReply, ToolCall, create_client
from .tools import ToolDispatcher

__all__ = [
    "AgentConfig",
    "AnalysisOutcome",
    "AnalysisResult",
    "AuditorError",
    "BudgetExceededError",
    "CodeAnalysisAgent",
    "ConfigError",
    "LLMClient",
    "MalformedResponseError",
    "Message",
    "ModelReply",
    "RepositoryError",
    "ReportedIssue",
    "Settings",
    "Severity",
    "SingleCallExecutor",
    "ToolCall",
    "ToolDispatcher",
    "ToolExecutionError",
    "TransportError",
    "__version__",
    "configure_logging",
    "create_client",
    "get_logger",
    "load_settings",
    "normalize",
    "parse_issue_list",
    "run_analysis",
]
