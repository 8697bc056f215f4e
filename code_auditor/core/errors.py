"""Error taxonomy shared by the analysis agent and its collaborators."""
from __future__ import annotations


class AuditorError(RuntimeError):
    """Base class for all code-auditor failures."""


class TransportError(AuditorError):
    """Raised when the model endpoint cannot be reached or answers with an error.

    Fatal for the analysis session that triggered it.
    """


class MalformedResponseError(AuditorError):
    """Raised when the model output violates the tool or issue-list protocol."""


class ToolExecutionError(AuditorError):
    """Raised when a tool cannot run with the arguments the model supplied.

    The agent never lets this escape; the message is handed back to the model.
    """


class BudgetExceededError(AuditorError):
    """Raised internally when a session runs out of iterations or wall-clock time."""

    def __init__(self, message: str, *, reason: str) -> None:
        super().__init__(message)
        self.reason = reason


class RepositoryError(AuditorError):
    """Raised when a repository cannot be cloned or located."""


class ConfigError(AuditorError):
    """Raised when a configuration file cannot be parsed."""


__all__ = [
    "AuditorError",
    "BudgetExceededError",
    "ConfigError",
    "MalformedResponseError",
    "RepositoryError",
    "ToolExecutionError",
    "TransportError",
]
