"""Core error types and utilities."""
from .errors import (
    AuditorError,
    BudgetExceededError,
    ConfigError,
    MalformedResponseError,
    RepositoryError,
    ToolExecutionError,
    TransportError,
)
from .utils import Settings, configure_logging, get_logger, load_settings

__all__ = [
    "AuditorError",
    "BudgetExceededError",
    "ConfigError",
    "MalformedResponseError",
    "RepositoryError",
    "Settings",
    "ToolExecutionError",
    "TransportError",
    "configure_logging",
    "get_logger",
    "load_settings",
]
