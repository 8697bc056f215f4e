"""Shared utilities: configuration, constants and logging."""
from .config import Settings, find_config_in_parents, load_repo_settings, load_settings
from .logger import configure_logging, get_correlation_id, get_logger, set_correlation_id

__all__ = [
    "Settings",
    "configure_logging",
    "find_config_in_parents",
    "get_correlation_id",
    "get_logger",
    "load_repo_settings",
    "load_settings",
    "set_correlation_id",
]
