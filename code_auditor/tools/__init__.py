"""Initialize built-in tool implementations."""
from __future__ import annotations

from .registry import ToolContext, ToolRegistry, ToolSpec, registry
from .names import (
    ALL_TOOLS,
    FINISH,
    LIST_DIRECTORY,
    READ_FILE,
    REPORT_ISSUE,
    SEARCH_CODE,
    ToolKind,
)

# Trigger tool registration by importing modules for their side effects.
from . import filesystem as _filesystem  # noqa: F401
from . import search as _search  # noqa: F401
from . import reporting as _reporting  # noqa: F401

from .dispatcher import ToolDispatcher

__all__ = [
    "ALL_TOOLS",
    "FINISH",
    "LIST_DIRECTORY",
    "READ_FILE",
    "REPORT_ISSUE",
    "SEARCH_CODE",
    "ToolContext",
    "ToolDispatcher",
    "ToolKind",
    "ToolRegistry",
    "ToolSpec",
    "registry",
]
