"""Transcript and context window management."""
from .context_window import ContextInvariantError, ContextWindowManager
from .models import Transcript

__all__ = ["ContextInvariantError", "ContextWindowManager", "Transcript"]
