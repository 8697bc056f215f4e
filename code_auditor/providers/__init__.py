"""Model endpoint providers."""
from . import llm

__all__ = ["llm"]
