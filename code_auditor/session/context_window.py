"""Sliding-window bound on the evictable part of a transcript."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Set

from code_auditor.core.utils.logger import get_logger

from .models import Transcript

LOGGER = get_logger(__name__)


class ContextInvariantError(RuntimeError):
    """Raised when a transcript violates the window or pairing invariants."""


@dataclass
class ContextWindowStats:
    trims: int = 0
    evicted_entries: int = 0


class ContextWindowManager:
    """Evict the oldest history entries once the window overflows.

    An assistant entry carrying tool calls and the tool entries answering it
    form one group: they leave the window together, even when that drops the
    history below the nominal cap.
    """

    def __init__(self, max_messages: int) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self.max_messages = max_messages
        self.stats = ContextWindowStats()

    def trim(self, transcript: Transcript) -> Transcript:
        history = transcript.history
        evicted = 0
        while len(history) > self.max_messages:
            oldest = history.popleft()
            evicted += 1
            if oldest.role == "assistant" and oldest.tool_calls:
                evicted += self._evict_results(transcript, set(oldest.call_ids))

        if evicted:
            self.stats.trims += 1
            self.stats.evicted_entries += evicted
            LOGGER.debug("Evicted %d transcript entries (history now %d)", evicted, len(history))
        self.verify(transcript)
        return transcript

    def verify(self, transcript: Transcript) -> None:
        history = transcript.history
        if len(history) > self.max_messages:
            raise ContextInvariantError(
                f"history holds {len(history)} entries, window allows {self.max_messages}"
            )

        open_calls: Set[str] = set()
        answered: Set[str] = set()
        for message in history:
            if message.role == "system":
                raise ContextInvariantError("system entries must be pinned")
            if message.role == "assistant":
                open_calls.update(message.call_ids)
            elif message.role == "tool":
                if message.tool_call_id not in open_calls:
                    raise ContextInvariantError(
                        f"tool result {message.tool_call_id!r} has no matching request in the window"
                    )
                answered.add(message.tool_call_id)

        unanswered = open_calls - answered
        if unanswered:
            raise ContextInvariantError(f"tool requests without results: {sorted(unanswered)}")

    @staticmethod
    def _evict_results(transcript: Transcript, call_ids: Set[str]) -> int:
        if not call_ids:
            return 0
        before = len(transcript.history)
        kept = [
            message
            for message in transcript.history
            if not (message.role == "tool" and message.tool_call_id in call_ids)
        ]
        transcript.history.clear()
        transcript.history.extend(kept)
        return before - len(kept)


__all__ = ["ContextInvariantError", "ContextWindowManager", "ContextWindowStats"]
