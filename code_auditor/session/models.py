"""Conversation transcript for a single analysis session."""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Iterable, Iterator, List

from code_auditor.providers.llm.base import Message


@dataclass
class Transcript:
    """Ordered conversation log split into pinned and evictable entries.

    Pinned entries (system prompt, task instruction) always lead the composed
    conversation and are never evicted. Everything the model and the tools
    exchange afterwards lives in ``history`` and is subject to the context
    window.
    """

    pinned: List[Message] = field(default_factory=list)
    history: Deque[Message] = field(default_factory=deque)

    def pin(self, message: Message) -> None:
        self.pinned.append(message)

    def append(self, message: Message) -> None:
        self.history.append(message)

    def extend(self, messages: Iterable[Message]) -> None:
        self.history.extend(messages)

    def compose(self) -> List[Message]:
        """Return the flattened message list for the model."""
        return [*self.pinned, *self.history]

    def __len__(self) -> int:
        return len(self.pinned) + len(self.history)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.compose())

    @property
    def history_size(self) -> int:
        return len(self.history)


__all__ = ["Transcript"]
