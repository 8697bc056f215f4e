"""Mutable state owned by one analysis session."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional
from uuid import uuid4

from code_auditor.analysis.issues import RawModelIssue, ReportedIssue, normalize
from code_auditor.core.errors import BudgetExceededError
from code_auditor.providers.llm.base import Message
from code_auditor.session.context_window import ContextWindowManager
from code_auditor.session.models import Transcript

from .config import AgentConfig


class SessionPhase(str, Enum):
    INIT = "init"
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOL = "executing_tool"
    DONE = "done"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionPhase.DONE, SessionPhase.ABORTED)


class AnalysisOutcome(str, Enum):
    COMPLETED = "completed"
    COMPLETED_WITH_WARNINGS = "completed_with_warnings"
    ABORTED_ITERATION_LIMIT = "aborted_iteration_limit"
    ABORTED_TIMEOUT = "aborted_timeout"
    ABORTED_TRANSPORT_ERROR = "aborted_transport_error"

    @property
    def is_complete(self) -> bool:
        return self in (AnalysisOutcome.COMPLETED, AnalysisOutcome.COMPLETED_WITH_WARNINGS)

    @property
    def failed(self) -> bool:
        return self is AnalysisOutcome.ABORTED_TRANSPORT_ERROR


@dataclass
class AnalysisResult:
    """What a finished session hands back to its caller."""

    issues: List[ReportedIssue]
    outcome: AnalysisOutcome
    iterations: int = 0
    model_calls: int = 0
    warnings: List[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    summary: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.outcome.is_complete

    @property
    def failed(self) -> bool:
        return self.outcome.failed


class SessionState:
    """Transcript, counters and findings of a single agentic run."""

    def __init__(self, config: AgentConfig, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.config = config
        self.session_id = f"audit-{uuid4().hex[:12]}"
        self.transcript = Transcript()
        self.window = ContextWindowManager(config.max_context_messages)
        self.iteration = 0
        self.model_calls = 0
        self.issues: List[ReportedIssue] = []
        self.pending_issues: List[RawModelIssue] = []
        self.warnings: List[str] = []
        self.phase = SessionPhase.INIT
        self._clock = clock
        self.started_at = clock()

    @property
    def terminal(self) -> bool:
        return self.phase.is_terminal

    def elapsed(self) -> float:
        return self._clock() - self.started_at

    def pin(self, message: Message) -> None:
        self.transcript.pin(message)

    def record(self, *messages: Message) -> None:
        """Append one exchange group and re-apply the context window."""
        self.transcript.extend(messages)
        self.window.trim(self.transcript)

    def advance(self) -> None:
        if self.iteration >= self.config.max_iterations:
            raise BudgetExceededError("iteration budget already spent", reason="iterations")
        self.iteration += 1

    def check_budgets(self) -> None:
        if self.iteration >= self.config.max_iterations:
            raise BudgetExceededError(
                f"reached the iteration limit ({self.config.max_iterations})",
                reason="iterations",
            )
        elapsed = self.elapsed()
        if elapsed >= self.config.timeout_seconds:
            raise BudgetExceededError(
                f"session timed out after {elapsed:.1f}s (limit {self.config.timeout_seconds:.0f}s)",
                reason="timeout",
            )

    def collect_pending(self) -> List[ReportedIssue]:
        """Normalize issues reported since the last call and add them to the findings."""
        fresh = [normalize(raw) for raw in self.pending_issues]
        self.pending_issues.clear()
        self.issues.extend(fresh)
        return fresh

    def warn(self, message: str) -> None:
        self.warnings.append(message)


__all__ = ["AnalysisOutcome", "AnalysisResult", "SessionPhase", "SessionState"]
