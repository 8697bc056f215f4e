"""Session controller driving the review conversation with the model."""
from __future__ import annotations

import time
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from code_auditor.analysis.issues import ReportedIssue
from code_auditor.core.errors import BudgetExceededError, MalformedResponseError, ToolExecutionError, TransportError
from code_auditor.core.utils.logger import get_logger, set_correlation_id
from code_auditor.providers.llm import LLMClient, RetryConfig, create_client
from code_auditor.providers.llm.base import Message, ModelReply, ToolCall
from code_auditor.scanner import ScanOptions, scan_repository
from code_auditor.tools import ToolDispatcher, ToolKind, ToolRegistry

from .config import AgentConfig
from .prompts import PLAIN_TEXT_CORRECTION, build_agent_messages, malformed_call_feedback
from .single_call import SingleCallExecutor, read_files
from .state import AnalysisOutcome, AnalysisResult, SessionPhase, SessionState

LOGGER = get_logger(__name__)

_BUDGET_OUTCOMES = {
    "iterations": AnalysisOutcome.ABORTED_ITERATION_LIMIT,
    "timeout": AnalysisOutcome.ABORTED_TIMEOUT,
}


def build_client(config: AgentConfig) -> LLMClient:
    return create_client(
        config.provider,
        config.model_name,
        config.endpoint_url,
        api_key=config.api_key,
        timeout=config.request_timeout_seconds,
        retry_config=RetryConfig(max_retries=config.max_retries),
    )


class CodeAnalysisAgent:
    """Run one repository review in either single-call or agentic mode."""

    def __init__(
        self,
        config: AgentConfig,
        repo_path: Path | str,
        *,
        client: Optional[LLMClient] = None,
        files: Optional[Sequence[str]] = None,
        tool_registry: Optional[ToolRegistry] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.repo_path = Path(repo_path).resolve()
        self.client = client or build_client(config)
        self.files = list(files) if files is not None else None
        self.tool_registry = tool_registry
        self._clock = clock

    def run(self) -> AnalysisResult:
        if self.config.single_call_mode:
            return self._run_single_call()
        return self._run_agentic()

    # ------------------------------------------------------------------
    # Agentic mode
    # ------------------------------------------------------------------

    def _run_agentic(self) -> AnalysisResult:
        state = SessionState(self.config, clock=self._clock)
        set_correlation_id(state.session_id)
        try:
            return self._drive(state)
        finally:
            set_correlation_id(None)

    def _drive(self, state: SessionState) -> AnalysisResult:
        dispatcher = ToolDispatcher(
            self.repo_path,
            pending_issues=state.pending_issues,
            tool_registry=self.tool_registry,
        )
        tools = dispatcher.tool_schemas()
        for message in build_agent_messages(self.repo_path.name, self._candidate_files()):
            state.pin(message)

        LOGGER.info(
            "Starting agentic review of %s (max %d iterations, %.0fs budget)",
            self.repo_path,
            self.config.max_iterations,
            self.config.timeout_seconds,
        )
        outcome: Optional[AnalysisOutcome] = None
        state.phase = SessionPhase.AWAITING_MODEL

        while not state.terminal:
            try:
                reply = self.client.chat(state.transcript.compose(), tools, temperature=self.config.temperature)
            except TransportError as exc:
                LOGGER.error("Model request failed, aborting session: %s", exc)
                state.warn(f"Model request failed: {exc}")
                state.phase = SessionPhase.ABORTED
                outcome = AnalysisOutcome.ABORTED_TRANSPORT_ERROR
                break

            state.model_calls += 1
            self._handle_reply(state, dispatcher, reply)
            state.advance()
            if state.phase is SessionPhase.DONE:
                break

            try:
                state.check_budgets()
            except BudgetExceededError as exc:
                LOGGER.warning("Stopping review early: %s", exc)
                state.warn(f"Review incomplete: {exc}")
                state.phase = SessionPhase.ABORTED
                outcome = _BUDGET_OUTCOMES[exc.reason]
            else:
                state.phase = SessionPhase.AWAITING_MODEL

        if outcome is None:
            outcome = AnalysisOutcome.COMPLETED_WITH_WARNINGS if state.warnings else AnalysisOutcome.COMPLETED

        LOGGER.info(
            "Review %s after %d iterations with %d issues (%d entries evicted from context)",
            outcome.value,
            state.iteration,
            len(state.issues),
            state.window.stats.evicted_entries,
        )
        return AnalysisResult(
            issues=list(state.issues),
            outcome=outcome,
            iterations=state.iteration,
            model_calls=state.model_calls,
            warnings=list(state.warnings),
            elapsed_seconds=round(state.elapsed(), 3),
            summary=dispatcher.context.extra.get("summary"),
        )

    def _handle_reply(self, state: SessionState, dispatcher: ToolDispatcher, reply: ModelReply) -> None:
        calls = self._identify_calls(state, reply.calls)

        if not calls:
            LOGGER.info("Iteration %d: model answered without a tool call", state.iteration + 1)
            state.warn(f"Iteration {state.iteration + 1}: reply without a tool call")
            state.record(
                Message(role="assistant", content=reply.content or ""),
                Message(role="user", content=PLAIN_TEXT_CORRECTION),
            )
            return

        assistant = Message(role="assistant", content=reply.content or "", tool_calls=tuple(calls))
        violations = self._protocol_violations(dispatcher, calls)
        if violations:
            error = MalformedResponseError("; ".join(violations.values()))
            LOGGER.warning("Iteration %d: malformed tool request: %s", state.iteration + 1, error)
            state.warn(f"Iteration {state.iteration + 1}: {error}")
            results = [
                Message(
                    role="tool",
                    content=malformed_call_feedback(
                        violations.get(call.call_id, "call skipped because the reply contained invalid calls")
                    ),
                    tool_call_id=call.call_id,
                )
                for call in calls
            ]
            state.record(assistant, *results)
            return

        state.phase = SessionPhase.EXECUTING_TOOL
        results: List[Message] = []
        finished = False
        for call in calls:
            if finished:
                results.append(Message(role="tool", content="Ignored: finish was already called.", tool_call_id=call.call_id))
                continue
            kind = dispatcher.kind_of(call.name)
            LOGGER.info("Iteration %d: %s %s", state.iteration + 1, kind.value, _describe(call))
            try:
                output = dispatcher.execute(call.name, call.arguments)
            except ToolExecutionError as exc:
                output = f"Error: {exc}"
            results.append(Message(role="tool", content=output, tool_call_id=call.call_id))

            if kind is ToolKind.REPORT_ISSUE:
                for issue in state.collect_pending():
                    LOGGER.info("Issue reported: [%s] %s (%s)", issue.severity.value, issue.title, issue.file_path)
            elif kind.is_terminal:
                finished = True

        state.record(assistant, *results)
        if finished:
            state.phase = SessionPhase.DONE

    def _identify_calls(self, state: SessionState, calls: Sequence[ToolCall]) -> List[ToolCall]:
        limit = max(1, self.config.max_context_messages - 1)
        if len(calls) > limit:
            LOGGER.warning("Model requested %d tool calls in one reply; keeping the first %d", len(calls), limit)
            state.warn(f"Iteration {state.iteration + 1}: dropped {len(calls) - limit} surplus tool calls")
            calls = calls[:limit]
        identified: List[ToolCall] = []
        for index, call in enumerate(calls):
            # Provider ids are not guaranteed unique across turns, eviction relies on it.
            identified.append(replace(call, call_id=f"call_{state.iteration + 1}_{index}"))
        return identified

    @staticmethod
    def _protocol_violations(dispatcher: ToolDispatcher, calls: Sequence[ToolCall]) -> dict:
        violations = {}
        for call in calls:
            if not call.name and call.parse_error:
                violations[call.call_id] = f"malformed tool call: {call.parse_error}"
            elif dispatcher.kind_of(call.name) is ToolKind.UNKNOWN:
                violations[call.call_id] = f"unknown tool '{call.name}'"
            elif call.parse_error:
                violations[call.call_id] = f"invalid arguments for {call.name}: {call.parse_error}"
        return violations

    # ------------------------------------------------------------------
    # Single-call mode
    # ------------------------------------------------------------------

    def _run_single_call(self) -> AnalysisResult:
        started = self._clock()
        paths = self._candidate_files()
        LOGGER.info("Reading %d files for a single-call review", len(paths))
        contents, warnings = read_files(self.repo_path, paths, concurrency=self.config.concurrency)

        executor = SingleCallExecutor(self.client)
        try:
            batch = executor.run_batch(contents, self.config)
        except TransportError as exc:
            LOGGER.error("Model request failed: %s", exc)
            warnings.append(f"Model request failed: {exc}")
            return AnalysisResult(
                issues=[],
                outcome=AnalysisOutcome.ABORTED_TRANSPORT_ERROR,
                model_calls=executor.calls,
                warnings=warnings,
                elapsed_seconds=round(self._clock() - started, 3),
            )

        warnings.extend(batch.warnings)
        outcome = AnalysisOutcome.COMPLETED_WITH_WARNINGS if warnings else AnalysisOutcome.COMPLETED
        return AnalysisResult(
            issues=batch.issues,
            outcome=outcome,
            model_calls=executor.calls,
            warnings=warnings,
            elapsed_seconds=round(self._clock() - started, 3),
        )

    def _candidate_files(self) -> List[str]:
        if self.files is None:
            self.files = [entry.path for entry in scan_repository(self.repo_path, ScanOptions())]
        return list(self.files)


def _describe(call: ToolCall) -> str:
    target = call.arguments.get("path") or call.arguments.get("file_path") or call.arguments.get("pattern")
    return str(target) if target else ""


def run_analysis(
    config: AgentConfig,
    repo_path: Path | str,
    **kwargs,
) -> Tuple[List[ReportedIssue], AnalysisOutcome]:
    """Convenience wrapper returning just the issues and the outcome."""
    result = CodeAnalysisAgent(config, repo_path, **kwargs).run()
    return result.issues, result.outcome


__all__ = ["CodeAnalysisAgent", "build_client", "run_analysis"]
