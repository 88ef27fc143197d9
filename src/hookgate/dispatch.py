"""Run one event's hooks and aggregate their decisions.

The dispatcher encodes the request once per event, so every hook of the
event sees the same request and none of them sees context contributed by
the others. Hooks run one after another in table order. On a blocking
event the first denial stops the chain; later hooks are not invoked.

Every path ends in a concrete decision. An exception escaping a Hook
implementation (or the audit sink) is logged and becomes a faulted run.
A request that cannot be serialized faults every hook of the event
without running any of them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from hookgate.audit import AuditRecord
from hookgate.codec import encode_request
from hookgate.interpreter import interpret
from hookgate.models.invocation import (
    DecisionKind,
    HookDecision,
    HookInvocation,
    InvocationOutcome,
)

if TYPE_CHECKING:
    from hookgate.audit import AuditSink
    from hookgate.config import EngineConfig
    from hookgate.invoker import Hook
    from hookgate.models.events import HookEvent, HookEventType
    from hookgate.models.invocation import HookDescriptor
    from hookgate.models.task import Task

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HookRun:
    """One hook's invocation paired with its decision."""

    invocation: HookInvocation
    decision: HookDecision

    @property
    def descriptor(self) -> HookDescriptor:
        return self.invocation.descriptor


@dataclass(frozen=True)
class DispatchResult:
    """Aggregated outcome of all hooks for one event.

    Attributes:
        event: The event type that was dispatched.
        runs: Hooks that actually ran, in order.
        skipped: Hooks not invoked because an earlier hook denied.
    """

    event: HookEventType
    runs: tuple[HookRun, ...] = ()
    skipped: tuple[HookDescriptor, ...] = field(default_factory=tuple)

    @property
    def decision(self) -> DecisionKind:
        """DENIED if any run denied, else FAULTED if any faulted, else ALLOWED."""
        kinds = {run.decision.kind for run in self.runs}
        if DecisionKind.DENIED in kinds:
            return DecisionKind.DENIED
        if DecisionKind.FAULTED in kinds:
            return DecisionKind.FAULTED
        return DecisionKind.ALLOWED

    @property
    def proceeds(self) -> bool:
        """Whether the accompanying action may run."""
        return self.decision is not DecisionKind.DENIED

    @property
    def denied(self) -> bool:
        return not self.proceeds

    @property
    def reason(self) -> str | None:
        """User-visible rejection reason of the denying hook, if any."""
        for run in self.runs:
            if run.decision.cancel:
                return run.decision.reason
        return None

    @property
    def contexts(self) -> list[tuple[str, str]]:
        """(source, text) pairs from non-denying runs with non-empty context."""
        return [
            (self.event.value, run.decision.context)
            for run in self.runs
            if run.decision.context and run.decision.kind is not DecisionKind.DENIED
        ]


class HookDispatcher:
    """Runs the hooks for one event on behalf of a task.

    Args:
        config: Engine configuration (timeout, protocol version, actor).
        audit: Sink receiving one record per run and relayed stderr.
    """

    def __init__(self, config: EngineConfig, audit: AuditSink) -> None:
        self._config = config
        self._audit = audit

    def dispatch(
        self,
        task: Task,
        event: HookEvent,
        hooks: tuple[Hook, ...],
    ) -> DispatchResult:
        """Run ``hooks`` for ``event`` in order and aggregate the result.

        Zero hooks is not an error: the result is ALLOWED with no runs.
        """
        if not hooks:
            return DispatchResult(event=event.type)

        try:
            request_body = encode_request(event, task, self._config)
        except Exception as exc:
            return self._unencodable(task, event, hooks, exc)

        runs: list[HookRun] = []

        for index, hook in enumerate(hooks):
            run = self._run_one(task, event.type, hook, request_body)
            runs.append(run)
            if run.decision.cancel:
                skipped = tuple(h.descriptor for h in hooks[index + 1:])
                if skipped:
                    logger.debug(
                        "%s denied by %s; skipping %d later hook(s)",
                        event.name, run.descriptor, len(skipped),
                    )
                return DispatchResult(event=event.type, runs=tuple(runs), skipped=skipped)

        return DispatchResult(event=event.type, runs=tuple(runs))

    # ------------------------------------------------------------------
    # Internal methods
    # ------------------------------------------------------------------

    def _unencodable(
        self,
        task: Task,
        event: HookEvent,
        hooks: tuple[Hook, ...],
        exc: Exception,
    ) -> DispatchResult:
        """Fault every hook of an event whose request cannot be serialized."""
        error = f"request not encodable: {type(exc).__name__}: {exc}"
        logger.error(
            "Cannot encode %s request for task %s; %d hook(s) not run",
            event.name, task.task_id, len(hooks), exc_info=True,
        )
        runs: list[HookRun] = []
        for hook in hooks:
            invocation = HookInvocation(
                descriptor=hook.descriptor,
                request_body="",
                outcome=InvocationOutcome.CRASHED,
                error=error,
            )
            decision = HookDecision.fault(f"crashed: {error}")
            self._report(task, event.type, invocation, decision)
            runs.append(HookRun(invocation=invocation, decision=decision))
        return DispatchResult(event=event.type, runs=tuple(runs))

    def _run_one(
        self,
        task: Task,
        event_type: HookEventType,
        hook: Hook,
        request_body: str,
    ) -> HookRun:
        descriptor = hook.descriptor
        try:
            raw = hook.invoke(request_body, self._config.timeout_seconds)
            decision, invocation = interpret(raw, event_type)
        except Exception as exc:
            logger.error("Hook %s raised inside the engine", descriptor, exc_info=True)
            invocation = HookInvocation(
                descriptor=descriptor,
                request_body=request_body,
                outcome=InvocationOutcome.CRASHED,
                error=f"{type(exc).__name__}: {exc}",
            )
            decision = HookDecision.fault(f"crashed: {invocation.error}")

        if decision.kind is DecisionKind.FAULTED:
            logger.warning(
                "Hook %s faulted on %s for task %s (%s); proceeding",
                descriptor, event_type.value, task.task_id, decision.fault_reason,
            )
        elif decision.cancel:
            logger.info(
                "Hook %s denied %s for task %s: %s",
                descriptor, event_type.value, task.task_id, decision.reason,
            )

        self._report(task, event_type, invocation, decision)
        return HookRun(invocation=invocation, decision=decision)

    def _report(
        self,
        task: Task,
        event_type: HookEventType,
        invocation: HookInvocation,
        decision: HookDecision,
    ) -> None:
        try:
            if invocation.stderr:
                self._audit.diagnostic(invocation.descriptor, invocation.stderr)
            self._audit.record(
                AuditRecord.from_invocation(task.task_id, event_type, invocation, decision)
            )
        except Exception:
            logger.error("Audit sink failed for %s", invocation.descriptor, exc_info=True)
