"""Task lifecycle controller.

The controller owns one Task, its resolved HookTable and a single-thread
worker on which all of the task's hooks run, so hook process I/O never
blocks the host's control path and hooks for one task never overlap.

Only PreToolUse is blocking: the controller waits for its aggregated
decision before the gated action may run. Every other event is advisory.
Its hooks are queued on the worker and the returned future may be ignored;
``prepare_model_request()`` joins outstanding advisory work so the context
those hooks produced is visible on the very next model turn.

Context produced while an event is being decided is folded into the
task's buffer only after that event's hooks have all run. It is read only
by ``prepare_model_request()``.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from hookgate.audit import LoggingAuditSink
from hookgate.context import ContextAccumulator, ContextEntry
from hookgate.dispatch import DispatchResult, HookDispatcher
from hookgate.exceptions import TaskStateError
from hookgate.models.events import HookEvent
from hookgate.models.task import Task, TaskState
from hookgate.registry import HookTable

if TYPE_CHECKING:
    from collections.abc import Iterable

    from hookgate.audit import AuditSink
    from hookgate.config import EngineConfig
    from hookgate.models.events import PreviousState
    from hookgate.registry import HookSource

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Allowed source states per lifecycle action
_TRANSITIONS: dict[str, frozenset[TaskState]] = {
    "start": frozenset({TaskState.IDLE}),
    "resume": frozenset({TaskState.IDLE, TaskState.SUSPENDED}),
    "suspend": frozenset({TaskState.ACTIVE}),
    "submit user input to": frozenset({TaskState.ACTIVE}),
    "gate an operation for": frozenset({TaskState.ACTIVE}),
    "report an operation for": frozenset({TaskState.TOOL_GATE}),
    "prepare a model request for": frozenset({TaskState.ACTIVE, TaskState.TOOL_GATE}),
    "complete": frozenset({TaskState.ACTIVE, TaskState.TOOL_GATE, TaskState.SUSPENDED}),
    "cancel": frozenset({TaskState.ACTIVE, TaskState.TOOL_GATE, TaskState.SUSPENDED}),
}


@dataclass(frozen=True)
class ModelTurnContext:
    """Hook context to attach to the next model-facing request."""

    task_id: str
    entries: tuple[ContextEntry, ...] = ()
    text: str = ""

    @property
    def has_context(self) -> bool:
        return bool(self.text)


@dataclass(frozen=True)
class OperationOutcome:
    """Result of :meth:`LifecycleController.run_operation`.

    Attributes:
        gate: Aggregated PreToolUse decision.
        executed: Whether the action ran.
        value: The action's return value (None when not executed).
        duration_ms: Wall-clock duration of the action.
        post: Future of the PostToolUse dispatch, None when not executed.
    """

    gate: DispatchResult
    executed: bool
    value: Any = None
    duration_ms: int = 0
    post: Future | None = field(default=None, repr=False)

    @property
    def denied(self) -> bool:
        return self.gate.denied

    @property
    def reason(self) -> str | None:
        return self.gate.reason


class LifecycleController:
    """Drives one task through its lifecycle and fires hooks at each step.

    Usage::

        controller = LifecycleController(config, registry)
        controller.start(["/work/project"], initial_task="Fix the tests")
        turn = controller.prepare_model_request()  # TaskStart context here
        gate = controller.pre_tool_use("write_to_file", {"path": "a.py"})
        if gate.proceeds:
            ...  # run the tool
            controller.post_tool_use("write_to_file", {"path": "a.py"}, result="ok")
        else:
            show_user(gate.reason)
        controller.complete()

    Args:
        config: Engine configuration.
        hooks: HookSource used to resolve the task's HookTable at start.
        audit: Sink for audit records and hook stderr. Defaults to a
            LoggingAuditSink.
    """

    def __init__(
        self,
        config: EngineConfig,
        hooks: HookSource,
        audit: AuditSink | None = None,
    ) -> None:
        self._config = config
        self._source = hooks
        self._audit = audit or LoggingAuditSink()
        self._dispatcher = HookDispatcher(config, self._audit)
        self._state = TaskState.IDLE
        self._task: Task | None = None
        self._table = HookTable.empty()
        self._worker: ThreadPoolExecutor | None = None
        self._outstanding: list[Future] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> TaskState:
        return self._state

    @property
    def task(self) -> Task | None:
        return self._task

    @property
    def hooks(self) -> HookTable:
        """The HookTable resolved at task start (immutable for the task)."""
        return self._table

    def start(
        self,
        workspace_roots: Iterable[Path | str],
        initial_task: str = "",
        *,
        task_id: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> Future[DispatchResult]:
        """Begin a task: resolve hooks and fire TaskStart.

        TaskStart is advisory. Its hooks are guaranteed to finish before
        the first ``prepare_model_request()`` returns.
        """
        with self._lock:
            self._require("start")
            self._task = self._new_task(workspace_roots, task_id, attributes)
            self._table = self._source.resolve(self._task.workspace_roots)
            self._worker = self._new_worker(self._task.task_id)
            self._move_to(TaskState.ACTIVE)
            logger.info(
                "Task %s started in %s with %d hook(s)",
                self._task.task_id, self._task.primary_root, len(self._table),
            )
            return self._submit(HookEvent.task_start(self._task.metadata(), initial_task))

    def resume(
        self,
        previous_state: PreviousState | None = None,
        *,
        workspace_roots: Iterable[Path | str] | None = None,
        task_id: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> Future[DispatchResult]:
        """Re-enter ACTIVE and fire TaskResume.

        From SUSPENDED the existing task, hook table and context buffer are
        kept. From IDLE (a task restored by a fresh controller) a task is
        created with the given ``task_id`` and hooks are resolved.
        """
        with self._lock:
            self._require("resume")
            if self._state is TaskState.IDLE:
                if workspace_roots is None:
                    raise ValueError("workspace_roots is required to resume a task from idle")
                self._task = self._new_task(workspace_roots, task_id, attributes)
                self._table = self._source.resolve(self._task.workspace_roots)
                self._worker = self._new_worker(self._task.task_id)
            task = self._active_task()
            self._move_to(TaskState.ACTIVE)
            logger.info("Task %s resumed", task.task_id)
            return self._submit(HookEvent.task_resume(task.metadata(), previous_state))

    def suspend(self) -> None:
        """Park the task; the context buffer and hooks are kept for resume."""
        with self._lock:
            self._require("suspend")
            self._move_to(TaskState.SUSPENDED)

    def submit_user_input(
        self, prompt: str, attachments: list[str] | None = None
    ) -> Future[DispatchResult]:
        """Fire UserPromptSubmit (advisory)."""
        with self._lock:
            self._require("submit user input to")
            return self._submit(HookEvent.user_prompt_submit(prompt, attachments))

    def pre_tool_use(
        self, tool_name: str, parameters: dict[str, Any] | None = None
    ) -> DispatchResult:
        """Fire PreToolUse and wait for the aggregated decision.

        The caller must not run the operation unless ``result.proceeds``.
        On denial the task returns to ACTIVE; otherwise it stays in
        TOOL_GATE until :meth:`post_tool_use`.
        """
        with self._lock:
            self._require("gate an operation for")
            self._move_to(TaskState.TOOL_GATE)
            future = self._submit(HookEvent.pre_tool_use(tool_name, parameters))
        result = future.result()
        with self._lock:
            if result.denied and self._state is TaskState.TOOL_GATE:
                self._move_to(TaskState.ACTIVE)
        return result

    def post_tool_use(
        self,
        tool_name: str,
        parameters: dict[str, Any] | None = None,
        *,
        result: str = "",
        success: bool = True,
        execution_time_ms: int = 0,
    ) -> Future[DispatchResult]:
        """Fire PostToolUse (advisory) and return to ACTIVE."""
        with self._lock:
            self._require("report an operation for")
            self._move_to(TaskState.ACTIVE)
            return self._submit(
                HookEvent.post_tool_use(
                    tool_name,
                    parameters,
                    result=result,
                    success=success,
                    execution_time_ms=execution_time_ms,
                )
            )

    def run_operation(
        self,
        tool_name: str,
        parameters: dict[str, Any] | None,
        action: Callable[[], T],
        *,
        describe: Callable[[T], str] = str,
    ) -> OperationOutcome:
        """Gate, run and report one operation.

        ``action`` runs only if PreToolUse allows it. Its result (rendered
        with ``describe``), success flag and duration are reported through
        PostToolUse. An exception from ``action`` is reported as a failed
        operation and then re-raised.
        """
        gate = self.pre_tool_use(tool_name, parameters)
        if gate.denied:
            return OperationOutcome(gate=gate, executed=False)

        started = time.monotonic()
        try:
            value = action()
        except Exception as exc:
            self.post_tool_use(
                tool_name,
                parameters,
                result=f"{type(exc).__name__}: {exc}",
                success=False,
                execution_time_ms=_elapsed_ms(started),
            )
            raise
        elapsed = _elapsed_ms(started)
        post = self.post_tool_use(
            tool_name,
            parameters,
            result=describe(value),
            success=True,
            execution_time_ms=elapsed,
        )
        return OperationOutcome(
            gate=gate, executed=True, value=value, duration_ms=elapsed, post=post
        )

    def prepare_model_request(self) -> ModelTurnContext:
        """Collect hook context for the next model-facing request.

        Waits for all queued advisory hooks, then consumes the context
        accumulated since the previous call.
        """
        with self._lock:
            self._require("prepare a model request for")
            pending = list(self._outstanding)
        wait(pending)
        with self._lock:
            self._outstanding = [f for f in self._outstanding if not f.done()]
            task = self._active_task()
            entries = task.context.pending()
            text = task.context.drain()
        return ModelTurnContext(task_id=task.task_id, entries=entries, text=text)

    def complete(self) -> None:
        """Finish the task. Queued hooks still run; their context is discarded."""
        with self._lock:
            self._require("complete")
            self._move_to(TaskState.COMPLETED)
            self._retire()

    def cancel(self, completion_status: str = "cancelled") -> Future[DispatchResult]:
        """Cancel the task and fire TaskCancel without waiting for it.

        Cancellation never blocks and cannot be vetoed.
        """
        with self._lock:
            self._require("cancel")
            task = self._active_task()
            self._move_to(TaskState.CANCELLED)
            future = self._submit(
                HookEvent.task_cancel(task.metadata(), completion_status)
            )
            self._retire()
            return future

    def close(self) -> None:
        """Release the worker without firing events. Safe to call twice."""
        with self._lock:
            if self._worker is not None:
                self._worker.shutdown(wait=False)
                self._worker = None

    # ------------------------------------------------------------------
    # Internal methods
    # ------------------------------------------------------------------

    def _require(self, action: str) -> None:
        if self._state not in _TRANSITIONS[action]:
            task_id = self._task.task_id if self._task is not None else "<none>"
            raise TaskStateError(task_id, self._state.value, action)

    def _move_to(self, state: TaskState) -> None:
        """Advance the controller and its task together (lock held)."""
        self._state = state
        if self._task is not None:
            self._task.state = state

    def _active_task(self) -> Task:
        if self._task is None:
            raise TaskStateError("<none>", self._state.value, "use")
        return self._task

    def _new_task(
        self,
        workspace_roots: Iterable[Path | str],
        task_id: str | None,
        attributes: dict[str, Any] | None,
    ) -> Task:
        task_id = task_id or uuid.uuid4().hex
        return Task(
            workspace_roots=tuple(Path(r) for r in workspace_roots),
            context=ContextAccumulator(self._config.context_cap_bytes, owner=task_id),
            task_id=task_id,
            attributes=dict(attributes or {}),
        )

    @staticmethod
    def _new_worker(task_id: str) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"hookgate-{task_id[:8]}")

    def _submit(self, event: HookEvent) -> Future[DispatchResult]:
        """Queue one event's hooks on the task worker (lock held)."""
        task = self._active_task()
        hooks = self._table.for_event(event.type)
        worker = self._worker
        if not hooks or worker is None:
            done: Future[DispatchResult] = Future()
            done.set_result(DispatchResult(event=event.type))
            return done

        def job() -> DispatchResult:
            try:
                result = self._dispatcher.dispatch(task, event, hooks)
                self._fold(task, result)
            except Exception:
                logger.error(
                    "Dispatching %s failed for task %s; proceeding",
                    event.name, task.task_id, exc_info=True,
                )
                return DispatchResult(event=event.type)
            return result

        future = worker.submit(job)
        if not event.type.blocking:
            self._outstanding.append(future)
        return future

    def _fold(self, task: Task, result: DispatchResult) -> None:
        """Merge an event's context into the task buffer (worker thread)."""
        with self._lock:
            if task.state.terminal:
                if result.contexts:
                    logger.debug(
                        "Discarding %s context for finished task %s",
                        result.event.value, task.task_id,
                    )
                return
            for source, text in result.contexts:
                task.context.append(source, text)

    def _retire(self) -> None:
        """Clear the buffer and let the worker drain without blocking (lock held)."""
        task = self._active_task()
        task.context.clear()
        self._outstanding.clear()
        if self._worker is not None:
            self._worker.shutdown(wait=False)
            self._worker = None
        logger.info("Task %s %s", task.task_id, self._state.value)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
