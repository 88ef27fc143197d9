"""In-memory hooks for tests and embedding hosts.

ScriptedHook implements the Hook protocol without spawning a process: it
returns a canned invocation and records every request it receives.
StaticRegistry is a HookSource that always yields the same HookTable.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any, Callable, Optional

from hookgate.models.events import HookEventType
from hookgate.models.invocation import (
    HookDescriptor,
    HookInvocation,
    HookScope,
    InvocationOutcome,
)
from hookgate.registry import HookTable


class ScriptedHook:
    """A fake hook with a scripted reply.

    Args:
        event: Event the hook is registered for.
        response: Object serialized to stdout as JSON. Ignored if
            ``stdout`` is given.
        stdout: Raw stdout text, for malformed-output cases.
        stderr: Diagnostic text.
        exit_status: Reported exit status.
        outcome: Process-level outcome (e.g. TIMED_OUT).
        raises: Exception raised from ``invoke`` instead of returning.
        on_invoke: Callback receiving the parsed request before replying.
        scope: Scope of the synthetic descriptor.
        name: File name of the synthetic descriptor (defaults to the event).
    """

    def __init__(
        self,
        event: HookEventType,
        response: Optional[Mapping[str, Any]] = None,
        *,
        stdout: Optional[str] = None,
        stderr: str = "",
        exit_status: Optional[int] = 0,
        outcome: InvocationOutcome = InvocationOutcome.SUCCEEDED,
        raises: Optional[BaseException] = None,
        on_invoke: Optional[Callable[[dict[str, Any]], None]] = None,
        scope: HookScope = HookScope.USER,
        name: Optional[str] = None,
    ) -> None:
        self._descriptor = HookDescriptor(
            path=Path("/scripted") / scope.value / (name or event.value),
            scope=scope,
            event=event,
        )
        if stdout is None:
            stdout = json.dumps(dict(response or {}))
        self._stdout = stdout
        self._stderr = stderr
        self._exit_status = exit_status
        self._outcome = outcome
        self._raises = raises
        self._on_invoke = on_invoke
        self._requests: list[dict[str, Any]] = []
        self._timeouts: list[float] = []
        self._lock = threading.Lock()

    @classmethod
    def allowing(cls, event: HookEventType, context: str = "", **kwargs: Any) -> ScriptedHook:
        return cls(event, {"cancel": False, "contextModification": context}, **kwargs)

    @classmethod
    def denying(cls, event: HookEventType, reason: str = "", **kwargs: Any) -> ScriptedHook:
        return cls(event, {"cancel": True, "errorMessage": reason}, **kwargs)

    @property
    def descriptor(self) -> HookDescriptor:
        return self._descriptor

    @property
    def requests(self) -> list[dict[str, Any]]:
        """Parsed requests received so far, in order."""
        with self._lock:
            return list(self._requests)

    @property
    def timeouts(self) -> list[float]:
        with self._lock:
            return list(self._timeouts)

    @property
    def calls(self) -> int:
        with self._lock:
            return len(self._requests)

    def invoke(self, request_body: str, timeout: float) -> HookInvocation:
        request = json.loads(request_body)
        with self._lock:
            self._requests.append(request)
            self._timeouts.append(timeout)
        if self._on_invoke is not None:
            self._on_invoke(request)
        if self._raises is not None:
            raise self._raises
        timed_out = self._outcome is InvocationOutcome.TIMED_OUT
        return HookInvocation(
            descriptor=self._descriptor,
            request_body=request_body,
            stdout="" if timed_out else self._stdout,
            stderr=self._stderr,
            exit_status=None if timed_out else self._exit_status,
            outcome=self._outcome,
            error=f"timed out after {timeout:g}s" if timed_out else None,
        )

    def __repr__(self) -> str:
        return f"ScriptedHook({self._descriptor})"


class StaticRegistry:
    """HookSource returning a fixed table regardless of workspace."""

    def __init__(self, hooks: Iterable[ScriptedHook] | Mapping[HookEventType, Sequence[Any]] = ()) -> None:
        if isinstance(hooks, Mapping):
            self._table = HookTable(hooks)
        else:
            grouped: dict[HookEventType, list[Any]] = {}
            for hook in hooks:
                grouped.setdefault(hook.descriptor.event, []).append(hook)
            self._table = HookTable(grouped)
        self.resolved: list[tuple[Path, ...]] = []

    @property
    def table(self) -> HookTable:
        return self._table

    def resolve(self, workspace_roots: Iterable[Path | str] = ()) -> HookTable:
        self.resolved.append(tuple(Path(r) for r in workspace_roots))
        return self._table
