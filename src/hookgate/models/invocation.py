"""Hook descriptors, invocation records and decisions.

HookDescriptor identifies one resolved executable. HookInvocation is the
raw record of one run of it. HookDecision is what that run means for the
action the event accompanies.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path

from hookgate.models.events import HookEventType

GENERIC_REJECTION = "Operation blocked by a hook."


class HookScope(str, enum.Enum):
    """Precedence tier a hook was resolved from (project beats user)."""

    USER = "user"
    PROJECT = "project"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class HookDescriptor:
    """One resolved hook executable.

    Read-only once resolved; a task re-resolves its hooks only at start.
    """

    path: Path
    scope: HookScope
    event: HookEventType

    @property
    def name(self) -> str:
        return self.path.name

    def __str__(self) -> str:
        return f"{self.scope.value}:{self.path}"


class InvocationOutcome(str, enum.Enum):
    """How a single hook run ended, independent of what it decided."""

    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed-out"
    CRASHED = "crashed"
    MALFORMED_OUTPUT = "malformed-output"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class HookInvocation:
    """Record of one run of one hook against one event.

    Attributes:
        descriptor: The hook that ran.
        request_body: Exact bytes (as text) written to the hook's stdin.
        stdout: Captured protocol channel.
        stderr: Captured diagnostic channel, never parsed.
        exit_status: Process return code, or None if it never exited
            normally (spawn failure, killed on timeout).
        duration_ms: Wall-clock time from spawn to reap.
        outcome: Process-level outcome. The interpreter may downgrade a
            SUCCEEDED run to MALFORMED_OUTPUT or CRASHED after decoding.
        error: Detail for timeouts and spawn failures.
    """

    descriptor: HookDescriptor
    request_body: str
    stdout: str = ""
    stderr: str = ""
    exit_status: int | None = None
    duration_ms: float = 0.0
    outcome: InvocationOutcome = InvocationOutcome.SUCCEEDED
    error: str | None = None


class DecisionKind(str, enum.Enum):
    """Terminal states of the per-invocation decision machine.

    FAULTED lets the action proceed exactly like ALLOWED but is kept
    separate so operators can tell "nothing to report" from "broken".
    """

    ALLOWED = "allowed"
    DENIED = "denied"
    FAULTED = "faulted"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class HookDecision:
    """Interpreted result of one invocation.

    Invariant: ``cancel`` is True exactly when ``kind`` is DENIED. A denied
    decision always carries a non-empty ``reason``.
    """

    kind: DecisionKind
    cancel: bool = False
    reason: str | None = None
    context: str = ""
    fault_reason: str | None = None

    def __post_init__(self) -> None:
        if self.cancel != (self.kind is DecisionKind.DENIED):
            raise ValueError(
                f"cancel={self.cancel} is inconsistent with kind={self.kind.value}"
            )

    @property
    def proceeds(self) -> bool:
        return not self.cancel

    @classmethod
    def allow(cls, context: str = "") -> HookDecision:
        return cls(kind=DecisionKind.ALLOWED, context=context)

    @classmethod
    def deny(cls, reason: str | None = None, context: str = "") -> HookDecision:
        return cls(
            kind=DecisionKind.DENIED,
            cancel=True,
            reason=reason or GENERIC_REJECTION,
            context=context,
        )

    @classmethod
    def fault(cls, fault_reason: str, context: str = "") -> HookDecision:
        return cls(kind=DecisionKind.FAULTED, context=context, fault_reason=fault_reason)
