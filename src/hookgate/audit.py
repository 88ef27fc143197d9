"""Audit and diagnostic sinks.

Every hook run produces one AuditRecord, and every non-empty stderr
capture is relayed, unmodified, as a diagnostic. Sinks are passed
explicitly to the components that need them; there is no global sink.

All sinks are append-only and safe to share between tasks running on
different threads.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from hookgate.models.invocation import DecisionKind, HookScope, InvocationOutcome

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.orm import Session

    from hookgate.models.events import HookEventType
    from hookgate.models.invocation import HookDecision, HookDescriptor, HookInvocation

logger = logging.getLogger(__name__)

# Operator-facing channel for hook stderr; records carry the text verbatim
stderr_logger = logging.getLogger("hookgate.hooks.stderr")


@dataclass(frozen=True)
class AuditRecord:
    """One hook run as seen by operators."""

    task_id: str
    event: str
    hook_path: str
    scope: HookScope
    outcome: InvocationOutcome
    decision: DecisionKind
    exit_status: int | None
    duration_ms: float
    fault_reason: str | None = None
    rejection_reason: str | None = None
    context_length: int = 0
    stderr: str = ""
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_invocation(
        cls,
        task_id: str,
        event_type: HookEventType,
        invocation: HookInvocation,
        decision: HookDecision,
    ) -> AuditRecord:
        return cls(
            task_id=task_id,
            event=event_type.value,
            hook_path=str(invocation.descriptor.path),
            scope=invocation.descriptor.scope,
            outcome=invocation.outcome,
            decision=decision.kind,
            exit_status=invocation.exit_status,
            duration_ms=round(invocation.duration_ms, 3),
            fault_reason=decision.fault_reason,
            rejection_reason=decision.reason if decision.cancel else None,
            context_length=len(decision.context),
            stderr=invocation.stderr,
        )


@runtime_checkable
class AuditSink(Protocol):
    """Append-only destination for audit records and hook diagnostics."""

    def record(self, record: AuditRecord) -> None:
        ...

    def diagnostic(self, descriptor: HookDescriptor, text: str) -> None:
        ...


class LoggingAuditSink:
    """Writes audit records and hook stderr to stdlib logging.

    One INFO record per run. Fault warnings are raised by the dispatcher,
    so they reach operators whichever sink is configured.
    """

    def __init__(
        self,
        audit_logger: logging.Logger | None = None,
        diagnostic_logger: logging.Logger | None = None,
    ) -> None:
        self._logger = audit_logger or logger
        self._stderr = diagnostic_logger or stderr_logger
        self._lock = threading.Lock()

    def record(self, record: AuditRecord) -> None:
        with self._lock:
            self._logger.info(
                "hook %s [%s] for %s on task %s: %s (%s, exit=%s, %.1fms)%s",
                record.hook_path,
                record.scope.value,
                record.event,
                record.task_id,
                record.decision.value,
                record.outcome.value,
                record.exit_status,
                record.duration_ms,
                f": {record.fault_reason}" if record.fault_reason else "",
            )

    def diagnostic(self, descriptor: HookDescriptor, text: str) -> None:
        with self._lock:
            self._stderr.info(text, extra={"hook_path": str(descriptor.path)})


class MemoryAuditSink:
    """Keeps records and diagnostics in memory. Used by tests and embedders."""

    def __init__(self) -> None:
        self._records: list[AuditRecord] = []
        self._diagnostics: list[tuple[HookDescriptor, str]] = []
        self._lock = threading.Lock()

    def record(self, record: AuditRecord) -> None:
        with self._lock:
            self._records.append(record)

    def diagnostic(self, descriptor: HookDescriptor, text: str) -> None:
        with self._lock:
            self._diagnostics.append((descriptor, text))

    @property
    def records(self) -> list[AuditRecord]:
        with self._lock:
            return list(self._records)

    @property
    def diagnostics(self) -> list[tuple[HookDescriptor, str]]:
        with self._lock:
            return list(self._diagnostics)

    def faulted(self) -> list[AuditRecord]:
        return [r for r in self.records if r.decision is DecisionKind.FAULTED]


class SqlAuditSink:
    """Persists audit records to the SQL audit store.

    Diagnostics are stored with the invocation row (``stderr`` column)
    and also relayed to the stderr logger, so they reach operators even
    before the row is written.

    A failure to write is logged and swallowed: the audit trail must never
    break the task it observes.
    """

    def __init__(self, engine: Engine) -> None:
        from hookgate.storage.engine import create_session_factory, init_db

        init_db(engine)
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._lock = threading.Lock()

    @classmethod
    def open(cls, db_path: str) -> SqlAuditSink:
        """Open (creating if needed) a SQLite audit database."""
        from hookgate.storage.engine import create_audit_engine

        return cls(create_audit_engine(db_path))

    def record(self, record: AuditRecord) -> None:
        from sqlalchemy.exc import SQLAlchemyError

        from hookgate.storage.schema import HookInvocationRow
        from hookgate.storage.sqlite import SqliteAuditRepository

        row = HookInvocationRow(
            task_id=record.task_id,
            event=record.event,
            hook_path=record.hook_path,
            scope=record.scope,
            outcome=record.outcome,
            decision=record.decision,
            exit_status=record.exit_status,
            duration_ms=record.duration_ms,
            fault_reason=record.fault_reason,
            rejection_reason=record.rejection_reason,
            context_length=record.context_length,
            stderr=record.stderr or None,
            recorded_at=record.recorded_at,
        )
        with self._lock:
            try:
                with self._session_factory() as session:
                    SqliteAuditRepository(session).append(row)
                    session.commit()
            except SQLAlchemyError:
                logger.error("Failed to write audit record for %s", record.hook_path, exc_info=True)

    def session(self) -> Session:
        """A new session on the audit store, for reading. Caller closes it."""
        return self._session_factory()

    def diagnostic(self, descriptor: HookDescriptor, text: str) -> None:
        stderr_logger.info(text, extra={"hook_path": str(descriptor.path)})

    def close(self) -> None:
        self._engine.dispose()
