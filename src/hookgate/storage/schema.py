"""SQLAlchemy ORM schema for the hookgate audit trail.

Two tables: ``hook_invocations`` (append-only, one row per hook run) and
``_hookgate_meta`` (key/value, holds the schema version).

Outcome and decision enums are imported from the domain models, not
redefined here. The ORM stores the same Python enums.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from hookgate.models.invocation import DecisionKind, HookScope, InvocationOutcome


class Base(DeclarativeBase):
    """Base class for all hookgate ORM models."""

    pass


class HookgateMetaRow(Base):
    """Key-value metadata (schema version)."""

    __tablename__ = "_hookgate_meta"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)


class HookInvocationRow(Base):
    """One hook run and its interpreted decision.

    Append-only: rows are never updated or deleted by hookgate.
    """

    __tablename__ = "hook_invocations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    event: Mapped[str] = mapped_column(String(32), nullable=False)
    hook_path: Mapped[str] = mapped_column(Text, nullable=False)
    scope: Mapped[HookScope] = mapped_column(nullable=False)
    outcome: Mapped[InvocationOutcome] = mapped_column(nullable=False)
    decision: Mapped[DecisionKind] = mapped_column(nullable=False)
    exit_status: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    duration_ms: Mapped[float] = mapped_column(Float, nullable=False)
    fault_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    context_length: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stderr: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_hook_invocations_task_time", "task_id", "recorded_at"),
        Index("ix_hook_invocations_decision", "decision"),
    )
