"""SQLite implementation of the audit repository.

Uses SQLAlchemy 2.0-style queries (select() + session.execute()). The
repository takes a Session in its constructor; callers own commit/close.
"""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from hookgate.storage.repositories import AuditRepository
from hookgate.storage.schema import HookInvocationRow


class SqliteAuditRepository(AuditRepository):
    """SQLite implementation of the audit repository."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def append(self, row: HookInvocationRow) -> None:
        self._session.add(row)
        self._session.flush()

    def recent(
        self, limit: int = 20, *, task_id: str | None = None
    ) -> Sequence[HookInvocationRow]:
        stmt = select(HookInvocationRow)
        if task_id is not None:
            stmt = stmt.where(HookInvocationRow.task_id == task_id)
        stmt = stmt.order_by(
            HookInvocationRow.recorded_at.desc(), HookInvocationRow.id.desc()
        ).limit(limit)
        return list(self._session.execute(stmt).scalars().all())

    def count(self, *, task_id: str | None = None) -> int:
        stmt = select(func.count()).select_from(HookInvocationRow)
        if task_id is not None:
            stmt = stmt.where(HookInvocationRow.task_id == task_id)
        return self._session.execute(stmt).scalar_one()
