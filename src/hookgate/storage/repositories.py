"""Abstract repository interface for the audit store.

No SQLAlchemy imports here -- pure abstract contract. The concrete
implementation is in sqlite.py.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from hookgate.storage.schema import HookInvocationRow


class AuditRepository(ABC):
    """Append-only storage for hook invocation records."""

    @abstractmethod
    def append(self, row: HookInvocationRow) -> None:
        """Store one invocation row."""
        ...

    @abstractmethod
    def recent(
        self, limit: int = 20, *, task_id: str | None = None
    ) -> Sequence[HookInvocationRow]:
        """Most recent rows first, optionally restricted to one task."""
        ...

    @abstractmethod
    def count(self, *, task_id: str | None = None) -> int:
        """Number of stored rows, optionally restricted to one task."""
        ...
