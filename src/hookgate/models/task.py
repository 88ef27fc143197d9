"""Task model and lifecycle states."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from hookgate.context import ContextAccumulator
from hookgate.models.events import TaskMetadata


class TaskState(str, enum.Enum):
    """States of the task lifecycle machine.

    ``idle -> active`` on start, ``active <-> tool_gate`` around each gated
    operation, ``active <-> suspended`` across suspend/resume, and
    ``completed`` / ``cancelled`` as terminal states.
    """

    IDLE = "idle"
    ACTIVE = "active"
    TOOL_GATE = "tool_gate"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value

    @property
    def terminal(self) -> bool:
        return self in (TaskState.COMPLETED, TaskState.CANCELLED)


@dataclass
class Task:
    """One user-initiated unit of work.

    Mutable: the lifecycle controller that owns the task advances
    ``state`` and feeds ``context``. Nothing else should mutate it.
    """

    workspace_roots: tuple[Path, ...]
    context: ContextAccumulator
    task_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state: TaskState = TaskState.IDLE
    attributes: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.workspace_roots = tuple(
            Path(root).expanduser().resolve() for root in self.workspace_roots
        )

    @property
    def primary_root(self) -> Path | None:
        """First workspace root; project hooks are resolved from here."""
        return self.workspace_roots[0] if self.workspace_roots else None

    def metadata(self) -> TaskMetadata:
        return TaskMetadata(
            task_id=self.task_id,
            created_at=self.created_at,
            attributes=dict(self.attributes),
        )
