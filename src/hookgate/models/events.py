"""Lifecycle event types and their payloads.

A HookEvent is a tagged variant: a HookEventType plus the payload model
for that type. Payload models serialize with camelCase keys, which is the
wire format hooks receive under the event's payload key.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class HookEventType(str, enum.Enum):
    """Named lifecycle points at which hooks run.

    The value is the canonical event name. A hook executable must carry
    exactly this file name (no extension, case-sensitive) to be resolved.
    """

    TASK_START = "TaskStart"
    TASK_RESUME = "TaskResume"
    TASK_CANCEL = "TaskCancel"
    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    USER_PROMPT_SUBMIT = "UserPromptSubmit"

    def __str__(self) -> str:
        return self.value

    @property
    def payload_key(self) -> str:
        """Request key under which this event's payload is nested."""
        return self.value[0].lower() + self.value[1:]

    @property
    def blocking(self) -> bool:
        """Whether the accompanying action waits on (and may be vetoed by) hooks."""
        return self is HookEventType.PRE_TOOL_USE


class _Payload(BaseModel):
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "frozen": True,
    }


class TaskMetadata(_Payload):
    """Identity of the task an event belongs to."""

    task_id: str
    created_at: datetime
    attributes: dict[str, Any] = Field(default_factory=dict)


class PreviousState(_Payload):
    """Markers describing the session a resumed task picks up from."""

    last_message_ts: Optional[datetime] = None
    message_count: int = 0
    conversation_history_deleted: bool = False


class TaskStartPayload(_Payload):
    task_metadata: TaskMetadata
    initial_task: str = ""


class TaskResumePayload(_Payload):
    task_metadata: TaskMetadata
    previous_state: PreviousState = Field(default_factory=PreviousState)


class TaskCancelPayload(_Payload):
    task_metadata: TaskMetadata
    completion_status: str = "cancelled"


class PreToolUsePayload(_Payload):
    tool_name: str
    parameters: dict[str, Any] = Field(default_factory=dict)


class PostToolUsePayload(_Payload):
    tool_name: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    result: str = ""
    success: bool = True
    execution_time_ms: int = 0


class UserPromptSubmitPayload(_Payload):
    prompt: str
    attachments: list[str] = Field(default_factory=list)


EventPayload = Union[
    TaskStartPayload,
    TaskResumePayload,
    TaskCancelPayload,
    PreToolUsePayload,
    PostToolUsePayload,
    UserPromptSubmitPayload,
]

_PAYLOAD_TYPES: dict[HookEventType, type[BaseModel]] = {
    HookEventType.TASK_START: TaskStartPayload,
    HookEventType.TASK_RESUME: TaskResumePayload,
    HookEventType.TASK_CANCEL: TaskCancelPayload,
    HookEventType.PRE_TOOL_USE: PreToolUsePayload,
    HookEventType.POST_TOOL_USE: PostToolUsePayload,
    HookEventType.USER_PROMPT_SUBMIT: UserPromptSubmitPayload,
}


def payload_type_for(event_type: HookEventType) -> type[BaseModel]:
    """Return the payload model class for an event type."""
    return _PAYLOAD_TYPES[event_type]


@dataclass(frozen=True)
class HookEvent:
    """One occurrence of a lifecycle event with its payload.

    Frozen: the event describes something that happened (or is about to)
    and is shared read-only by every hook that runs for it.

    Raises:
        TypeError: If the payload model does not match the event type.
    """

    type: HookEventType
    payload: EventPayload

    def __post_init__(self) -> None:
        expected = _PAYLOAD_TYPES[self.type]
        if not isinstance(self.payload, expected):
            raise TypeError(
                f"{self.type.value} requires a {expected.__name__} payload, "
                f"got {type(self.payload).__name__}"
            )

    @property
    def name(self) -> str:
        return self.type.value

    def payload_dict(self) -> dict[str, Any]:
        """Payload as a JSON-compatible dict with wire (camelCase) keys."""
        return self.payload.model_dump(mode="json", by_alias=True)

    # -- Constructors ---------------------------------------------------

    @classmethod
    def task_start(cls, metadata: TaskMetadata, initial_task: str = "") -> HookEvent:
        return cls(
            HookEventType.TASK_START,
            TaskStartPayload(task_metadata=metadata, initial_task=initial_task),
        )

    @classmethod
    def task_resume(
        cls, metadata: TaskMetadata, previous_state: PreviousState | None = None
    ) -> HookEvent:
        return cls(
            HookEventType.TASK_RESUME,
            TaskResumePayload(
                task_metadata=metadata,
                previous_state=previous_state or PreviousState(),
            ),
        )

    @classmethod
    def task_cancel(
        cls, metadata: TaskMetadata, completion_status: str = "cancelled"
    ) -> HookEvent:
        return cls(
            HookEventType.TASK_CANCEL,
            TaskCancelPayload(
                task_metadata=metadata, completion_status=completion_status
            ),
        )

    @classmethod
    def pre_tool_use(
        cls, tool_name: str, parameters: dict[str, Any] | None = None
    ) -> HookEvent:
        return cls(
            HookEventType.PRE_TOOL_USE,
            PreToolUsePayload(tool_name=tool_name, parameters=parameters or {}),
        )

    @classmethod
    def post_tool_use(
        cls,
        tool_name: str,
        parameters: dict[str, Any] | None = None,
        *,
        result: str = "",
        success: bool = True,
        execution_time_ms: int = 0,
    ) -> HookEvent:
        return cls(
            HookEventType.POST_TOOL_USE,
            PostToolUsePayload(
                tool_name=tool_name,
                parameters=parameters or {},
                result=result,
                success=success,
                execution_time_ms=execution_time_ms,
            ),
        )

    @classmethod
    def user_prompt_submit(
        cls, prompt: str, attachments: list[str] | None = None
    ) -> HookEvent:
        return cls(
            HookEventType.USER_PROMPT_SUBMIT,
            UserPromptSubmitPayload(prompt=prompt, attachments=attachments or []),
        )
