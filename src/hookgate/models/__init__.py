"""Domain models for hookgate: events, tasks, invocations and decisions."""

from hookgate.models.events import (
    EventPayload,
    HookEvent,
    HookEventType,
    PostToolUsePayload,
    PreToolUsePayload,
    PreviousState,
    TaskCancelPayload,
    TaskMetadata,
    TaskResumePayload,
    TaskStartPayload,
    UserPromptSubmitPayload,
    payload_type_for,
)
from hookgate.models.invocation import (
    GENERIC_REJECTION,
    DecisionKind,
    HookDecision,
    HookDescriptor,
    HookInvocation,
    HookScope,
    InvocationOutcome,
)
from hookgate.models.task import Task, TaskState

__all__ = [
    # Events
    "EventPayload",
    "HookEvent",
    "HookEventType",
    "PostToolUsePayload",
    "PreToolUsePayload",
    "PreviousState",
    "TaskCancelPayload",
    "TaskMetadata",
    "TaskResumePayload",
    "TaskStartPayload",
    "UserPromptSubmitPayload",
    "payload_type_for",
    # Invocations
    "GENERIC_REJECTION",
    "DecisionKind",
    "HookDecision",
    "HookDescriptor",
    "HookInvocation",
    "HookScope",
    "InvocationOutcome",
    # Tasks
    "Task",
    "TaskState",
]
