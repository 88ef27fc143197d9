"""hookgate: lifecycle hooks for AI coding-agent hosts.

Hooks are executables that observe, veto and enrich an agent task's
lifecycle. hookgate discovers them, runs them with a strict JSON protocol,
and folds their decisions back into the host loop without ever letting a
broken hook stall or break the task.
"""

from hookgate._version import __version__

# Entry points
from hookgate.engine import Engine
from hookgate.lifecycle import LifecycleController, ModelTurnContext, OperationOutcome

# Configuration
from hookgate.config import (
    DEFAULT_CONTEXT_CAP_BYTES,
    DEFAULT_PROTOCOL_VERSION,
    DEFAULT_TIMEOUT_SECONDS,
    EngineConfig,
)

# Domain models
from hookgate.models import (
    GENERIC_REJECTION,
    DecisionKind,
    HookDecision,
    HookDescriptor,
    HookEvent,
    HookEventType,
    HookInvocation,
    HookScope,
    InvocationOutcome,
    PreviousState,
    Task,
    TaskMetadata,
    TaskState,
)

# Components
from hookgate.audit import (
    AuditRecord,
    AuditSink,
    LoggingAuditSink,
    MemoryAuditSink,
    SqlAuditSink,
)
from hookgate.codec import DecodeResult, HookResponse, decode_response, encode_request
from hookgate.context import ContextAccumulator, ContextEntry
from hookgate.dispatch import DispatchResult, HookDispatcher, HookRun
from hookgate.interpreter import interpret
from hookgate.invoker import Hook, ProcessHook, ProcessInvoker
from hookgate.registry import HookRegistry, HookSource, HookTable

# Exceptions
from hookgate.exceptions import (
    AuditStoreError,
    ConfigError,
    HookgateError,
    TaskStateError,
)

__all__ = [
    "__version__",
    "Engine",
    "LifecycleController",
    "ModelTurnContext",
    "OperationOutcome",
    "DEFAULT_CONTEXT_CAP_BYTES",
    "DEFAULT_PROTOCOL_VERSION",
    "DEFAULT_TIMEOUT_SECONDS",
    "EngineConfig",
    "GENERIC_REJECTION",
    "DecisionKind",
    "HookDecision",
    "HookDescriptor",
    "HookEvent",
    "HookEventType",
    "HookInvocation",
    "HookScope",
    "InvocationOutcome",
    "PreviousState",
    "Task",
    "TaskMetadata",
    "TaskState",
    "AuditRecord",
    "AuditSink",
    "LoggingAuditSink",
    "MemoryAuditSink",
    "SqlAuditSink",
    "DecodeResult",
    "HookResponse",
    "decode_response",
    "encode_request",
    "ContextAccumulator",
    "ContextEntry",
    "DispatchResult",
    "HookDispatcher",
    "HookRun",
    "interpret",
    "Hook",
    "ProcessHook",
    "ProcessInvoker",
    "HookRegistry",
    "HookSource",
    "HookTable",
    "AuditStoreError",
    "ConfigError",
    "HookgateError",
    "TaskStateError",
]
