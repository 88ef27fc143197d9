"""hookgate exception hierarchy.

All hookgate-specific exceptions inherit from HookgateError.

Hook failures (timeouts, crashes, malformed output) are never raised from
the public API. They are reported as faulted decisions instead. The
exceptions here cover host programming errors and deployment problems.
"""


class HookgateError(Exception):
    """Base exception for all hookgate errors."""


class ConfigError(HookgateError):
    """Raised when engine configuration is invalid."""

    def __init__(self, setting: str, reason: str) -> None:
        self.setting = setting
        self.reason = reason
        super().__init__(f"Invalid setting '{setting}': {reason}")


class TaskStateError(HookgateError):
    """Raised when a lifecycle event is fired from a state that forbids it.

    Example: firing PreToolUse on a task that has already completed.
    """

    def __init__(self, task_id: str, state: str, action: str) -> None:
        self.task_id = task_id
        self.state = state
        self.action = action
        super().__init__(
            f"Cannot {action} task {task_id} in state '{state}'"
        )


class AuditStoreError(HookgateError):
    """Raised when the audit database cannot be opened or initialized."""
