"""Engine: the host-facing entry point.

An Engine wires configuration, hook discovery and the audit sink together
and hands out one LifecycleController per task. Engines are cheap to
share: several tasks may run concurrently, each on its own controller.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from hookgate.audit import LoggingAuditSink, SqlAuditSink
from hookgate.config import EngineConfig
from hookgate.lifecycle import LifecycleController
from hookgate.registry import HookRegistry

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from hookgate.audit import AuditSink
    from hookgate.models.events import PreviousState
    from hookgate.registry import HookSource, HookTable

logger = logging.getLogger(__name__)


class Engine:
    """Creates lifecycle controllers that share one configuration.

    Usage::

        with Engine() as engine:
            controller = engine.start_task(["/work/project"], "Fix the tests")
            turn = controller.prepare_model_request()
            ...
            controller.complete()

    Args:
        config: Engine configuration. Defaults to :meth:`EngineConfig.from_env`.
        audit: Audit sink shared by all tasks. Defaults to a SqlAuditSink when
            ``config.audit_db_path`` is set, otherwise a LoggingAuditSink.
        hooks: Hook source. Defaults to a HookRegistry over ``config``.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        audit: AuditSink | None = None,
        hooks: HookSource | None = None,
    ) -> None:
        self._config = config or EngineConfig.from_env()
        self._owns_audit = audit is None
        if audit is None:
            if self._config.audit_db_path:
                audit = SqlAuditSink.open(self._config.audit_db_path)
            else:
                audit = LoggingAuditSink()
        self._audit = audit
        self._hooks = hooks or HookRegistry(self._config)
        self._closed = False
        if not self._config.enabled:
            logger.info("hookgate is disabled; all events are no-ops")

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def audit(self) -> AuditSink:
        return self._audit

    def controller(self) -> LifecycleController:
        """A fresh, idle controller for one task."""
        return LifecycleController(self._config, self._hooks, self._audit)

    def start_task(
        self,
        workspace_roots: Iterable[Path | str],
        initial_task: str = "",
        *,
        task_id: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> LifecycleController:
        """Create a controller and start a task on it."""
        controller = self.controller()
        controller.start(
            workspace_roots, initial_task, task_id=task_id, attributes=attributes
        )
        return controller

    def resume_task(
        self,
        workspace_roots: Iterable[Path | str],
        task_id: str,
        previous_state: PreviousState | None = None,
        *,
        attributes: dict[str, Any] | None = None,
    ) -> LifecycleController:
        """Create a controller for a previously persisted task and resume it."""
        controller = self.controller()
        controller.resume(
            previous_state,
            workspace_roots=workspace_roots,
            task_id=task_id,
            attributes=attributes,
        )
        return controller

    def hooks_for(self, workspace_roots: Iterable[Path | str] = ()) -> HookTable:
        """Resolve the hooks a task in ``workspace_roots`` would get."""
        return self._hooks.resolve(workspace_roots)

    def close(self) -> None:
        """Release the audit store, if the engine opened one."""
        if self._closed:
            return
        self._closed = True
        if self._owns_audit and isinstance(self._audit, SqlAuditSink):
            self._audit.close()

    def __enter__(self) -> Engine:
        return self

    def __exit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Engine(enabled={self._config.enabled}, audit={type(self._audit).__name__})"
