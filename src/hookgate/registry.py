"""Hook discovery and per-task hook tables.

HookRegistry scans the user-global hook directory and then the project
hook directory of a workspace. A hook is a regular, executable file whose
name is exactly a canonical event name. A project hook replaces the user
hook for the same event; resolution is per event name, not per file.

Resolution produces a HookTable, which is immutable and lives for the
whole task. Hooks added to disk later are picked up by the next task.
"""

from __future__ import annotations

import logging
import os
import types
from collections.abc import Callable, Iterable, Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from hookgate.invoker import ProcessHook, ProcessInvoker
from hookgate.models.events import HookEventType
from hookgate.models.invocation import HookDescriptor, HookScope

if TYPE_CHECKING:
    from hookgate.config import EngineConfig
    from hookgate.invoker import Hook

logger = logging.getLogger(__name__)

HookFactory = Callable[[HookDescriptor], "Hook"]

_EVENT_NAMES: dict[str, HookEventType] = {e.value: e for e in HookEventType}


@runtime_checkable
class HookSource(Protocol):
    """Anything that can produce a HookTable for a task's workspace."""

    def resolve(self, workspace_roots: Iterable[Path | str] = ()) -> HookTable:
        ...


class HookTable:
    """Immutable event -> ordered hooks mapping for one task.

    Hooks for an event are run in tuple order.
    """

    def __init__(self, hooks: Mapping[HookEventType, Sequence[Hook]] | None = None) -> None:
        frozen = {event: tuple(seq) for event, seq in (hooks or {}).items() if seq}
        self._hooks = types.MappingProxyType(frozen)

    @classmethod
    def empty(cls) -> HookTable:
        return cls()

    def for_event(self, event_type: HookEventType) -> tuple[Hook, ...]:
        """Hooks to run for an event, in order. Empty if none resolved."""
        return self._hooks.get(event_type, ())

    def descriptors(self) -> tuple[HookDescriptor, ...]:
        """All resolved descriptors, in canonical event order."""
        return tuple(
            hook.descriptor
            for event in HookEventType
            for hook in self._hooks.get(event, ())
        )

    @property
    def events(self) -> frozenset[HookEventType]:
        return frozenset(self._hooks)

    def __len__(self) -> int:
        return sum(len(seq) for seq in self._hooks.values())

    def __repr__(self) -> str:
        parts = ", ".join(
            f"{event.value}={[str(h.descriptor) for h in seqs]}"
            for event, seqs in self._hooks.items()
        )
        return f"HookTable({parts})"


class HookRegistry:
    """Resolves hook executables for a workspace.

    Usage::

        registry = HookRegistry(config)
        table = registry.resolve([Path("/work/project")])
        for hook in table.for_event(HookEventType.PRE_TOOL_USE):
            ...

    Args:
        config: Engine configuration (hook directories, enabled flag).
        hook_factory: Builds a Hook from a descriptor. Defaults to a
            ProcessHook running with the workspace root as cwd.
    """

    def __init__(
        self,
        config: EngineConfig,
        *,
        hook_factory: HookFactory | None = None,
    ) -> None:
        self._config = config
        self._hook_factory = hook_factory

    def project_dir(self, workspace_root: Path) -> Path:
        return workspace_root / self._config.project_hooks_dir

    def discover(self, workspace_roots: Iterable[Path | str] = ()) -> list[HookDescriptor]:
        """Resolve descriptors, user scope first, project overrides applied.

        Only the primary (first) workspace root contributes project hooks.

        Returns:
            Descriptors in canonical event order, at most one per event.
        """
        if not self._config.enabled:
            logger.debug("Hooks disabled; resolving nothing")
            return []

        roots = [Path(r) for r in workspace_roots]
        by_event: dict[HookEventType, HookDescriptor] = {}

        for descriptor in self._scan(self._config.user_hooks_dir, HookScope.USER):
            by_event[descriptor.event] = descriptor

        if roots:
            project = self.project_dir(roots[0])
            for descriptor in self._scan(project, HookScope.PROJECT):
                shadowed = by_event.get(descriptor.event)
                if shadowed is not None:
                    logger.debug(
                        "Project hook %s overrides user hook %s",
                        descriptor.path, shadowed.path,
                    )
                by_event[descriptor.event] = descriptor

        return [by_event[e] for e in HookEventType if e in by_event]

    def resolve(self, workspace_roots: Iterable[Path | str] = ()) -> HookTable:
        """Resolve a HookTable for a task rooted at ``workspace_roots``."""
        roots = [Path(r) for r in workspace_roots]
        factory = self._hook_factory or self._default_factory(
            roots[0] if roots else None, self._config.protocol_version
        )
        hooks: dict[HookEventType, list[Hook]] = {}
        for descriptor in self.discover(roots):
            hooks.setdefault(descriptor.event, []).append(factory(descriptor))
        table = HookTable(hooks)
        logger.debug("Resolved %d hook(s): %r", len(table), table)
        return table

    # ------------------------------------------------------------------
    # Internal methods
    # ------------------------------------------------------------------

    @staticmethod
    def _default_factory(cwd: Path | None, protocol_version: str) -> HookFactory:
        invoker = ProcessInvoker(cwd=cwd, env={"HOOKGATE_PROTOCOL": protocol_version})

        def factory(descriptor: HookDescriptor) -> Hook:
            return ProcessHook(descriptor, invoker)

        return factory

    def _scan(self, directory: Path, scope: HookScope) -> list[HookDescriptor]:
        """List eligible hooks in one directory.

        Names are compared exactly against directory entries, so the match
        stays case-sensitive even on case-insensitive filesystems.
        """
        directory = directory.expanduser()
        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except FileNotFoundError:
            return []
        except NotADirectoryError:
            logger.warning("Hook path %s is not a directory; skipping", directory)
            return []
        except OSError as exc:
            logger.warning("Cannot read %s hook directory %s: %s", scope.value, directory, exc)
            return []

        found: list[HookDescriptor] = []
        for entry in entries:
            event = _EVENT_NAMES.get(entry.name)
            if event is None:
                stem = entry.name.split(".", 1)[0]
                if stem in _EVENT_NAMES:
                    logger.debug(
                        "Ignoring %s: hook files must be named exactly %r",
                        entry.path, stem,
                    )
                continue
            try:
                is_file = entry.is_file()
            except OSError as exc:
                logger.warning("Cannot stat hook %s: %s", entry.path, exc)
                continue
            if not is_file:
                logger.debug("Ignoring %s: not a regular file", entry.path)
                continue
            if not os.access(entry.path, os.X_OK):
                logger.warning("Ignoring hook %s: file is not executable", entry.path)
                continue
            found.append(
                HookDescriptor(
                    path=Path(entry.path).resolve(),
                    scope=scope,
                    event=event,
                )
            )
        return found
