"""Process-backed hook invocation.

ProcessInvoker spawns a hook executable, writes the request to its stdin,
closes stdin, and collects stdout and stderr until the process exits or
the wall-clock timeout expires. On timeout the whole process group is
killed so helper processes holding the pipes open cannot stall the read.

The invoker reports what happened at the process level only. It never
interprets the output and never raises for hook failures: spawn errors
and timeouts come back as HookInvocation records.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from hookgate.models.invocation import HookInvocation, InvocationOutcome

if TYPE_CHECKING:
    from collections.abc import Mapping

    from hookgate.models.invocation import HookDescriptor

logger = logging.getLogger(__name__)

_POSIX = os.name == "posix"

# Grace period for reaping a killed process and draining its pipes
_REAP_TIMEOUT_SECONDS = 2.0


@runtime_checkable
class Hook(Protocol):
    """Anything that can decide on a serialized request.

    ``ProcessHook`` runs an executable; tests use in-memory fakes from
    :mod:`hookgate.testing`. Implementations must not raise for hook
    failures; they report them through the returned invocation.
    """

    @property
    def descriptor(self) -> HookDescriptor:
        ...

    def invoke(self, request_body: str, timeout: float) -> HookInvocation:
        ...


class ProcessInvoker:
    """Runs hook executables as child processes.

    Args:
        cwd: Working directory for hook processes (usually the primary
            workspace root). None inherits the host's working directory.
        env: Extra environment variables layered over ``os.environ``.
    """

    def __init__(
        self,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._cwd = cwd
        self._env = dict(env or {})

    def spawn(
        self,
        descriptor: HookDescriptor,
        request_body: str,
        timeout: float,
        *,
        env: Mapping[str, str] | None = None,
    ) -> HookInvocation:
        """Run one hook to completion or timeout.

        Args:
            descriptor: The hook executable to run.
            request_body: Serialized request; written to stdin verbatim.
            timeout: Wall-clock limit in seconds.
            env: Per-invocation environment additions.

        Returns:
            HookInvocation with captured channels, exit status, duration and
            a process-level outcome (SUCCEEDED, TIMED_OUT or CRASHED).
        """
        process_env = {**os.environ, **self._env, **(env or {})}
        cwd = str(self._cwd) if self._cwd is not None and self._cwd.is_dir() else None
        started = time.monotonic()

        try:
            proc = subprocess.Popen(
                [str(descriptor.path)],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=cwd,
                env=process_env,
                start_new_session=_POSIX,
            )
        except OSError as exc:
            logger.debug("Failed to spawn hook %s", descriptor, exc_info=True)
            return HookInvocation(
                descriptor=descriptor,
                request_body=request_body,
                duration_ms=_elapsed_ms(started),
                outcome=InvocationOutcome.CRASHED,
                error=f"spawn failed: {exc}",
            )

        payload = request_body.encode("utf-8")
        try:
            stdout, stderr = proc.communicate(input=payload, timeout=timeout)
        except subprocess.TimeoutExpired:
            stdout, stderr = self._kill(proc)
            logger.debug("Hook %s timed out after %.2fs", descriptor, timeout)
            return HookInvocation(
                descriptor=descriptor,
                request_body=request_body,
                stdout=_decode(stdout),
                stderr=_decode(stderr),
                exit_status=None,
                duration_ms=_elapsed_ms(started),
                outcome=InvocationOutcome.TIMED_OUT,
                error=f"timed out after {timeout:g}s",
            )
        except BaseException:
            # The child must not outlive a failed read
            self._kill(proc)
            raise

        return HookInvocation(
            descriptor=descriptor,
            request_body=request_body,
            stdout=_decode(stdout),
            stderr=_decode(stderr),
            exit_status=proc.returncode,
            duration_ms=_elapsed_ms(started),
            outcome=InvocationOutcome.SUCCEEDED,
        )

    # ------------------------------------------------------------------
    # Internal methods
    # ------------------------------------------------------------------

    def _kill(self, proc: subprocess.Popen) -> tuple[bytes, bytes]:
        """Forcibly terminate a hook (and its process group) and reap it."""
        if _POSIX:
            try:
                os.killpg(proc.pid, signal.SIGKILL)
            except (ProcessLookupError, PermissionError):
                proc.kill()
        else:
            proc.kill()
        try:
            return proc.communicate(timeout=_REAP_TIMEOUT_SECONDS)
        except (subprocess.TimeoutExpired, OSError, ValueError):
            logger.warning(
                "Hook process %d did not release its pipes after kill", proc.pid
            )
            for stream in (proc.stdout, proc.stderr):
                if stream is not None:
                    stream.close()
            proc.wait(timeout=_REAP_TIMEOUT_SECONDS)
            return b"", b""


class ProcessHook:
    """A hook backed by an executable on disk."""

    def __init__(
        self,
        descriptor: HookDescriptor,
        invoker: ProcessInvoker | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._descriptor = descriptor
        self._invoker = invoker or ProcessInvoker()
        self._env = dict(env or {})

    @property
    def descriptor(self) -> HookDescriptor:
        return self._descriptor

    def invoke(self, request_body: str, timeout: float) -> HookInvocation:
        env = {"HOOKGATE_EVENT": self._descriptor.event.value, **self._env}
        return self._invoker.spawn(self._descriptor, request_body, timeout, env=env)

    def __repr__(self) -> str:
        return f"ProcessHook({self._descriptor})"


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000.0

