"""Engine configuration.

EngineConfig holds per-deployment settings: hook directories, the
per-invocation timeout, the context buffer cap and the audit store.
Values can be given directly or read from ``HOOKGATE_*`` environment
variables via :meth:`EngineConfig.from_env`.
"""

from __future__ import annotations

import getpass
import math
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from hookgate.exceptions import ConfigError

DEFAULT_PROTOCOL_VERSION = "hookgate/1"
DEFAULT_TIMEOUT_SECONDS = 5.0
MAX_TIMEOUT_SECONDS = 60.0
DEFAULT_CONTEXT_CAP_BYTES = 50_000

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _default_user_hooks_dir() -> Path:
    return Path.home() / ".hookgate" / "hooks"


def _default_actor() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        # No passwd entry (e.g. containers running as an arbitrary uid)
        return "unknown"


class EngineConfig(BaseModel):
    """Per-deployment engine settings.

    Attributes:
        enabled: When False, no hooks are resolved and every event is a no-op.
        protocol_version: Value of the ``protocolVersion`` request field.
        timeout_seconds: Wall-clock limit for one hook process.
        context_cap_bytes: Maximum UTF-8 size of a task's context buffer.
        user_hooks_dir: User-global hook directory (lower precedence).
        project_hooks_dir: Project hook directory, relative to the
            primary workspace root (higher precedence).
        actor_id: Identifier sent as ``actorId`` in every request.
        audit_db_path: SQLite file for the audit trail, or None to log only.
    """

    model_config = {"frozen": True}

    enabled: bool = True
    protocol_version: str = DEFAULT_PROTOCOL_VERSION
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    context_cap_bytes: int = DEFAULT_CONTEXT_CAP_BYTES
    user_hooks_dir: Path = Field(default_factory=_default_user_hooks_dir)
    project_hooks_dir: Path = Path(".hookgate") / "hooks"
    actor_id: str = Field(default_factory=_default_actor)
    audit_db_path: Optional[str] = None

    @field_validator("timeout_seconds")
    @classmethod
    def _check_timeout(cls, value: float) -> float:
        if not math.isfinite(value) or value <= 0 or value > MAX_TIMEOUT_SECONDS:
            raise ValueError(
                f"must be > 0 and <= {MAX_TIMEOUT_SECONDS:g} seconds, got {value}"
            )
        return value

    @field_validator("context_cap_bytes")
    @classmethod
    def _check_cap(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"must be positive, got {value}")
        return value

    @field_validator("project_hooks_dir")
    @classmethod
    def _check_project_dir(cls, value: Path) -> Path:
        if value.is_absolute():
            raise ValueError("must be relative to the workspace root")
        return value

    @classmethod
    def build(cls, **settings: Any) -> EngineConfig:
        """Construct a config, converting pydantic errors to ConfigError."""
        try:
            return cls(**settings)
        except ValidationError as exc:
            first = exc.errors()[0]
            setting = ".".join(str(p) for p in first.get("loc", ())) or "config"
            raise ConfigError(setting, first.get("msg", str(exc))) from None

    @classmethod
    def from_env(cls, **overrides: Any) -> EngineConfig:
        """Build a config from ``HOOKGATE_*`` environment variables.

        Explicit keyword overrides win over the environment.

        Raises:
            ConfigError: If a variable holds an unparseable or invalid value.
        """
        settings: dict[str, Any] = {}
        env = os.environ

        if env.get("HOOKGATE_DISABLED", "").strip().lower() in _TRUTHY:
            settings["enabled"] = False
        if "HOOKGATE_TIMEOUT" in env:
            settings["timeout_seconds"] = _parse_number(
                "HOOKGATE_TIMEOUT", env["HOOKGATE_TIMEOUT"], float
            )
        if "HOOKGATE_CONTEXT_CAP" in env:
            settings["context_cap_bytes"] = _parse_number(
                "HOOKGATE_CONTEXT_CAP", env["HOOKGATE_CONTEXT_CAP"], int
            )
        if env.get("HOOKGATE_USER_HOOKS_DIR"):
            settings["user_hooks_dir"] = Path(env["HOOKGATE_USER_HOOKS_DIR"]).expanduser()
        if env.get("HOOKGATE_ACTOR"):
            settings["actor_id"] = env["HOOKGATE_ACTOR"]
        if env.get("HOOKGATE_AUDIT_DB"):
            settings["audit_db_path"] = env["HOOKGATE_AUDIT_DB"]

        settings.update(overrides)
        return cls.build(**settings)


def _parse_number(name: str, raw: str, kind: type) -> Any:
    try:
        return kind(raw.strip())
    except ValueError:
        raise ConfigError(name, f"expected a {kind.__name__}, got {raw!r}") from None
