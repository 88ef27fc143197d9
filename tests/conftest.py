"""Shared test fixtures for hookgate.

Provides an in-memory audit store, engine configuration pointing at
temporary hook directories, and a factory that writes real executable
hook scripts (Python, run through the test interpreter's shebang).
"""

from __future__ import annotations

import os
import stat
import sys
import textwrap
from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker

from hookgate.audit import MemoryAuditSink
from hookgate.config import EngineConfig
from hookgate.storage.engine import create_audit_engine, init_db

posix_only = pytest.mark.skipif(
    sys.platform == "win32", reason="hook scripts rely on shebang execution"
)


@pytest.fixture
def engine():
    """In-memory SQLite audit engine with all tables created."""
    eng = create_audit_engine(":memory:")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    """Session with automatic rollback after each test."""
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    sess = SessionLocal()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def user_hooks_dir(tmp_path: Path) -> Path:
    path = tmp_path / "home" / ".hookgate" / "hooks"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A workspace root with an (empty) project hook directory."""
    root = tmp_path / "project"
    (root / ".hookgate" / "hooks").mkdir(parents=True)
    return root


@pytest.fixture
def project_hooks_dir(workspace: Path) -> Path:
    return workspace / ".hookgate" / "hooks"


@pytest.fixture
def config(user_hooks_dir: Path) -> EngineConfig:
    return EngineConfig(
        user_hooks_dir=user_hooks_dir,
        actor_id="tester",
        timeout_seconds=5.0,
    )


@pytest.fixture
def audit() -> MemoryAuditSink:
    return MemoryAuditSink()


# ------------------------------------------------------------------
# Hook script helpers
# ------------------------------------------------------------------

def write_hook(directory: Path, name: str, body: str, *, executable: bool = True) -> Path:
    """Write a Python hook script named ``name`` into ``directory``.

    ``body`` is dedented and placed after a shebang for the running
    interpreter, so the script works without a system ``python``.
    """
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body).lstrip("\n"))
    mode = stat.S_IRUSR | stat.S_IWUSR
    if executable:
        mode |= stat.S_IXUSR
    os.chmod(path, mode)
    return path


def reply_hook(response: dict, *, stderr: str = "", exit_status: int = 0) -> str:
    """Body of a hook that consumes stdin and prints a fixed response."""
    return f"""
        import json, sys
        sys.stdin.read()
        sys.stderr.write({stderr!r})
        print(json.dumps({response!r}))
        sys.exit({exit_status})
    """


# Hook that echoes the request it received into its context
ECHO_REQUEST_HOOK = """
    import json, sys
    request = json.load(sys.stdin)
    print(json.dumps({"cancel": False, "contextModification": json.dumps(request)}))
"""
