"""hookgate CLI -- operator diagnostics for hook deployments.

This module is NEVER imported from hookgate/__init__.py.
It is only loaded via the ``hookgate`` entry point defined in pyproject.toml.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

try:
    import click
except ImportError:
    raise ImportError(
        "CLI dependencies not installed. Install with: pip install hookgate[cli]"
    ) from None

from hookgate.cli.formatting import format_error, get_console

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rich.console import Console

    from hookgate.engine import Engine


@click.group()
@click.option(
    "--user-hooks-dir",
    default=None,
    type=click.Path(file_okay=False),
    help="User-global hook directory (default: ~/.hookgate/hooks).",
)
@click.option(
    "--timeout",
    default=None,
    type=float,
    help="Per-hook timeout in seconds.",
)
@click.pass_context
def cli(ctx: click.Context, user_hooks_dir: str | None, timeout: float | None) -> None:
    """hookgate: inspect and exercise lifecycle hooks."""
    ctx.ensure_object(dict)
    overrides: dict[str, object] = {}
    if user_hooks_dir is not None:
        overrides["user_hooks_dir"] = user_hooks_dir
    if timeout is not None:
        overrides["timeout_seconds"] = timeout
    ctx.obj["overrides"] = overrides


def _get_engine(ctx: click.Context) -> Engine:
    """Build an Engine from the environment plus command-line overrides."""
    from hookgate.config import EngineConfig
    from hookgate.engine import Engine

    config = EngineConfig.from_env(**ctx.obj["overrides"])
    return Engine(config)


@contextmanager
def _engine_session(ctx: click.Context) -> Iterator[tuple[Engine, Console]]:
    """Open an Engine, yield (engine, console), and close it afterwards.

    Exceptions are formatted as CLI errors with exit code 1.
    """
    console = get_console()
    try:
        engine = _get_engine(ctx)
        try:
            yield engine, console
        finally:
            engine.close()
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None


# Register subcommands after cli group is defined
from hookgate.cli.commands.hooks import hooks  # noqa: E402
from hookgate.cli.commands.fire import fire  # noqa: E402
from hookgate.cli.commands.audit import audit  # noqa: E402

cli.add_command(hooks)
cli.add_command(fire)
cli.add_command(audit)
