"""hookgate hooks -- show which hooks a workspace resolves."""

from __future__ import annotations

import click

from hookgate.cli.formatting import format_hooks


@click.command()
@click.option(
    "-w",
    "--workspace",
    default=".",
    type=click.Path(exists=True, file_okay=False),
    help="Primary workspace root (default: current directory).",
)
@click.pass_context
def hooks(ctx: click.Context, workspace: str) -> None:
    """List the hook resolved for each event, with its scope and path."""
    from hookgate.cli import _engine_session

    with _engine_session(ctx) as (engine, console):
        if not engine.config.enabled:
            console.print("[yellow]hookgate is disabled (HOOKGATE_DISABLED).[/yellow]")
        table = engine.hooks_for([workspace])
        format_hooks(table.descriptors(), console)
