"""Rich formatting helpers for the hookgate CLI.

Rich auto-detects TTY and degrades gracefully when piped (no ANSI codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from hookgate.models.events import HookEventType
from hookgate.models.invocation import DecisionKind

if TYPE_CHECKING:
    from collections.abc import Sequence

    from hookgate.dispatch import DispatchResult
    from hookgate.models.invocation import HookDescriptor
    from hookgate.storage.schema import HookInvocationRow

_DECISION_STYLES = {
    DecisionKind.ALLOWED: "green",
    DecisionKind.DENIED: "red",
    DecisionKind.FAULTED: "yellow",
}


def get_console() -> Console:
    """Create a Rich Console that auto-detects TTY for graceful pipe degradation."""
    return Console(stderr=False)


def format_hooks(descriptors: Sequence[HookDescriptor], console: Console) -> None:
    """Display resolved hooks, one row per event."""
    by_event = {d.event: d for d in descriptors}

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Event", style="cyan")
    table.add_column("Scope", width=8)
    table.add_column("Path")

    for event in HookEventType:
        descriptor = by_event.get(event)
        if descriptor is None:
            table.add_row(event.value, "[dim]-[/dim]", "[dim]none[/dim]")
        else:
            table.add_row(event.value, descriptor.scope.value, escape(str(descriptor.path)))

    console.print(table)


def format_dispatch(result: DispatchResult, console: Console) -> None:
    """Display each hook run of one event and the aggregate decision."""
    if not result.runs:
        console.print(f"[dim]No hooks for {result.event.value}.[/dim]")
    for run in result.runs:
        kind = run.decision.kind
        style = _DECISION_STYLES[kind]
        inv = run.invocation
        console.print(
            f"[{style}]{kind.value}[/{style}] {escape(str(run.descriptor))} "
            f"[dim]({inv.outcome.value}, exit={inv.exit_status}, {inv.duration_ms:.0f}ms)[/dim]"
        )
        if run.decision.fault_reason:
            console.print(f"  Fault:   {escape(run.decision.fault_reason)}")
        if run.decision.cancel and run.decision.reason:
            console.print(f"  Reason:  {escape(run.decision.reason)}")
        if run.decision.context:
            console.print(f"  Context: {escape(run.decision.context)}")
        if inv.stderr:
            console.print(f"  [dim]stderr: {escape(inv.stderr.rstrip())}[/dim]")
    for descriptor in result.skipped:
        console.print(f"[dim]skipped {escape(str(descriptor))}[/dim]")

    style = _DECISION_STYLES[result.decision]
    console.print(f"Decision: [{style}]{result.decision.value}[/{style}]")
    if result.denied and result.reason:
        console.print(f"Reason:   {escape(result.reason)}")


def format_audit_rows(rows: Sequence[HookInvocationRow], console: Console) -> None:
    """Display audit rows in compact table format."""
    if not rows:
        console.print("[dim]No audit records.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Time", style="dim")
    table.add_column("Task", style="yellow", width=8)
    table.add_column("Event", style="cyan")
    table.add_column("Decision")
    table.add_column("Outcome")
    table.add_column("ms", justify="right")
    table.add_column("Hook")
    table.add_column("Detail")

    for row in rows:
        style = _DECISION_STYLES.get(row.decision, "")
        detail = row.rejection_reason or row.fault_reason or ""
        table.add_row(
            row.recorded_at.strftime("%Y-%m-%d %H:%M:%S"),
            row.task_id[:8],
            row.event,
            f"[{style}]{row.decision.value}[/{style}]",
            row.outcome.value,
            f"{row.duration_ms:.0f}",
            escape(row.hook_path),
            escape(detail),
        )

    console.print(table)


def format_error(message: str, console: Console) -> None:
    """Display an error message."""
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)
