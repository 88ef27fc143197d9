"""hookgate audit -- show recent hook runs from the audit store."""

from __future__ import annotations

import os

import click

from hookgate.cli.formatting import format_audit_rows, format_error, get_console


@click.command()
@click.option(
    "--db",
    "db_path",
    default=None,
    envvar="HOOKGATE_AUDIT_DB",
    help="Path to the SQLite audit database.",
)
@click.option("-n", "--limit", default=20, type=int, help="Maximum number of rows to show.")
@click.option("--task", "task_id", default=None, help="Only show runs for this task ID.")
def audit(db_path: str | None, limit: int, task_id: str | None) -> None:
    """Show the most recent hook runs, newest first."""
    from hookgate.audit import SqlAuditSink
    from hookgate.storage.sqlite import SqliteAuditRepository

    console = get_console()
    if not db_path:
        format_error("No audit database. Pass --db or set HOOKGATE_AUDIT_DB.", console)
        raise SystemExit(1)
    if not os.path.exists(db_path):
        format_error(f"Database not found: {db_path}", console)
        raise SystemExit(1)

    try:
        sink = SqlAuditSink.open(db_path)
        try:
            with sink.session() as session:
                rows = SqliteAuditRepository(session).recent(limit, task_id=task_id)
                format_audit_rows(rows, console)
        finally:
            sink.close()
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None
