"""hookgate fire -- run one event through the resolved hooks."""

from __future__ import annotations

import json

import click

from hookgate.cli.formatting import format_dispatch
from hookgate.models.events import HookEventType

# Exit status when a PreToolUse hook denies the operation
DENIED_EXIT_CODE = 2


@click.command()
@click.argument("event", type=click.Choice([e.value for e in HookEventType]))
@click.option(
    "-w",
    "--workspace",
    default=".",
    type=click.Path(exists=True, file_okay=False),
    help="Primary workspace root (default: current directory).",
)
@click.option(
    "-p",
    "--payload",
    default="{}",
    help="Event payload as a JSON object with wire (camelCase) keys.",
)
@click.pass_context
def fire(ctx: click.Context, event: str, workspace: str, payload: str) -> None:
    """Fire EVENT for a throwaway task and show every hook's decision.

    Exits with status 2 when a PreToolUse hook denies the operation.
    """
    from hookgate.cli import _engine_session
    from hookgate.context import ContextAccumulator
    from hookgate.dispatch import HookDispatcher
    from hookgate.models.events import HookEvent, payload_type_for
    from hookgate.models.task import Task

    event_type = HookEventType(event)

    with _engine_session(ctx) as (engine, console):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise click.BadParameter(f"not valid JSON: {exc.msg}", param_hint="--payload")
        if not isinstance(data, dict):
            raise click.BadParameter("must be a JSON object", param_hint="--payload")

        task = Task(
            workspace_roots=(workspace,),
            context=ContextAccumulator(engine.config.context_cap_bytes),
        )
        if "task_metadata" in payload_type_for(event_type).model_fields:
            data.setdefault(
                "taskMetadata", task.metadata().model_dump(mode="json", by_alias=True)
            )
        hook_event = HookEvent(event_type, payload_type_for(event_type).model_validate(data))

        table = engine.hooks_for(task.workspace_roots)
        dispatcher = HookDispatcher(engine.config, engine.audit)
        result = dispatcher.dispatch(task, hook_event, table.for_event(event_type))
        format_dispatch(result, console)

        if result.denied:
            raise SystemExit(DENIED_EXIT_CODE)
