"""Wire codec for the hook process protocol.

Requests are a single JSON object: a common envelope plus the event's
payload nested under the event's payload key. Responses must be exactly
one JSON object; anything else is a decode failure that the interpreter
turns into a faulted (fail-open) decision.

Decoding never raises. Callers get a DecodeResult that either carries a
parsed HookResponse or a human-readable failure reason for the audit log.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, Field, StrictBool, StrictStr, ValidationError
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from hookgate.config import EngineConfig
    from hookgate.models.events import HookEvent
    from hookgate.models.task import Task

# Longest excerpt of bad output kept in a failure reason
_EXCERPT_LIMIT = 200


class HookRequestEnvelope(BaseModel):
    """Fields common to every request, regardless of event."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "frozen": True,
    }

    protocol_version: str
    hook_name: str
    timestamp: datetime
    task_id: str
    workspace_roots: list[str]
    actor_id: str


class HookResponse(BaseModel):
    """Parsed hook response.

    Types are strict: ``"cancel": "true"`` is a protocol error, not a veto.
    Unknown keys are ignored so hooks can carry their own annotations.
    """

    model_config = {"extra": "ignore", "populate_by_name": True, "frozen": True}

    cancel: StrictBool = False
    context_modification: StrictStr = Field(default="", alias="contextModification")
    error_message: Optional[StrictStr] = Field(default=None, alias="errorMessage")


@dataclass(frozen=True)
class DecodeResult:
    """Outcome of decoding one hook's stdout.

    Exactly one of ``response`` and ``error`` is set.
    """

    response: HookResponse | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.response is not None


def build_request(
    event: HookEvent,
    task: Task,
    config: EngineConfig,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Build the request object for one event as a JSON-compatible dict.

    The accumulated context buffer is deliberately absent: hooks decide on
    the event alone, never on context produced by other hooks.
    """
    envelope = HookRequestEnvelope(
        protocol_version=config.protocol_version,
        hook_name=event.name,
        timestamp=now or datetime.now(timezone.utc),
        task_id=task.task_id,
        workspace_roots=[str(root) for root in task.workspace_roots],
        actor_id=config.actor_id,
    )
    body = envelope.model_dump(mode="json", by_alias=True)
    body[event.type.payload_key] = event.payload_dict()
    return body


def encode_request(
    event: HookEvent,
    task: Task,
    config: EngineConfig,
    *,
    now: datetime | None = None,
) -> str:
    """Serialize the request for one event to a single-line JSON string."""
    return json.dumps(
        build_request(event, task, config, now=now),
        ensure_ascii=False,
        separators=(",", ":"),
    )


def decode_response(raw: str | bytes) -> DecodeResult:
    """Parse a hook's stdout into a HookResponse.

    Surrounding whitespace is tolerated. Empty output, non-JSON text,
    trailing bytes after the object, multiple objects, non-object JSON and
    wrongly-typed fields are all failures.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            return DecodeResult(error=f"output is not valid UTF-8: {exc}")

    text = raw.strip()
    if not text:
        return DecodeResult(error="empty output")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        if exc.msg == "Extra data":
            return DecodeResult(
                error=f"unexpected data after JSON object at char {exc.pos}: "
                f"{_excerpt(text[exc.pos:])}"
            )
        return DecodeResult(error=f"invalid JSON ({exc.msg}): {_excerpt(text)}")
    except RecursionError:
        return DecodeResult(error="invalid JSON (nesting too deep)")
    except ValueError as exc:
        # e.g. integer literals beyond the interpreter's digit limit
        return DecodeResult(error=f"invalid JSON ({exc})")

    if not isinstance(data, dict):
        return DecodeResult(
            error=f"expected a JSON object, got {type(data).__name__}"
        )

    try:
        return DecodeResult(response=HookResponse.model_validate(data))
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        return DecodeResult(error=f"invalid response fields ({problems})")


def _excerpt(text: str) -> str:
    if len(text) <= _EXCERPT_LIMIT:
        return repr(text)
    return repr(text[:_EXCERPT_LIMIT]) + "..."
