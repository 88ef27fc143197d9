"""Decision semantics for hook invocations.

Each invocation ends in exactly one of three decisions:

- ALLOWED: a well-formed response that does not veto.
- DENIED: a well-formed response with ``cancel: true`` on a blocking
  event. Only this path can stop an action.
- FAULTED: everything else (timeout, crash, spawn failure, empty or
  malformed output). Faulted lets the action proceed, like ALLOWED, but is
  reported separately so a broken hook never looks like an approving one.

The interpreter is fail-open: it never raises and never turns a failure
into a denial.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING

from hookgate.codec import decode_response
from hookgate.models.invocation import (
    HookDecision,
    HookInvocation,
    InvocationOutcome,
)

if TYPE_CHECKING:
    from hookgate.models.events import HookEventType

logger = logging.getLogger(__name__)


def interpret(
    invocation: HookInvocation,
    event_type: HookEventType,
) -> tuple[HookDecision, HookInvocation]:
    """Turn one invocation into a decision.

    Args:
        invocation: Raw process-level record from the invoker.
        event_type: The event the hook ran for. A veto is honored only
            when the event is blocking (PreToolUse).

    Returns:
        ``(decision, invocation)`` where the invocation's outcome is
        finalized: a run that exited but produced an undecodable response
        becomes MALFORMED_OUTPUT (exit 0) or CRASHED (non-zero exit).
    """
    if invocation.outcome is not InvocationOutcome.SUCCEEDED:
        reason = invocation.error or invocation.outcome.value
        return HookDecision.fault(f"{invocation.outcome.value}: {reason}"), invocation

    decoded = decode_response(invocation.stdout)
    response = decoded.response
    if response is None:
        if invocation.exit_status not in (0, None):
            outcome = InvocationOutcome.CRASHED
            reason = f"exited with status {invocation.exit_status}; {decoded.error}"
        else:
            outcome = InvocationOutcome.MALFORMED_OUTPUT
            reason = decoded.error or "malformed output"
        finalized = dataclasses.replace(invocation, outcome=outcome, error=reason)
        return HookDecision.fault(f"{outcome.value}: {reason}"), finalized

    if invocation.exit_status not in (0, None):
        # Process health is not a business decision: a valid response wins.
        logger.debug(
            "Hook %s exited with status %s but returned a valid response",
            invocation.descriptor, invocation.exit_status,
        )

    context = response.context_modification
    if response.cancel:
        if event_type.blocking:
            return HookDecision.deny(response.error_message, context=context), invocation
        logger.warning(
            "Hook %s asked to cancel non-blocking event %s; ignoring veto",
            invocation.descriptor, event_type.value,
        )
    return HookDecision.allow(context=context), invocation
