"""Tests for hook descriptors and the decision invariants."""

from __future__ import annotations

from pathlib import Path

import pytest

from hookgate.models.events import HookEventType
from hookgate.models.invocation import (
    GENERIC_REJECTION,
    DecisionKind,
    HookDecision,
    HookDescriptor,
    HookScope,
)


class TestHookDescriptor:
    def test_name_and_str(self):
        descriptor = HookDescriptor(
            path=Path("/hooks/PreToolUse"),
            scope=HookScope.PROJECT,
            event=HookEventType.PRE_TOOL_USE,
        )
        assert descriptor.name == "PreToolUse"
        assert str(descriptor) == f"project:{Path('/hooks/PreToolUse')}"


class TestHookDecision:
    def test_allow(self):
        decision = HookDecision.allow("ctx")
        assert decision.kind is DecisionKind.ALLOWED
        assert decision.proceeds
        assert decision.context == "ctx"
        assert decision.reason is None

    def test_deny_with_reason(self):
        decision = HookDecision.deny("no writes to /etc")
        assert decision.cancel
        assert not decision.proceeds
        assert decision.reason == "no writes to /etc"

    @pytest.mark.parametrize("reason", [None, ""])
    def test_deny_without_reason_uses_generic(self, reason):
        assert HookDecision.deny(reason).reason == GENERIC_REJECTION

    def test_fault_proceeds(self):
        decision = HookDecision.fault("timed-out: timed out after 5s")
        assert decision.kind is DecisionKind.FAULTED
        assert decision.proceeds
        assert decision.fault_reason.startswith("timed-out")

    def test_cancel_must_match_kind(self):
        with pytest.raises(ValueError):
            HookDecision(kind=DecisionKind.ALLOWED, cancel=True)
        with pytest.raises(ValueError):
            HookDecision(kind=DecisionKind.DENIED, cancel=False)
