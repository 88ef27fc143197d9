"""Tests for LifecycleController using in-memory hooks.

Covers the lifecycle state machine, blocking vs advisory dispatch, context
visibility across events, and cancellation.
"""

from __future__ import annotations

import json
import threading
import time

import pytest

from hookgate.config import EngineConfig
from hookgate.context import ContextEntry
from hookgate.exceptions import TaskStateError
from hookgate.lifecycle import LifecycleController
from hookgate.models.events import HookEventType, PreviousState
from hookgate.models.invocation import DecisionKind, InvocationOutcome
from hookgate.models.task import TaskState
from hookgate.testing import ScriptedHook, StaticRegistry

START = HookEventType.TASK_START
RESUME = HookEventType.TASK_RESUME
CANCEL = HookEventType.TASK_CANCEL
PRE = HookEventType.PRE_TOOL_USE
POST = HookEventType.POST_TOOL_USE
PROMPT = HookEventType.USER_PROMPT_SUBMIT


def _controller(config, audit, *hooks) -> LifecycleController:
    return LifecycleController(config, StaticRegistry(hooks), audit)


class TestStateMachine:
    def test_initial_state(self, config, audit):
        controller = _controller(config, audit)
        assert controller.state is TaskState.IDLE
        assert controller.task is None

    def test_start_activates(self, config, audit, workspace):
        controller = _controller(config, audit)
        controller.start([workspace], "Fix the tests")
        assert controller.state is TaskState.ACTIVE
        assert controller.task.state is TaskState.ACTIVE
        assert controller.task.workspace_roots == (workspace.resolve(),)
        assert controller.task.primary_root == workspace.resolve()

    def test_start_twice_rejected(self, config, audit, workspace):
        controller = _controller(config, audit)
        controller.start([workspace])
        with pytest.raises(TaskStateError) as exc_info:
            controller.start([workspace])
        assert exc_info.value.state == "active"

    def test_tool_gate_round_trip(self, config, audit, workspace):
        controller = _controller(config, audit)
        controller.start([workspace])
        assert controller.pre_tool_use("read_file").proceeds
        assert controller.state is TaskState.TOOL_GATE
        controller.post_tool_use("read_file", result="ok")
        assert controller.state is TaskState.ACTIVE

    def test_denial_returns_to_active(self, config, audit, workspace):
        controller = _controller(config, audit, ScriptedHook.denying(PRE, "no"))
        controller.start([workspace])
        assert controller.pre_tool_use("write_to_file").denied
        assert controller.state is TaskState.ACTIVE
        with pytest.raises(TaskStateError):
            controller.post_tool_use("write_to_file")

    def test_pre_tool_use_before_start_rejected(self, config, audit):
        with pytest.raises(TaskStateError):
            _controller(config, audit).pre_tool_use("read_file")

    def test_post_without_pre_rejected(self, config, audit, workspace):
        controller = _controller(config, audit)
        controller.start([workspace])
        with pytest.raises(TaskStateError):
            controller.post_tool_use("read_file")

    def test_events_after_complete_rejected(self, config, audit, workspace):
        controller = _controller(config, audit)
        controller.start([workspace])
        controller.complete()
        assert controller.state is TaskState.COMPLETED
        with pytest.raises(TaskStateError, match="completed"):
            controller.pre_tool_use("read_file")
        with pytest.raises(TaskStateError):
            controller.cancel()

    def test_suspend_and_resume(self, config, audit, workspace):
        resume_hook = ScriptedHook.allowing(RESUME, "welcome back")
        controller = _controller(config, audit, ScriptedHook.allowing(START, "hello"), resume_hook)
        controller.start([workspace])
        task_id = controller.task.task_id
        controller.suspend()
        assert controller.state is TaskState.SUSPENDED
        with pytest.raises(TaskStateError):
            controller.submit_user_input("hi")

        controller.resume(PreviousState(message_count=4)).result(timeout=5)
        assert controller.state is TaskState.ACTIVE
        assert controller.task.task_id == task_id
        [request] = resume_hook.requests
        assert request["taskResume"]["previousState"]["messageCount"] == 4

        text = controller.prepare_model_request().text
        assert "hello" in text
        assert "welcome back" in text

    def test_resume_from_idle(self, config, audit, workspace):
        hook = ScriptedHook.allowing(RESUME)
        registry = StaticRegistry([hook])
        controller = LifecycleController(config, registry, audit)
        controller.resume(workspace_roots=[workspace], task_id="persisted-1").result(timeout=5)
        assert controller.task.task_id == "persisted-1"
        assert registry.resolved == [(workspace.resolve(),)]
        assert hook.requests[0]["taskId"] == "persisted-1"

    def test_resume_from_idle_requires_roots(self, config, audit):
        with pytest.raises(ValueError):
            _controller(config, audit).resume()


class TestZeroHooks:
    def test_every_event_is_a_no_op(self, config, audit, workspace):
        controller = _controller(config, audit)
        controller.start([workspace], "x")
        controller.submit_user_input("hello")
        gate = controller.pre_tool_use("read_file")
        assert gate.decision is DecisionKind.ALLOWED
        assert gate.runs == ()
        controller.post_tool_use("read_file")
        turn = controller.prepare_model_request()
        assert turn.text == ""
        assert not turn.has_context
        assert len(controller.task.context) == 0
        assert audit.records == []


class TestBlockingGate:
    def test_denied_reason_surfaces(self, config, audit, workspace):
        controller = _controller(config, audit, ScriptedHook.denying(PRE, "blocked"))
        controller.start([workspace])
        gate = controller.pre_tool_use("write_to_file", {"path": "/etc/passwd"})
        assert gate.denied
        assert gate.reason == "blocked"

    def test_timeout_proceeds(self, config, audit, workspace):
        hook = ScriptedHook(PRE, outcome=InvocationOutcome.TIMED_OUT)
        controller = _controller(config, audit, hook)
        controller.start([workspace])
        gate = controller.pre_tool_use("read_file")
        assert gate.proceeds
        assert gate.decision is DecisionKind.FAULTED
        assert len(audit.faulted()) == 1

    def test_unencodable_parameters_proceed(self, config, audit, workspace):
        hook = ScriptedHook.denying(PRE, "no")
        controller = _controller(config, audit, hook)
        controller.start([workspace])
        gate = controller.pre_tool_use("write_to_file", {"handle": object()})
        assert gate.proceeds
        assert gate.decision is DecisionKind.FAULTED
        assert hook.calls == 0
        assert controller.state is TaskState.TOOL_GATE
        controller.post_tool_use("write_to_file", result="ok")
        assert controller.state is TaskState.ACTIVE

    def test_pre_tool_use_waits_for_queued_advisory_hooks(self, config, audit, workspace):
        order: list[str] = []
        prompt = ScriptedHook.allowing(PROMPT, on_invoke=lambda r: order.append("prompt"))
        pre = ScriptedHook.allowing(PRE, on_invoke=lambda r: order.append("pre"))
        controller = _controller(config, audit, prompt, pre)
        controller.start([workspace])
        controller.submit_user_input("hi")
        controller.pre_tool_use("read_file")
        assert order == ["prompt", "pre"]


class TestAdvisoryEvents:
    def test_advisory_events_do_not_block(self, config, audit, workspace):
        gate = threading.Event()
        hook = ScriptedHook.allowing(PROMPT, "late", on_invoke=lambda r: gate.wait(5))
        controller = _controller(config, audit, hook)
        controller.start([workspace])
        future = controller.submit_user_input("hi")
        assert not future.done()
        gate.set()
        assert future.result(timeout=5).proceeds

    def test_prepare_model_request_joins_advisory_work(self, config, audit, workspace):
        def slow(request):
            time.sleep(0.2)

        hook = ScriptedHook.allowing(START, "from start", on_invoke=slow)
        controller = _controller(config, audit, hook)
        controller.start([workspace])
        assert "from start" in controller.prepare_model_request().text

    def test_unencodable_advisory_event_does_not_wedge_task(self, config, audit, workspace):
        post = ScriptedHook.allowing(POST, "never")
        prompt = ScriptedHook.allowing(PROMPT, "after")
        controller = _controller(config, audit, post, prompt)
        controller.start([workspace])
        controller.pre_tool_use("write_to_file")
        future = controller.post_tool_use("write_to_file", {"handle": object()})
        assert future.result(timeout=5).decision is DecisionKind.FAULTED
        assert controller.prepare_model_request().text == ""
        controller.submit_user_input("next")
        assert "after" in controller.prepare_model_request().text
        assert post.calls == 0

    def test_failing_dispatch_is_contained(self, config, audit, workspace, monkeypatch):
        def explode(task, event, hooks):
            raise RuntimeError("boom")

        controller = _controller(config, audit, ScriptedHook.allowing(PROMPT))
        controller.start([workspace])
        monkeypatch.setattr(controller._dispatcher, "dispatch", explode)
        result = controller.submit_user_input("hi").result(timeout=5)
        assert result.proceeds
        assert result.runs == ()
        assert controller.prepare_model_request().text == ""

    def test_advisory_veto_ignored(self, config, audit, workspace):
        controller = _controller(config, audit, ScriptedHook.denying(POST, "nope"))
        controller.start([workspace])
        controller.pre_tool_use("read_file")
        result = controller.post_tool_use("read_file").result(timeout=5)
        assert result.proceeds
        assert controller.state is TaskState.ACTIVE


class TestContextVisibility:
    def test_context_not_visible_to_same_event(self, config, audit, workspace):
        a = ScriptedHook.allowing(PRE, "X", name="a")
        b = ScriptedHook.allowing(PRE, name="b")
        registry = StaticRegistry({PRE: [a, b]})
        controller = LifecycleController(config, registry, audit)
        controller.start([workspace])

        controller.pre_tool_use("read_file")

        assert '"X"' not in json.dumps(b.requests[0])
        turn = controller.prepare_model_request()
        assert turn.entries == (ContextEntry("PreToolUse", "X"),)
        assert turn.text == '<hook_context source="PreToolUse">\nX\n</hook_context>'

    def test_context_not_sent_to_later_hooks(self, config, audit, workspace):
        prompt = ScriptedHook.allowing(PROMPT, "PROMPT-CONTEXT")
        pre = ScriptedHook.allowing(PRE)
        controller = _controller(config, audit, prompt, pre)
        controller.start([workspace])
        controller.submit_user_input("hi")
        controller.pre_tool_use("read_file")
        assert "PROMPT-CONTEXT" not in str(pre.requests)

    def test_context_delivered_once_in_order(self, config, audit, workspace):
        controller = _controller(
            config,
            audit,
            ScriptedHook.allowing(START, "one"),
            ScriptedHook.allowing(PROMPT, "two"),
        )
        controller.start([workspace])
        controller.submit_user_input("hi")
        turn = controller.prepare_model_request()
        assert [e.text for e in turn.entries] == ["one", "two"]
        assert controller.prepare_model_request().text == ""

    def test_denied_context_not_buffered(self, config, audit, workspace):
        hook = ScriptedHook(PRE, {"cancel": True, "errorMessage": "no", "contextModification": "why"})
        controller = _controller(config, audit, hook)
        controller.start([workspace])
        controller.pre_tool_use("write_to_file")
        assert controller.prepare_model_request().text == ""

    def test_cap_overflow_dropped(self, user_hooks_dir, audit, workspace):
        small = ContextEntry("TaskStart", "a" * 10).size
        config = EngineConfig(user_hooks_dir=user_hooks_dir, context_cap_bytes=small)
        controller = _controller(
            config,
            audit,
            ScriptedHook.allowing(START, "a" * 10),
            ScriptedHook.allowing(PROMPT, "b" * 10),
        )
        controller.start([workspace])
        controller.submit_user_input("hi")
        turn = controller.prepare_model_request()
        assert [e.text for e in turn.entries] == ["a" * 10]
        assert controller.task.context.dropped == 1


class TestCancel:
    def test_cancel_does_not_wait_for_hooks(self, config, audit, workspace):
        gate = threading.Event()
        hook = ScriptedHook.allowing(CANCEL, on_invoke=lambda r: gate.wait(5))
        controller = _controller(config, audit, hook)
        controller.start([workspace])
        future = controller.cancel()
        assert controller.state is TaskState.CANCELLED
        assert not future.done()
        gate.set()
        assert future.result(timeout=5).proceeds
        assert hook.requests[0]["taskCancel"]["completionStatus"] == "cancelled"

    def test_cancel_discards_context(self, config, audit, workspace):
        controller = _controller(
            config,
            audit,
            ScriptedHook.allowing(START, "start ctx"),
            ScriptedHook.allowing(CANCEL, "cancel ctx"),
        )
        controller.start([workspace]).result(timeout=5)
        controller.cancel().result(timeout=5)
        assert len(controller.task.context) == 0
        with pytest.raises(TaskStateError):
            controller.prepare_model_request()

    def test_cancel_veto_ignored(self, config, audit, workspace):
        controller = _controller(config, audit, ScriptedHook.denying(CANCEL, "stay"))
        controller.start([workspace])
        assert controller.cancel().result(timeout=5).proceeds
        assert controller.state is TaskState.CANCELLED

    def test_cancel_from_tool_gate(self, config, audit, workspace):
        controller = _controller(config, audit)
        controller.start([workspace])
        controller.pre_tool_use("execute_command")
        controller.cancel()
        assert controller.state is TaskState.CANCELLED


class TestRunOperation:
    def test_allowed_operation_runs_and_reports(self, config, audit, workspace):
        post = ScriptedHook.allowing(POST)
        controller = _controller(config, audit, post)
        controller.start([workspace])

        outcome = controller.run_operation("read_file", {"path": "a.py"}, lambda: "contents")

        assert outcome.executed
        assert outcome.value == "contents"
        outcome.post.result(timeout=5)
        payload = post.requests[0]["postToolUse"]
        assert payload["toolName"] == "read_file"
        assert payload["result"] == "contents"
        assert payload["success"] is True
        assert controller.state is TaskState.ACTIVE

    def test_denied_operation_never_runs(self, config, audit, workspace):
        ran = []
        controller = _controller(config, audit, ScriptedHook.denying(PRE, "blocked"))
        controller.start([workspace])
        outcome = controller.run_operation("execute_command", {}, lambda: ran.append(1))
        assert not outcome.executed
        assert outcome.denied
        assert outcome.reason == "blocked"
        assert ran == []

    def test_failing_operation_reported_and_reraised(self, config, audit, workspace):
        post = ScriptedHook.allowing(POST)
        controller = _controller(config, audit, post)
        controller.start([workspace])

        def explode():
            raise OSError("permission denied")

        with pytest.raises(OSError):
            controller.run_operation("write_to_file", {}, explode)

        controller.prepare_model_request()
        payload = post.requests[0]["postToolUse"]
        assert payload["success"] is False
        assert "permission denied" in payload["result"]
        assert controller.state is TaskState.ACTIVE
