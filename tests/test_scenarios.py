"""End-to-end scenarios with real hook executables.

Each test installs Python hook scripts into temporary user/project hook
directories and drives a task through an Engine, as a host would.
"""

from __future__ import annotations

import json

import pytest

from hookgate.config import EngineConfig
from hookgate.engine import Engine
from hookgate.models.invocation import DecisionKind, HookScope, InvocationOutcome
from tests.conftest import ECHO_REQUEST_HOOK, posix_only, reply_hook, write_hook

pytestmark = posix_only


@pytest.fixture
def engine_for(audit):
    engines = []

    def make(config: EngineConfig) -> Engine:
        eng = Engine(config, audit=audit)
        engines.append(eng)
        return eng

    yield make
    for eng in engines:
        eng.close()


class TestPreToolUse:
    def test_denial_blocks_action(self, config, engine_for, workspace, user_hooks_dir):
        write_hook(user_hooks_dir, "PreToolUse", reply_hook({"cancel": True, "errorMessage": "blocked"}))
        controller = engine_for(config).start_task([workspace])
        ran = []

        outcome = controller.run_operation("write_to_file", {"path": "x"}, lambda: ran.append(1))

        assert not outcome.executed
        assert outcome.reason == "blocked"
        assert ran == []

    def test_crash_trace_with_valid_response_proceeds(
        self, config, engine_for, workspace, user_hooks_dir, audit
    ):
        trace = 'Traceback (most recent call last):\n  File "hook", line 1\nKeyError: x\n'
        write_hook(
            user_hooks_dir,
            "PreToolUse",
            reply_hook({"cancel": False}, stderr=trace, exit_status=1),
        )
        controller = engine_for(config).start_task([workspace])

        gate = controller.pre_tool_use("read_file")

        assert gate.proceeds
        assert gate.decision is DecisionKind.ALLOWED
        [(descriptor, text)] = audit.diagnostics
        assert text == trace
        assert descriptor.event.value == "PreToolUse"

    def test_timeout_fails_open(self, user_hooks_dir, engine_for, workspace, audit):
        write_hook(
            user_hooks_dir,
            "PreToolUse",
            """
            import json, sys, time
            time.sleep(30)
            print(json.dumps({"cancel": True}))
            """,
        )
        config = EngineConfig(user_hooks_dir=user_hooks_dir, timeout_seconds=0.5)
        controller = engine_for(config).start_task([workspace])

        gate = controller.pre_tool_use("execute_command", {"command": "rm -rf /"})

        assert gate.proceeds
        assert gate.decision is DecisionKind.FAULTED
        [record] = audit.records
        assert record.outcome is InvocationOutcome.TIMED_OUT
        assert record.decision is DecisionKind.FAULTED

    def test_malformed_output_fails_open(self, config, engine_for, workspace, user_hooks_dir, audit):
        write_hook(
            user_hooks_dir,
            "PreToolUse",
            """
            print("sure, go ahead")
            """,
        )
        controller = engine_for(config).start_task([workspace])
        assert controller.pre_tool_use("read_file").proceeds
        [record] = audit.records
        assert record.outcome is InvocationOutcome.MALFORMED_OUTPUT

    def test_project_hook_shadows_user_hook(
        self, config, engine_for, workspace, user_hooks_dir, project_hooks_dir, audit
    ):
        write_hook(user_hooks_dir, "PreToolUse", reply_hook({"cancel": True, "errorMessage": "user"}))
        write_hook(project_hooks_dir, "PreToolUse", reply_hook({"cancel": False}))
        controller = engine_for(config).start_task([workspace])

        assert controller.pre_tool_use("read_file").proceeds
        [record] = audit.records
        assert record.scope is HookScope.PROJECT


class TestContextFlow:
    def test_task_start_context_reaches_first_model_request(
        self, config, engine_for, workspace, user_hooks_dir
    ):
        write_hook(
            user_hooks_dir,
            "TaskStart",
            reply_hook({"cancel": False, "contextModification": "Repo uses pytest."}),
        )
        controller = engine_for(config).start_task([workspace], "Fix the tests")
        turn = controller.prepare_model_request()
        assert turn.text == '<hook_context source="TaskStart">\nRepo uses pytest.\n</hook_context>'

    def test_request_never_carries_buffered_context(
        self, config, engine_for, workspace, user_hooks_dir
    ):
        write_hook(
            user_hooks_dir,
            "TaskStart",
            reply_hook({"cancel": False, "contextModification": "START-MARKER"}),
        )
        write_hook(user_hooks_dir, "UserPromptSubmit", ECHO_REQUEST_HOOK)
        controller = engine_for(config).start_task([workspace], "go")

        controller.submit_user_input("hello there")
        turn = controller.prepare_model_request()

        [start_entry, prompt_entry] = turn.entries
        assert start_entry.text == "START-MARKER"
        request = json.loads(prompt_entry.text)
        assert "START-MARKER" not in prompt_entry.text
        assert request["hookName"] == "UserPromptSubmit"
        assert request["userPromptSubmit"]["prompt"] == "hello there"
        assert request["taskId"] == controller.task.task_id
        assert request["actorId"] == "tester"

    def test_hook_runs_in_primary_workspace(self, config, engine_for, workspace, user_hooks_dir):
        write_hook(
            user_hooks_dir,
            "TaskStart",
            """
            import json, os, sys
            sys.stdin.read()
            print(json.dumps({"contextModification": os.getcwd()}))
            """,
        )
        controller = engine_for(config).start_task([workspace])
        [entry] = controller.prepare_model_request().entries
        assert entry.text == str(workspace.resolve())
