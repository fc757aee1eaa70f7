"""Unit tests for the speckit command dispatcher.

This module tests action routing, the capability short-circuit,
gate ordering and the payload shapes returned for each action.
"""

import json
from pathlib import Path

import pytest

from speckit_phase.config import Settings
from speckit_phase.phase import PhaseEngine
from speckit_phase.workflow import ACTIONS, NOT_INSTALLED_ERROR, SpecKitDispatcher


def dispatcher_for(toolchain, worktree="/work", **settings):
    return SpecKitDispatcher(worktree, toolchain=toolchain, settings=Settings(**settings))


class TestCapabilityProbe:
    """Test cases for the specify-installed short-circuit."""

    @pytest.mark.parametrize("action", list(ACTIONS) + ["bogus"])
    def test_not_installed_short_circuits(self, make_toolchain, action):
        """Every action fails before touching the gate or engine."""
        toolchain = make_toolchain(installed=False, scaffold=False)

        result = dispatcher_for(toolchain).dispatch(action, feature="x")

        assert result == {"success": False, "error": NOT_INSTALLED_ERROR}
        assert toolchain.calls == ["is_installed"]
        assert toolchain.init_calls == 0


class TestRouting:
    """Test cases for action routing."""

    def test_unknown_action(self, fake_toolchain):
        """Unknown actions return a structured failure."""
        result = dispatcher_for(fake_toolchain).dispatch("deploy")

        assert result["success"] is False
        assert result["error"] == "Unknown action: deploy"
        assert "phase" in result["availableActions"]

    def test_results_are_json_serializable(self, make_toolchain):
        """Every payload survives json.dumps."""
        toolchain = make_toolchain(branch="003-auth", documents=["spec.md"])
        dispatcher = dispatcher_for(toolchain)

        for action in ("init", "check", "status", "phase", "context"):
            json.dumps(dispatcher.dispatch(action))


class TestInitAction:
    """Test cases for the init action."""

    def test_init_runs_gate(self, make_toolchain):
        """init initializes a missing scaffold."""
        toolchain = make_toolchain(scaffold=False)

        result = dispatcher_for(toolchain).dispatch("init")

        assert result["success"] is True
        assert "phase" in result["message"]
        assert toolchain.init_calls == 1

    def test_init_failure(self, make_toolchain):
        """Initializer errors surface as the error message."""
        toolchain = make_toolchain(scaffold=False, init_error="network down")

        result = dispatcher_for(toolchain).dispatch("init")

        assert result == {"success": False, "error": "Failed to initialize spec-kit: network down"}


class TestCheckAction:
    """Test cases for the check action."""

    def test_check_does_not_require_gate(self, make_toolchain):
        """check never touches the scaffold."""
        toolchain = make_toolchain(scaffold=False)

        result = dispatcher_for(toolchain).dispatch("check")

        assert result == {"success": True, "output": "All tools available"}
        assert "scaffold_exists" not in toolchain.calls
        assert toolchain.init_calls == 0


class TestPhaseAction:
    """Test cases for the status and phase actions."""

    @pytest.mark.parametrize("action", ["status", "phase"])
    def test_phase_payload(self, make_toolchain, action):
        """status and phase share the same report shape."""
        toolchain = make_toolchain(branch="003-auth", documents=["spec.md", "research.md"])

        result = dispatcher_for(toolchain).dispatch(action)

        assert result["success"] is True
        assert result["phase"] == "plan"
        assert result["docs"] == ["spec.md", "research.md"]
        assert result["readyFor"] == ["plan"]
        assert result["guidance"] == {
            "currentPhase": "plan",
            "description": "Technical plan created",
            "command": "/speckit.plan",
            "next": ["tasks"],
            "optionalCommands": [],
            "message": None,
        }
        assert result["workflow"]["phases"] == ["constitution", "specify", "plan", "tasks", "implement"]

    def test_gate_runs_before_inspection(self, make_toolchain):
        """The scaffold is ensured before the branch is read."""
        toolchain = make_toolchain(scaffold=False, branch="main")

        dispatcher_for(toolchain).dispatch("phase")

        assert toolchain.calls.index("initialize") < toolchain.calls.index("branch_name")

    def test_gate_failure_stops_inspection(self, make_toolchain):
        """A failed gate returns before the engine runs."""
        toolchain = make_toolchain(scaffold=False, init_error="disk full")

        result = dispatcher_for(toolchain).dispatch("phase")

        assert result["success"] is False
        assert "disk full" in result["error"]
        assert "branch_name" not in toolchain.calls

    def test_non_feature_branch_message(self, make_toolchain):
        """The guidance message explains how to create a feature."""
        result = dispatcher_for(make_toolchain(branch="main")).dispatch("phase")

        assert result["phase"] == "specify"
        assert result["readyFor"] == []
        assert result["docs"] == []
        assert "Not on a feature branch" in result["guidance"]["message"]
        assert result["guidance"]["optionalCommands"] == ["/speckit.clarify"]

    def test_resolution_error_is_structured(self, make_toolchain):
        """Resolver failures come back as success=false with the cause."""
        toolchain = make_toolchain(branch="003-auth", resolve_error="prerequisites missing")

        result = dispatcher_for(toolchain).dispatch("phase")

        assert result == {"success": False, "error": "prerequisites missing"}

    def test_failed_probe_still_reports(self, make_toolchain):
        """A document probe failing in the toolchain yields a report, not a failure."""
        toolchain = make_toolchain(branch="003-auth", documents=["spec.md"], failing_probes=["plan.md"])

        result = dispatcher_for(toolchain).dispatch("status")

        assert result["success"] is True
        assert result["phase"] == "plan"
        assert result["docs"] == ["spec.md"]

    def test_constitution_gating_from_settings(self, make_toolchain):
        """Settings select the gating policy."""
        toolchain = make_toolchain(branch="003-auth", documents=["spec.md"])

        result = dispatcher_for(toolchain, constitution_gating=True).dispatch("phase")

        assert result["phase"] == "constitution"
        assert result["readyFor"] == ["constitution"]

    def test_explicit_engine_wins(self, make_toolchain):
        """An injected engine overrides the settings policy."""
        toolchain = make_toolchain(branch="003-auth", documents=["spec.md"])
        dispatcher = SpecKitDispatcher(
            "/work",
            toolchain=toolchain,
            engine=PhaseEngine(constitution_gating=False),
            settings=Settings(constitution_gating=True),
        )

        assert dispatcher.dispatch("phase")["phase"] == "plan"


class TestNewAction:
    """Test cases for feature creation."""

    def test_new_requires_feature(self, make_toolchain):
        """A feature name is mandatory; the gate still runs first."""
        toolchain = make_toolchain(scaffold=False)

        result = dispatcher_for(toolchain).dispatch("new", feature="  ")

        assert result["success"] is False
        assert "Feature name is required" in result["error"]
        assert toolchain.init_calls == 1
        assert toolchain.scripts == []

    def test_new_runs_script_with_json_output(self, make_toolchain):
        """JSON output from create-new-feature.sh is parsed."""
        output = json.dumps({"BRANCH_NAME": "004-login", "SPEC_FILE": "/work/specs/004-login/spec.md"})
        toolchain = make_toolchain(scaffold=False, script_output=output)

        result = dispatcher_for(toolchain).dispatch("new", feature="login flow")

        assert result["success"] is True
        assert result["feature"]["BRANCH_NAME"] == "004-login"
        assert toolchain.scripts == [("create-new-feature.sh", ("--json", "login flow"))]
        assert toolchain.init_calls == 1

    def test_new_with_plain_output(self, make_toolchain):
        """Non-JSON output is passed through without a feature key."""
        toolchain = make_toolchain(script_output="Created branch 004-login")

        result = dispatcher_for(toolchain).dispatch("new", feature="login")

        assert result == {"success": True, "output": "Created branch 004-login"}


class TestContextAction:
    """Test cases for agent context updates."""

    def test_context_uses_configured_agent(self, make_toolchain):
        """update-agent-context.sh receives the configured agent."""
        toolchain = make_toolchain(script_output="updated")

        result = dispatcher_for(toolchain, ai="claude").dispatch("context")

        assert result == {"success": True, "output": "updated"}
        assert toolchain.scripts == [("update-agent-context.sh", ("claude",))]


class TestTestAction:
    """Test cases for the test action."""

    def test_all_tests(self, make_toolchain):
        """The default test type runs the whole suite."""
        toolchain = make_toolchain(test_output="5 passed")

        result = dispatcher_for(toolchain).dispatch("test")

        assert result == {"success": True, "testType": "all", "output": "5 passed"}
        assert toolchain.test_targets == [None]

    def test_typed_tests(self, make_toolchain, tmp_path):
        """A test type selects tests/<type>."""
        (tmp_path / "tests" / "unit").mkdir(parents=True)
        toolchain = make_toolchain(test_output="ok")

        result = dispatcher_for(toolchain, worktree=tmp_path).dispatch("test", test_type="unit")

        assert result["success"] is True
        assert toolchain.test_targets == [str(Path("tests") / "unit")]

    def test_missing_test_directory(self, make_toolchain, tmp_path):
        """A test type without a directory fails cleanly."""
        toolchain = make_toolchain()

        result = dispatcher_for(toolchain, worktree=tmp_path).dispatch("test", test_type="contract")

        assert result["success"] is False
        assert "tests/contract" in result["error"]
        assert toolchain.test_targets == []

    def test_unknown_test_type(self, fake_toolchain):
        """Unsupported test types are rejected."""
        result = dispatcher_for(fake_toolchain).dispatch("test", test_type="fuzz")

        assert result["success"] is False
        assert result["availableTestTypes"] == ["unit", "integration", "contract", "all"]

    def test_failing_tests(self, make_toolchain):
        """Test failures report the runner output."""
        toolchain = make_toolchain(test_error="pytest exited 1")

        result = dispatcher_for(toolchain).dispatch("test")

        assert result == {"success": False, "error": "Tests failed: pytest exited 1", "output": "1 failed"}
