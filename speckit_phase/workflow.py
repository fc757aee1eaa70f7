"""Command dispatch for the ``speckit`` tool.

This module routes an action name to the initialization gate, the phase
engine or a passthrough toolchain call, and turns every outcome into a
plain dictionary with a ``success`` flag.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from .config import Settings
from .gate import ensure_initialized
from .models import Phase, PhaseReport, sorted_phases
from .phase import PhaseEngine
from .speckit_logging import log_error_with_context, log_operation
from .toolchain import (
    AGENT_CONTEXT_SCRIPT,
    NEW_FEATURE_SCRIPT,
    ResolutionError,
    SpecifyToolchain,
    Toolchain,
    ToolchainError,
)

logger = logging.getLogger("speckit.workflow")

ACTIONS = ("init", "check", "status", "phase", "new", "test", "context")
TEST_TYPES = ("unit", "integration", "contract", "all")

NOT_INSTALLED_ERROR = (
    "specify CLI not installed. See https://speckit.org/#quick-start for installation instructions."
)
WORKFLOW_DESCRIPTION = (
    "Run the appropriate /speckit.* command for each phase. "
    "Use 'speckit({ action: 'phase' })' to check progress."
)


def failure(error: str, **extra: Any) -> Dict[str, Any]:
    return {"success": False, "error": error, **extra}


def workflow_overview() -> Dict[str, Any]:
    return {
        "phases": [phase.value for phase in Phase.ordered()],
        "description": WORKFLOW_DESCRIPTION,
    }


class SpecKitDispatcher:
    """Route ``speckit`` actions for a single worktree."""

    def __init__(
        self,
        worktree: Union[str, Path],
        toolchain: Optional[Toolchain] = None,
        engine: Optional[PhaseEngine] = None,
        settings: Optional[Settings] = None,
    ):
        self.worktree = Path(worktree)
        self.settings = settings or Settings()
        self.toolchain = toolchain or SpecifyToolchain(
            ai=self.settings.ai,
            timeout=self.settings.command_timeout,
            test_command=self.settings.test_command,
        )
        self.engine = engine or PhaseEngine(constitution_gating=self.settings.constitution_gating)
        self._handlers: Dict[str, Callable[..., Dict[str, Any]]] = {
            "init": self.init,
            "check": self.check,
            "status": self.phase,
            "phase": self.phase,
            "new": self.new_feature,
            "test": self.run_tests,
            "context": self.update_context,
        }

    def dispatch(
        self,
        action: str,
        feature: Optional[str] = None,
        test_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Run one action to completion and return its payload."""
        if not self.toolchain.is_installed():
            return failure(NOT_INSTALLED_ERROR)

        handler = self._handlers.get(action)
        if handler is None:
            return failure(f"Unknown action: {action}", availableActions=list(ACTIONS))

        try:
            with log_operation(f"speckit_{action}", worktree=str(self.worktree)):
                return handler(feature=feature, test_type=test_type)
        except ToolchainError as e:
            log_error_with_context(e, {"operation": action, "worktree": str(self.worktree)})
            return failure(str(e))

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _gate(self) -> Optional[Dict[str, Any]]:
        result = ensure_initialized(self.worktree, self.toolchain)
        if not result.initialized:
            return failure(result.message or "Failed to initialize spec-kit")
        return None

    def init(self, **_: Any) -> Dict[str, Any]:
        blocked = self._gate()
        if blocked:
            return blocked
        return {
            "success": True,
            "message": "spec-kit initialized. Use 'speckit({ action: 'phase' })' to check current workflow phase.",
        }

    def check(self, **_: Any) -> Dict[str, Any]:
        try:
            output = self.toolchain.check()
        except ToolchainError as e:
            return failure(f"Check failed: {e}")
        return {"success": True, "output": output}

    def phase(self, **_: Any) -> Dict[str, Any]:
        blocked = self._gate()
        if blocked:
            return blocked

        try:
            report = self.engine.inspect(self.toolchain, self.worktree)
        except ResolutionError as e:
            log_error_with_context(e, {"operation": "inspect_phase", "worktree": str(self.worktree)})
            return failure(str(e))

        return self.phase_payload(report)

    def phase_payload(self, report: PhaseReport) -> Dict[str, Any]:
        guidance = self.engine.guidance_for(report.phase)
        return {
            "success": True,
            "phase": report.phase.value,
            "docs": [doc.value for doc in report.docs],
            "readyFor": sorted_phases(report.ready_for),
            "guidance": {
                "currentPhase": report.phase.value,
                "description": guidance.description,
                "command": guidance.command,
                "next": [phase.value for phase in guidance.next],
                "optionalCommands": list(guidance.optional_commands),
                "message": report.message,
            },
            "workflow": workflow_overview(),
        }

    def new_feature(self, feature: Optional[str] = None, **_: Any) -> Dict[str, Any]:
        blocked = self._gate()
        if blocked:
            return blocked

        if not feature or not feature.strip():
            return failure("Feature name is required for 'new' action")

        output = self.toolchain.run_script(self.worktree, NEW_FEATURE_SCRIPT, "--json", feature.strip())
        payload: Dict[str, Any] = {"success": True, "output": output}
        try:
            payload["feature"] = json.loads(output)
        except ValueError:
            logger.debug("create-new-feature output is not JSON; returning raw output only")
        return payload

    def update_context(self, **_: Any) -> Dict[str, Any]:
        blocked = self._gate()
        if blocked:
            return blocked

        output = self.toolchain.run_script(self.worktree, AGENT_CONTEXT_SCRIPT, self.settings.ai)
        return {"success": True, "output": output}

    def run_tests(self, test_type: Optional[str] = None, **_: Any) -> Dict[str, Any]:
        test_type = test_type or "all"
        if test_type not in TEST_TYPES:
            return failure(
                f"Unknown test type: {test_type}",
                availableTestTypes=list(TEST_TYPES),
            )

        blocked = self._gate()
        if blocked:
            return blocked

        target = None
        if test_type != "all":
            test_dir = self.worktree / "tests" / test_type
            if not test_dir.is_dir():
                return failure(f"No tests/{test_type} directory in {self.worktree}")
            target = str(Path("tests") / test_type)

        try:
            output = self.toolchain.run_tests(self.worktree, target)
        except ToolchainError as e:
            return failure(f"Tests failed: {e}", output=e.stdout)
        return {"success": True, "testType": test_type, "output": output}
