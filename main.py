"""MCP server exposing the Spec Kit workflow phase tool."""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

from mcp.server.fastmcp import FastMCP

from speckit_phase import PHASE_GUIDANCE, Phase, Settings, SpecKitDispatcher
from speckit_phase.speckit_logging import log_error_with_context, setup_logging

mcp = FastMCP("speckit")


PROJECT_MARKER_DIRECTORIES = (".specify", ".git")


def _candidate_bases() -> List[Path]:
    cwd = Path.cwd().resolve()
    return [cwd, *cwd.parents]


def _locate_workspace_root() -> Optional[Path]:
    for base in _candidate_bases():
        for marker in PROJECT_MARKER_DIRECTORIES:
            if (base / marker).exists():
                return base
    return None


def _resolve_root(root: Optional[str], settings: Settings) -> Path:
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists():
            raise ValueError(f"Provided root '{root}' does not exist.")
        return resolved

    if settings.project_root:
        env_path = settings.project_root.resolve()
        if not env_path.exists():
            raise ValueError(
                f"Environment variable SPECKIT_PROJECT_ROOT points to '{settings.project_root}', which does not exist."
            )
        return env_path

    return _locate_workspace_root() or Path.cwd().resolve()


@mcp.tool()
def speckit(
    action: str,
    feature: Optional[str] = None,
    testType: Optional[str] = None,
    root: Optional[str] = None,
) -> str:
    """Run spec-kit workflows for specification-driven development.

    Actions: init, check, status, phase, new (requires feature), test
    (optional testType: unit, integration, contract, all), context.
    """

    try:
        settings = Settings.from_env()
        worktree = _resolve_root(root, settings)
    except ValueError as e:
        log_error_with_context(e, {"operation": "resolve_root", "root": root})
        return json.dumps({"success": False, "error": str(e)})

    dispatcher = SpecKitDispatcher(worktree, settings=settings)
    return json.dumps(dispatcher.dispatch(action, feature=feature, test_type=testType))


@mcp.resource("speckit://workflow")
def resource_workflow() -> str:
    """Resource view describing the workflow phases and their commands."""

    lines = ["Spec Kit Workflow"]
    for phase in Phase.ordered():
        guidance = PHASE_GUIDANCE[phase]
        lines.append("")
        lines.append(f"- {phase.value}: {guidance.description}")
        lines.append(f"  Command: {guidance.command}")
        if guidance.next:
            lines.append(f"  Next: {', '.join(p.value for p in guidance.next)}")
        if guidance.optional_commands:
            lines.append(f"  Optional: {', '.join(guidance.optional_commands)}")

    return "\n".join(lines)


if __name__ == "__main__":
    _settings = Settings.from_env()
    setup_logging(_settings.log_level, _settings.log_file)
    mcp.run(transport="stdio")
