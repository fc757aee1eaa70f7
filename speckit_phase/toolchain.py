"""External collaborators: the specify CLI, git and the Spec Kit helper scripts.

Everything here talks to a process or the filesystem. The phase engine and
the initialization gate only see the ``Toolchain`` protocol so tests can
substitute an in-memory fake.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Union

from .models import FeaturePaths
from .speckit_logging import log_performance

logger = logging.getLogger("speckit.toolchain")

PathLike = Union[str, Path]

SCAFFOLD_DIR = ".specify"
SCRIPTS_DIR = Path(SCAFFOLD_DIR) / "scripts" / "bash"
PREREQUISITES_SCRIPT = "check-prerequisites.sh"
NEW_FEATURE_SCRIPT = "create-new-feature.sh"
AGENT_CONTEXT_SCRIPT = "update-agent-context.sh"
DEFAULT_BRANCH = "main"


class ToolchainError(RuntimeError):
    """An external command could not be run or exited non-zero."""

    def __init__(
        self,
        message: str,
        *,
        command: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
    ):
        super().__init__(message)
        self.command = list(command) if command else []
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class ResolutionError(ToolchainError):
    """The active feature's directory could not be resolved."""


def parse_key_value_lines(text: str) -> Dict[str, str]:
    """Parse ``KEY: value`` lines, splitting on the first ``": "`` only."""
    parsed: Dict[str, str] = {}
    for line in text.strip().splitlines():
        key, sep, value = line.partition(": ")
        key = key.strip()
        if key and sep:
            parsed[key] = value
    return parsed


class Toolchain(Protocol):
    """Boundary operations consumed by the gate, the engine and the dispatcher."""

    def is_installed(self) -> bool: ...

    def scaffold_exists(self, worktree: PathLike) -> bool: ...

    def initialize(self, worktree: PathLike) -> None: ...

    def check(self) -> str: ...

    def branch_name(self, worktree: PathLike) -> str: ...

    def feature_paths(self, worktree: PathLike) -> FeaturePaths: ...

    def document_exists(self, directory: PathLike, name: str) -> bool: ...

    def run_script(self, worktree: PathLike, script: str, *args: str) -> str: ...

    def run_tests(self, worktree: PathLike, target: Optional[str] = None) -> str: ...


class SpecifyToolchain:
    """``Toolchain`` backed by the specify CLI, git and bash."""

    def __init__(
        self,
        *,
        ai: str = "opencode",
        timeout: float = 60.0,
        test_command: str = "pytest",
        executable: str = "specify",
    ):
        self.ai = ai
        self.timeout = timeout
        self.test_command = test_command
        self.executable = executable

    def _run(self, args: Sequence[str], cwd: Optional[PathLike] = None) -> str:
        command = list(args)
        display = " ".join(shlex.quote(part) for part in command)
        logger.debug(f"Running: {display} (cwd={cwd})")
        try:
            result = subprocess.run(
                command,
                cwd=str(cwd) if cwd is not None else None,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise ToolchainError(f"Command not found: {command[0]}", command=command) from e
        except subprocess.TimeoutExpired as e:
            raise ToolchainError(
                f"Command '{display}' timed out after {self.timeout:g}s", command=command
            ) from e
        except OSError as e:
            raise ToolchainError(f"Command '{display}' could not be started: {e}", command=command) from e

        if result.returncode != 0:
            detail = (result.stderr or result.stdout).strip()
            raise ToolchainError(
                f"Command '{display}' failed with exit code {result.returncode}: {detail}",
                command=command,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return result.stdout

    # ------------------------------------------------------------------
    # specify CLI
    # ------------------------------------------------------------------

    def is_installed(self) -> bool:
        try:
            self._run([self.executable, "--version"])
        except ToolchainError as e:
            logger.warning(f"specify CLI unavailable: {e}")
            return False
        return True

    def scaffold_exists(self, worktree: PathLike) -> bool:
        return (Path(worktree) / SCAFFOLD_DIR).is_dir()

    @log_performance("specify_init")
    def initialize(self, worktree: PathLike) -> None:
        self._run([self.executable, "init", ".", "--ai", self.ai, "--force"], cwd=worktree)

    def check(self) -> str:
        return self._run([self.executable, "check"])

    # ------------------------------------------------------------------
    # git and helper scripts
    # ------------------------------------------------------------------

    def branch_name(self, worktree: PathLike) -> str:
        """Current branch, or ``main`` when git cannot tell."""
        try:
            branch = self._run(["git", "rev-parse", "--abbrev-ref", "HEAD"], cwd=worktree).strip()
        except ToolchainError as e:
            logger.debug(f"Falling back to '{DEFAULT_BRANCH}': {e}")
            return DEFAULT_BRANCH
        return branch or DEFAULT_BRANCH

    @log_performance("resolve_feature_paths")
    def feature_paths(self, worktree: PathLike) -> FeaturePaths:
        script = Path(worktree) / SCRIPTS_DIR / PREREQUISITES_SCRIPT
        try:
            output = self._run(["bash", str(script), "--paths-only"], cwd=worktree)
        except ToolchainError as e:
            raise ResolutionError(
                f"Could not resolve feature paths: {e}",
                command=e.command,
                returncode=e.returncode,
                stdout=e.stdout,
                stderr=e.stderr,
            ) from e

        paths = parse_key_value_lines(output)
        try:
            return FeaturePaths.from_mapping(paths)
        except KeyError:
            raise ResolutionError(
                f"{PREREQUISITES_SCRIPT} did not report FEATURE_DIR (got keys: {sorted(paths)})",
                stdout=output,
            )

    def document_exists(self, directory: PathLike, name: str) -> bool:
        return (Path(directory) / name).is_file()

    def run_script(self, worktree: PathLike, script: str, *args: str) -> str:
        path = Path(worktree) / SCRIPTS_DIR / script
        return self._run(["bash", str(path), *args], cwd=worktree)

    def run_tests(self, worktree: PathLike, target: Optional[str] = None) -> str:
        command: List[str] = shlex.split(self.test_command)
        if target:
            command.append(target)
        return self._run(command, cwd=worktree)
