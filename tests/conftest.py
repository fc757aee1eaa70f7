"""Shared fixtures for speckit-phase tests."""

from pathlib import Path
from typing import Iterable, List, Optional

import pytest

from speckit_phase.models import FeaturePaths
from speckit_phase.toolchain import ResolutionError, ToolchainError


class FakeToolchain:
    """In-memory Toolchain that records every boundary call."""

    def __init__(
        self,
        *,
        installed: bool = True,
        scaffold: bool = True,
        branch: str = "main",
        feature_dir: Optional[Path] = None,
        documents: Iterable[str] = (),
        init_error: Optional[str] = None,
        resolve_error: Optional[str] = None,
        broken_probes: Iterable[str] = (),
        failing_probes: Iterable[str] = (),
        script_output: str = "",
        test_output: str = "",
        test_error: Optional[str] = None,
    ):
        self.installed = installed
        self.scaffold = scaffold
        self.branch = branch
        self.feature_dir = feature_dir or Path("/work/specs/001-feature")
        self.documents = set(documents)
        self.init_error = init_error
        self.resolve_error = resolve_error
        self.broken_probes = set(broken_probes)
        self.failing_probes = set(failing_probes)
        self.script_output = script_output
        self.test_output = test_output
        self.test_error = test_error

        self.calls: List[str] = []
        self.init_calls = 0
        self.scripts: List[tuple] = []
        self.test_targets: List[Optional[str]] = []

    def is_installed(self) -> bool:
        self.calls.append("is_installed")
        return self.installed

    def scaffold_exists(self, worktree) -> bool:
        self.calls.append("scaffold_exists")
        return self.scaffold

    def initialize(self, worktree) -> None:
        self.calls.append("initialize")
        self.init_calls += 1
        if self.init_error:
            raise ToolchainError(self.init_error)
        self.scaffold = True

    def check(self) -> str:
        self.calls.append("check")
        return "All tools available"

    def branch_name(self, worktree) -> str:
        self.calls.append("branch_name")
        return self.branch

    def feature_paths(self, worktree) -> FeaturePaths:
        self.calls.append("feature_paths")
        if self.resolve_error:
            raise ResolutionError(self.resolve_error)
        return FeaturePaths(feature_dir=self.feature_dir)

    def document_exists(self, directory, name: str) -> bool:
        self.calls.append(f"document_exists:{name}")
        if name in self.broken_probes:
            raise PermissionError(f"cannot stat {name}")
        if name in self.failing_probes:
            raise ToolchainError(f"test -f {name} failed")
        return name in self.documents

    def run_script(self, worktree, script: str, *args: str) -> str:
        self.calls.append(f"run_script:{script}")
        self.scripts.append((script, args))
        return self.script_output

    def run_tests(self, worktree, target=None) -> str:
        self.calls.append("run_tests")
        self.test_targets.append(target)
        if self.test_error:
            raise ToolchainError(self.test_error, stdout="1 failed")
        return self.test_output


@pytest.fixture
def fake_toolchain():
    """Installed toolchain with an existing scaffold on the default branch."""
    return FakeToolchain()


@pytest.fixture
def make_toolchain():
    """Factory for configured FakeToolchain instances."""
    return FakeToolchain
