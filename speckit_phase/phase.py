"""Phase inference for the Spec Kit workflow.

The engine maps a feature context and the set of documents present in the
feature directory to the phase being worked on, the phase the project is
ready to move into and presentation guidance.

The phase walk is sequential: a later document never compensates for an
earlier missing one, so ``plan.md`` without ``spec.md`` still reports the
phase that writes ``spec.md``.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import AbstractSet, FrozenSet, Optional, Tuple, Union

from .models import (
    DocumentKind,
    FeaturePaths,
    Phase,
    PhaseGuidance,
    PhaseReport,
    PHASE_GUIDANCE,
    gating_documents,
    sorted_phases,
)
from .speckit_logging import log_performance, log_phase_inspection
from .toolchain import Toolchain, ToolchainError

logger = logging.getLogger("speckit.phase")

FEATURE_BRANCH_PATTERN = re.compile(r"^[0-9]{3}-")

NOT_ON_FEATURE_BRANCH = (
    "Not on a feature branch. Use 'speckit({ action: 'new', feature: 'name' })' to create one."
)


def is_feature_branch(branch: str) -> bool:
    """True for branches named like ``001-login-flow``."""
    return bool(FEATURE_BRANCH_PATTERN.match(branch or ""))


class PhaseEngine:
    """Infer the current workflow phase from artifacts on disk."""

    def __init__(self, constitution_gating: bool = False):
        self.constitution_gating = constitution_gating
        self.gates: Tuple[DocumentKind, ...] = gating_documents(constitution_gating)

    @property
    def initial_phase(self) -> Phase:
        return self.gates[0].gates

    def infer_phase(
        self,
        feature_context: Optional[FeaturePaths],
        artifacts: AbstractSet[DocumentKind],
    ) -> PhaseReport:
        """Compute phase, ready-for set and message.

        ``artifacts`` is ignored when ``feature_context`` is None.
        """
        if feature_context is None:
            return PhaseReport(
                phase=Phase.SPECIFY,
                ready_for=frozenset(),
                message=NOT_ON_FEATURE_BRANCH,
            )

        return PhaseReport(
            phase=self._walk(artifacts),
            ready_for=self._ready_for(artifacts),
            message=None,
            docs=tuple(doc for doc in DocumentKind if doc in artifacts),
            branch=feature_context.branch,
            feature_dir=feature_context.feature_dir,
        )

    def _walk(self, artifacts: AbstractSet[DocumentKind]) -> Phase:
        phase = self.initial_phase
        for document in self.gates:
            if document not in artifacts:
                break
            phase = document.gates.following()
        return phase

    def _ready_for(self, artifacts: AbstractSet[DocumentKind]) -> FrozenSet[Phase]:
        for document in self.gates:
            if document not in artifacts:
                return frozenset({document.gates})
        return frozenset({Phase.IMPLEMENT})

    def guidance_for(self, phase: Phase) -> PhaseGuidance:
        return PHASE_GUIDANCE[phase]

    # ------------------------------------------------------------------
    # Inspection against a real worktree
    # ------------------------------------------------------------------

    def probe_artifacts(self, toolchain: Toolchain, directory: Union[str, Path]) -> FrozenSet[DocumentKind]:
        """Probe every document kind; a failed probe counts as absent."""
        present = set()
        for document in DocumentKind:
            try:
                if toolchain.document_exists(directory, document.value):
                    present.add(document)
            except (OSError, ToolchainError) as e:
                logger.debug(f"Probe for {document.value} in {directory} failed, treating as absent: {e}")
        return frozenset(present)

    def resolve_context(self, toolchain: Toolchain, worktree: Union[str, Path]) -> Optional[FeaturePaths]:
        """Feature paths for the worktree, or None off a feature branch.

        ResolutionError from the toolchain propagates unchanged.
        """
        branch = toolchain.branch_name(worktree)
        if not is_feature_branch(branch):
            logger.info(f"Branch '{branch}' is not a feature branch")
            return None
        paths = toolchain.feature_paths(worktree)
        if paths.branch is None:
            paths.branch = branch
        return paths

    @log_performance("inspect_phase")
    def inspect(self, toolchain: Toolchain, worktree: Union[str, Path]) -> PhaseReport:
        context = self.resolve_context(toolchain, worktree)
        artifacts: FrozenSet[DocumentKind] = frozenset()
        if context is not None:
            artifacts = self.probe_artifacts(toolchain, context.feature_dir)

        report = self.infer_phase(context, artifacts)
        log_phase_inspection(
            report.phase.value,
            sorted_phases(report.ready_for),
            feature_dir=str(report.feature_dir) if report.feature_dir else None,
            docs=[doc.value for doc in report.docs],
            constitution_gating=self.constitution_gating,
        )
        return report
