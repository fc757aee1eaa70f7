"""Data models for speckit-phase.

This module contains the value types shared by the phase engine, the
initialization gate and the dispatcher: workflow phases, the documents
Spec Kit generates, resolved feature paths and the report returned by
an inspection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple


class Phase(str, Enum):
    """Spec Kit workflow phases, in workflow order."""

    CONSTITUTION = "constitution"
    SPECIFY = "specify"
    PLAN = "plan"
    TASKS = "tasks"
    IMPLEMENT = "implement"

    @classmethod
    def ordered(cls) -> Tuple["Phase", ...]:
        return tuple(cls)

    def following(self) -> "Phase":
        """Return the next phase; IMPLEMENT is terminal and returns itself."""
        order = Phase.ordered()
        index = order.index(self)
        return order[min(index + 1, len(order) - 1)]


class DocumentKind(str, Enum):
    """Documents the specify toolchain writes into a feature directory."""

    SPEC = "spec.md"
    PLAN = "plan.md"
    TASKS = "tasks.md"
    RESEARCH = "research.md"
    DATA_MODEL = "data-model.md"
    QUICKSTART = "quickstart.md"
    CONSTITUTION = "constitution.md"

    @property
    def gates(self) -> Optional[Phase]:
        """Phase this document completes, or None for advisory documents."""
        return _GATED_PHASE.get(self)

    @property
    def is_gating(self) -> bool:
        return self in _GATED_PHASE


_GATED_PHASE: Dict[DocumentKind, Phase] = {
    DocumentKind.CONSTITUTION: Phase.CONSTITUTION,
    DocumentKind.SPEC: Phase.SPECIFY,
    DocumentKind.PLAN: Phase.PLAN,
    DocumentKind.TASKS: Phase.TASKS,
}


def gating_documents(constitution_gating: bool) -> Tuple[DocumentKind, ...]:
    """Ordered gating documents for the chosen policy."""
    documents = (DocumentKind.SPEC, DocumentKind.PLAN, DocumentKind.TASKS)
    if constitution_gating:
        return (DocumentKind.CONSTITUTION,) + documents
    return documents


# Keys printed by check-prerequisites.sh --paths-only
PATH_KEYS = ("REPO_ROOT", "BRANCH", "FEATURE_DIR", "FEATURE_SPEC", "IMPL_PLAN", "TASKS")


@dataclass(slots=True)
class FeaturePaths:
    """Typed view over the paths reported for the active feature."""

    feature_dir: Path
    repo_root: Optional[Path] = None
    branch: Optional[str] = None
    feature_spec: Optional[Path] = None
    impl_plan: Optional[Path] = None
    tasks: Optional[Path] = None
    raw: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, str]) -> "FeaturePaths":
        """Build from a resolver mapping.

        Raises KeyError when FEATURE_DIR is missing or blank.
        """
        feature_dir = (data.get("FEATURE_DIR") or "").strip()
        if not feature_dir:
            raise KeyError("FEATURE_DIR")

        def _optional_path(key: str) -> Optional[Path]:
            value = (data.get(key) or "").strip()
            return Path(value) if value else None

        return cls(
            feature_dir=Path(feature_dir),
            repo_root=_optional_path("REPO_ROOT"),
            branch=(data.get("BRANCH") or "").strip() or None,
            feature_spec=_optional_path("FEATURE_SPEC"),
            impl_plan=_optional_path("IMPL_PLAN"),
            tasks=_optional_path("TASKS"),
            raw=dict(data),
        )

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "feature_dir": str(self.feature_dir),
            "repo_root": str(self.repo_root) if self.repo_root else None,
            "branch": self.branch,
            "feature_spec": str(self.feature_spec) if self.feature_spec else None,
            "impl_plan": str(self.impl_plan) if self.impl_plan else None,
            "tasks": str(self.tasks) if self.tasks else None,
        }


@dataclass(frozen=True, slots=True)
class PhaseGuidance:
    """Presentation record for a phase. Has no effect on phase computation."""

    description: str
    command: str
    next: Tuple[Phase, ...] = ()
    optional_commands: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "command": self.command,
            "next": [phase.value for phase in self.next],
            "optionalCommands": list(self.optional_commands),
        }


PHASE_GUIDANCE: Dict[Phase, PhaseGuidance] = {
    Phase.CONSTITUTION: PhaseGuidance(
        description="Project principles established",
        command="/speckit.constitution",
        next=(Phase.SPECIFY,),
    ),
    Phase.SPECIFY: PhaseGuidance(
        description="Requirements defined",
        command="/speckit.specify",
        next=(Phase.PLAN,),
        optional_commands=("/speckit.clarify",),
    ),
    Phase.PLAN: PhaseGuidance(
        description="Technical plan created",
        command="/speckit.plan",
        next=(Phase.TASKS,),
    ),
    Phase.TASKS: PhaseGuidance(
        description="Tasks broken down",
        command="/speckit.tasks",
        next=(Phase.IMPLEMENT,),
        optional_commands=("/speckit.analyze",),
    ),
    Phase.IMPLEMENT: PhaseGuidance(
        description="Implementation in progress",
        command="/speckit.implement",
    ),
}

_missing_guidance = set(Phase) - set(PHASE_GUIDANCE)
if _missing_guidance:
    raise RuntimeError(
        f"PHASE_GUIDANCE is missing records for: {sorted(p.value for p in _missing_guidance)}"
    )


@dataclass(frozen=True, slots=True)
class PhaseReport:
    """Result of a phase inspection."""

    phase: Phase
    ready_for: FrozenSet[Phase] = frozenset()
    message: Optional[str] = None
    docs: Tuple[DocumentKind, ...] = ()
    branch: Optional[str] = None
    feature_dir: Optional[Path] = None

    @property
    def guidance(self) -> PhaseGuidance:
        return PHASE_GUIDANCE[self.phase]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "phase": self.phase.value,
            "readyFor": sorted_phases(self.ready_for),
            "message": self.message,
            "docs": [doc.value for doc in self.docs],
            "branch": self.branch,
            "featureDir": str(self.feature_dir) if self.feature_dir else None,
        }


@dataclass(frozen=True, slots=True)
class InitResult:
    """Outcome of the initialization gate."""

    initialized: bool
    message: Optional[str] = None
    performed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "initialized": self.initialized,
            "message": self.message,
            "performed": self.performed,
        }


def sorted_phases(phases: Iterable[Phase]) -> List[str]:
    """Phase values in workflow order."""
    wanted = set(phases)
    return [phase.value for phase in Phase.ordered() if phase in wanted]
