"""speckit-phase: Spec Kit workflow phase tracking."""

from .config import Settings
from .gate import ensure_initialized
from .models import (
    DocumentKind,
    FeaturePaths,
    InitResult,
    Phase,
    PhaseGuidance,
    PhaseReport,
    PHASE_GUIDANCE,
)
from .phase import PhaseEngine, is_feature_branch
from .toolchain import ResolutionError, SpecifyToolchain, Toolchain, ToolchainError
from .workflow import SpecKitDispatcher

__all__ = [
    "DocumentKind",
    "FeaturePaths",
    "InitResult",
    "Phase",
    "PhaseEngine",
    "PhaseGuidance",
    "PhaseReport",
    "PHASE_GUIDANCE",
    "ResolutionError",
    "Settings",
    "SpecKitDispatcher",
    "SpecifyToolchain",
    "Toolchain",
    "ToolchainError",
    "ensure_initialized",
    "is_feature_branch",
]
