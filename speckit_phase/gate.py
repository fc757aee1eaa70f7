"""Initialization gate: make sure the ``.specify`` scaffold exists."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from .models import InitResult
from .speckit_logging import log_error_with_context, log_gate_event, log_operation
from .toolchain import Toolchain, ToolchainError

logger = logging.getLogger("speckit.gate")


def ensure_initialized(worktree: Union[str, Path], toolchain: Toolchain) -> InitResult:
    """Run ``specify init`` once if the scaffold is missing.

    Already-initialized worktrees return immediately without invoking the
    initializer. Initializer failures come back as ``initialized=False``
    with the cause wrapped in the message.
    """
    if toolchain.scaffold_exists(worktree):
        log_gate_event(str(worktree), initialized=True, performed=False)
        return InitResult(initialized=True)

    try:
        with log_operation("specify_init", worktree=str(worktree)):
            toolchain.initialize(worktree)
    except ToolchainError as e:
        log_error_with_context(e, {"operation": "ensure_initialized", "worktree": str(worktree)})
        log_gate_event(str(worktree), initialized=False, performed=True)
        return InitResult(
            initialized=False,
            message=f"Failed to initialize spec-kit: {e}",
            performed=True,
        )

    logger.info(f"Initialized spec-kit scaffold in {worktree}")
    log_gate_event(str(worktree), initialized=True, performed=True)
    return InitResult(initialized=True, performed=True)
