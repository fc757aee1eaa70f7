"""Environment-driven settings for speckit-phase."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

TRUTHY = {"1", "true", "yes", "on"}

DEFAULT_AI = "opencode"
DEFAULT_TIMEOUT = 60.0
DEFAULT_TEST_COMMAND = "pytest"
DEFAULT_LOG_LEVEL = "INFO"


def _env_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in TRUTHY


@dataclass(slots=True)
class Settings:
    """Runtime configuration.

    Every field maps to a ``SPECKIT_*`` environment variable, see ``from_env``.
    """

    project_root: Optional[Path] = None
    constitution_gating: bool = False
    ai: str = DEFAULT_AI
    command_timeout: float = DEFAULT_TIMEOUT
    test_command: str = DEFAULT_TEST_COMMAND
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: Optional[Path] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        timeout_raw = env.get("SPECKIT_COMMAND_TIMEOUT")
        timeout = DEFAULT_TIMEOUT
        if timeout_raw:
            try:
                timeout = float(timeout_raw)
            except ValueError:
                raise ValueError(
                    f"SPECKIT_COMMAND_TIMEOUT must be a number of seconds, got '{timeout_raw}'."
                )
            if timeout <= 0:
                raise ValueError("SPECKIT_COMMAND_TIMEOUT must be positive.")

        root = env.get("SPECKIT_PROJECT_ROOT")
        log_file = env.get("SPECKIT_LOG_FILE")

        return cls(
            project_root=Path(root).expanduser() if root else None,
            constitution_gating=_env_bool(env.get("SPECKIT_CONSTITUTION_GATING")),
            ai=env.get("SPECKIT_AI") or DEFAULT_AI,
            command_timeout=timeout,
            test_command=env.get("SPECKIT_TEST_COMMAND") or DEFAULT_TEST_COMMAND,
            log_level=(env.get("SPECKIT_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
            log_file=Path(log_file).expanduser() if log_file else None,
        )
