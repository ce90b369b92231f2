"""Configuration loaded from environment variables.

All settings have sensible defaults. Override via TASKTREE_* env vars.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


@dataclass
class TreeConfig:
    """View and logging configuration."""

    # The task tree view is an experiment: both flags must be on.
    experiments: bool = False
    task_tree_view_enabled: bool = False
    hide_inactive_sessions: bool = False

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None

    @property
    def task_tree_active(self) -> bool:
        return self.experiments and self.task_tree_view_enabled

    @classmethod
    def from_env(cls) -> TreeConfig:
        """Load configuration from TASKTREE_* environment variables."""
        overrides = {
            k: v for k, v in os.environ.items() if k.startswith("TASKTREE_")
        }
        if overrides:
            logger.info(
                "TreeConfig.from_env: TASKTREE_* env overrides: %s",
                ", ".join(f"{k}={v}" for k, v in sorted(overrides.items())),
            )
        else:
            logger.debug("TreeConfig.from_env: no TASKTREE_* env vars set, using defaults")

        return cls(
            experiments=_env_flag("TASKTREE_EXPERIMENTS", cls.experiments),
            task_tree_view_enabled=_env_flag(
                "TASKTREE_TASK_TREE_VIEW", cls.task_tree_view_enabled
            ),
            hide_inactive_sessions=_env_flag(
                "TASKTREE_HIDE_INACTIVE", cls.hide_inactive_sessions
            ),
            log_level=os.getenv("TASKTREE_LOG_LEVEL", cls.log_level).upper(),
            log_file=os.getenv("TASKTREE_LOG_FILE") or cls.log_file,
        )
