"""User preferences — persistent view settings stored in ~/.tasktree/preferences.json.

The TUI writes these when the user flips the task tree toggle, so the
choice survives restarts. Values here override the YAML/env config.
"""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path

from tasktree.engine.config import TreeConfig

logger = logging.getLogger(__name__)

PREFS_PATH = Path.home() / ".tasktree" / "preferences.json"


@dataclass
class UserPreferences:
    """User preference settings.

    Attributes:
        experiments: Opt in to experimental views.
        task_tree_view_enabled: Show Task -> Machine -> Session grouping
            (only honoured when ``experiments`` is on).
        hide_inactive_sessions: Drop inactive sessions from the list.
    """

    experiments: bool = False
    task_tree_view_enabled: bool = False
    hide_inactive_sessions: bool = False

    def validate(self) -> None:
        """Reset non-boolean values to their defaults."""
        for name in ("experiments", "task_tree_view_enabled", "hide_inactive_sessions"):
            if not isinstance(getattr(self, name), bool):
                setattr(self, name, False)

    def apply_to(self, config: TreeConfig) -> TreeConfig:
        config.experiments = self.experiments
        config.task_tree_view_enabled = self.task_tree_view_enabled
        config.hide_inactive_sessions = self.hide_inactive_sessions
        return config

    @classmethod
    def from_config(cls, config: TreeConfig) -> UserPreferences:
        return cls(
            experiments=config.experiments,
            task_tree_view_enabled=config.task_tree_view_enabled,
            hide_inactive_sessions=config.hide_inactive_sessions,
        )

    def save(self, path: Path | None = None) -> None:
        """Persist preferences to disk."""
        target = path or PREFS_PATH
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(json.dumps(asdict(self), indent=2))
        except OSError:
            logger.warning("Failed to save preferences to %s", target, exc_info=True)

    @classmethod
    def exists(cls, path: Path | None = None) -> bool:
        return (path or PREFS_PATH).is_file()

    @classmethod
    def load(cls, path: Path | None = None) -> UserPreferences:
        """Load preferences from disk, returning defaults if missing/corrupt."""
        target = path or PREFS_PATH
        try:
            if target.exists():
                data = json.loads(target.read_text())
                prefs = cls(**{
                    k: v for k, v in data.items()
                    if k in cls.__dataclass_fields__
                })
                prefs.validate()
                logger.debug("Loaded preferences from %s", target)
                return prefs
            else:
                logger.debug("Preferences file not found at %s; using defaults", target)
        except (OSError, ValueError, TypeError, AttributeError):
            logger.warning("Failed to load preferences from %s; using defaults", target)
        return cls()
