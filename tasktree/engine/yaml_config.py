"""YAML configuration loader.

Layers a YAML file over the TASKTREE_* environment defaults.

Example YAML:
    view:
      experiments: true
      task_tree_view_enabled: true
      hide_inactive_sessions: false

    logging:
      level: DEBUG
      file: ~/.tasktree/logs/tasktree.log
"""
from __future__ import annotations

import logging
from pathlib import Path

import yaml

from .config import TreeConfig
from .errors import TaskTreeError

logger = logging.getLogger(__name__)

CONFIG_DIRNAME = ".tasktree"
CONFIG_FILENAME = "tasktree.yaml"


def discover_config_path(cwd: Path | None = None) -> Path | None:
    """Find ``.tasktree/tasktree.yaml`` (preferred) or ``tasktree.yaml``."""
    base = cwd or Path.cwd()
    for candidate in (base / CONFIG_DIRNAME / CONFIG_FILENAME, base / CONFIG_FILENAME):
        if candidate.is_file():
            logger.debug("discover_config_path: found %s", candidate)
            return candidate
    return None


def _as_bool(section: dict, key: str, default: bool) -> bool:
    value = section.get(key, default)
    if isinstance(value, bool):
        return value
    logger.warning(
        "load_yaml_config: ignoring non-boolean %s=%r", key, value,
    )
    return default


def load_yaml_config(path: str | Path | None) -> TreeConfig:
    """Load a YAML config file over environment defaults.

    A missing *path* (None) yields the environment config unchanged.

    Raises:
        TaskTreeError: If the file is missing, unparsable, or not a mapping.
    """
    config = TreeConfig.from_env()
    if path is None:
        return config

    path = Path(path).expanduser()
    logger.info(
        "load_yaml_config: loading config from %s (exists=%s)",
        path, path.exists(),
    )
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise TaskTreeError(f"Cannot read config {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise TaskTreeError(f"YAML parse error in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TaskTreeError(f"Config {path} must be a mapping, got {type(data).__name__}")

    view = data.get("view") or {}
    if isinstance(view, dict):
        config.experiments = _as_bool(view, "experiments", config.experiments)
        config.task_tree_view_enabled = _as_bool(
            view, "task_tree_view_enabled", config.task_tree_view_enabled
        )
        config.hide_inactive_sessions = _as_bool(
            view, "hide_inactive_sessions", config.hide_inactive_sessions
        )

    log_section = data.get("logging") or {}
    if isinstance(log_section, dict):
        if log_section.get("level"):
            config.log_level = str(log_section["level"]).upper()
        if log_section.get("file"):
            config.log_file = str(Path(str(log_section["file"])).expanduser())

    logger.info(
        "load_yaml_config: task_tree_active=%s hide_inactive=%s log_level=%s",
        config.task_tree_active, config.hide_inactive_sessions, config.log_level,
    )
    return config
