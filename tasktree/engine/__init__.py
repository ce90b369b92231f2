"""Task tree engine — folds agent sessions into Task -> Machine -> Session trees."""
from .config import TreeConfig
from .errors import (
    MalformedInputError,
    SnapshotError,
    TaskRenameError,
    TaskTreeError,
)

__all__ = [
    # Core (lazy import to avoid circular deps with shared.models)
    "build_task_tree",
    "aggregate_sessions",
    "assemble_tasks",
    "resolve_task_title",
    "resolve_grouping_key",
    # Config
    "TreeConfig",
    # YAML config (lazy import)
    "load_yaml_config",
    # Errors
    "TaskTreeError",
    "MalformedInputError",
    "SnapshotError",
    "TaskRenameError",
]


def __getattr__(name: str):
    if name in ("build_task_tree", "aggregate_sessions", "assemble_tasks", "resolve_task_title"):
        from . import task_tree
        return getattr(task_tree, name)
    if name == "resolve_grouping_key":
        from .grouping import resolve_grouping_key
        return resolve_grouping_key
    if name == "load_yaml_config":
        from .yaml_config import load_yaml_config
        return load_yaml_config
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
