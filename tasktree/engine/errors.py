"""Exception hierarchy for task tree aggregation and its collaborators.

Missing optional fields are never errors; these are raised only for
structurally malformed input or failed user actions.
"""
from __future__ import annotations


class TaskTreeError(Exception):
    """Base exception for all task tree errors."""


class MalformedInputError(TaskTreeError):
    """An input collection or record does not have the expected shape."""
    def __init__(self, kind: str, key: object, reason: str):
        self.kind = kind
        self.key = key
        self.reason = reason
        super().__init__(f"Malformed {kind} {key!r}: {reason}")


class SnapshotError(TaskTreeError):
    """A session/machine snapshot file could not be read."""
    def __init__(self, path: object, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot load snapshot {path}: {reason}")


class TaskRenameError(TaskTreeError):
    """A manual task rename was rejected."""
    def __init__(self, task_id: str, reason: str):
        self.task_id = task_id
        self.reason = reason
        super().__init__(f"Cannot rename task {task_id}: {reason}")
