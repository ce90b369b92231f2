"""Grouping keys — the identity a session is folded into a task under."""

from __future__ import annotations

from tasktree.shared.models.session import Session

DERIVED_KEY_PREFIX = "derived:"
ISOLATED_KEY_PREFIX = "session:"

# Key kinds. The fold buckets by (kind, key), so an explicit task id that
# happens to look like a derived or isolated key never merges with one.
EXPLICIT = "explicit"
DERIVED = "derived"
ISOLATED = "isolated"

GroupingKey = tuple[str, str]


def derived_task_key(machine_id: str, path: str) -> str:
    return f"{DERIVED_KEY_PREFIX}{machine_id}:{path}"


def grouping_identity(session: Session) -> GroupingKey:
    """Return ``(kind, key)`` for *session*.

    Priority:
    1. An explicit ``task.id`` (machine-independent).
    2. ``derived:<machineId>:<path>`` when both are present.
    3. ``session:<id>``, so an ungroupable session still forms its own task.
    """
    metadata = session.metadata
    if metadata is not None:
        if metadata.task is not None and metadata.task.id:
            return (EXPLICIT, metadata.task.id)
        if metadata.machine_id and metadata.path:
            return (DERIVED, derived_task_key(metadata.machine_id, metadata.path))
    return (ISOLATED, f"{ISOLATED_KEY_PREFIX}{session.id}")


def resolve_grouping_key(session: Session) -> str:
    """Return the task id *session* is grouped under."""
    return grouping_identity(session)[1]
