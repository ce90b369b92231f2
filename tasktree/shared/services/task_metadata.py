"""Task metadata — writing task descriptors onto sessions.

Two writers exist:
- the agent side names a task automatically from the first user message;
- a user renames a task by hand, which stamps a manual descriptor on
  every member session.
Manual descriptors are never overwritten by automatic naming.
"""
from __future__ import annotations

import dataclasses
import hashlib
import logging
import re
import time
from typing import Iterable

from tasktree.engine.errors import TaskRenameError
from tasktree.shared.models.session import (
    Session,
    SessionMetadata,
    TaskDescriptor,
    TaskSource,
)
from tasktree.shared.models.task import Task

logger = logging.getLogger(__name__)

TASK_TITLE_MAX_LENGTH = 72

_WHITESPACE_RE = re.compile(r"\s+")


def _now_ms() -> int:
    return int(time.time() * 1000)


def normalize_task_title(text: str | None) -> str | None:
    """Collapse whitespace and cap the length; blank input gives None."""
    if not text:
        return None
    normalized = _WHITESPACE_RE.sub(" ", text).strip()
    if not normalized:
        return None
    return normalized[:TASK_TITLE_MAX_LENGTH]


def derive_auto_task_id(metadata: SessionMetadata) -> str:
    """Stable task id for a machine + path pair."""
    machine_id = metadata.machine_id or "unknown-machine"
    path = metadata.path or "unknown-path"
    digest = hashlib.sha1(f"{machine_id}:{path}".encode("utf-8")).hexdigest()[:12]
    return f"task-{digest}"


def apply_auto_task_title(
    metadata: SessionMetadata,
    first_user_message: str,
    now_ms: int | None = None,
) -> SessionMetadata:
    """Name the session's task from its first user message.

    Returns *metadata* itself when nothing changes: the task was named
    manually, the message has no usable text, or the descriptor already
    matches.
    """
    current = metadata.task
    if current is not None and current.source is TaskSource.MANUAL:
        return metadata

    title = normalize_task_title(first_user_message)
    if title is None:
        return metadata

    task_id = (current.id if current is not None else "") or derive_auto_task_id(metadata)
    if (
        current is not None
        and current.id == task_id
        and current.title == title
        and current.source is TaskSource.AUTO
    ):
        return metadata

    descriptor = TaskDescriptor(
        id=task_id,
        title=title,
        source=TaskSource.AUTO,
        updated_at=now_ms if now_ms is not None else _now_ms(),
    )
    return dataclasses.replace(metadata, task=descriptor)


def rename_task(
    task: Task,
    sessions: Iterable[Session],
    title: str,
    now_ms: int | None = None,
) -> list[Session]:
    """Manually rename *task* on each of its member sessions.

    Args:
        task: The task being renamed. Its id becomes the explicit task id
            of every member, so derived tasks stay together afterwards.
        sessions: Current session records; only members of *task* are touched.
        title: New title, normalized like automatic titles.
        now_ms: Timestamp for the descriptor (defaults to now).

    Returns:
        Updated copies of the member sessions.

    Raises:
        TaskRenameError: If the title is blank or no member can be updated.
    """
    normalized = normalize_task_title(title)
    if normalized is None:
        raise TaskRenameError(task.id, "title is empty")

    updated_at = now_ms if now_ms is not None else _now_ms()
    descriptor = TaskDescriptor(
        id=task.id,
        title=normalized,
        source=TaskSource.MANUAL,
        updated_at=updated_at,
    )

    members = set(task.session_ids)
    updated: list[Session] = []
    for session in sessions:
        if session.id not in members:
            continue
        if session.metadata is None:
            logger.warning("rename_task: session %s has no metadata; skipping", session.id)
            continue
        updated.append(dataclasses.replace(
            session,
            metadata=dataclasses.replace(session.metadata, task=descriptor),
            metadata_version=session.metadata_version + 1,
            updated_at=max(session.updated_at, updated_at),
        ))

    if not updated:
        raise TaskRenameError(task.id, "no member session could be updated")
    logger.info(
        "Renamed task %s to %r on %d/%d sessions",
        task.id, normalized, len(updated), len(members),
    )
    return updated
