"""Labels and plain-text rendering for session list rows."""

from __future__ import annotations

import time

from tasktree.shared.models.session import Session, TaskSource
from tasktree.shared.services.list_view import (
    ActiveSessionsItem,
    HeaderItem,
    SessionItem,
    SessionListViewItem,
    TaskGroupItem,
    TaskMachineGroupItem,
)

_INDENT = "  "


def format_relative_time(timestamp_ms: int, now_ms: int | None = None) -> str:
    """Format a millisecond timestamp as a compact relative time string."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    seconds = max(0, (now_ms - timestamp_ms) // 1000)
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h"
    return f"{hours // 24}d"


def session_title(session: Session) -> str:
    """Summary, then name, then path, then short id."""
    metadata = session.metadata
    if metadata is not None:
        if metadata.summary is not None and metadata.summary.text.strip():
            return metadata.summary.text.strip()
        if metadata.name:
            return metadata.name
        if metadata.path:
            return metadata.path
    return session.id[:8]


def item_label(item: SessionListViewItem) -> str:
    if isinstance(item, TaskGroupItem):
        return f"{item.title} ({item.session_count})"
    if isinstance(item, TaskMachineGroupItem):
        name = item.machine.display_label if item.machine is not None else item.machine_id
        return f"{name} ({item.session_count})"
    if isinstance(item, SessionItem):
        return session_title(item.session)
    if isinstance(item, ActiveSessionsItem):
        return f"Active sessions ({len(item.sessions)})"
    if isinstance(item, HeaderItem):
        return item.title
    return str(item)


def _session_line(session: Session, depth: int, now_ms: int | None) -> str:
    marker = "*" if session.active else "-"
    age = format_relative_time(session.updated_at, now_ms)
    return f"{_INDENT * depth}{marker} {session_title(session)}  [{session.id[:8]}, {age}]"


def format_list_items(
    items: list[SessionListViewItem],
    now_ms: int | None = None,
) -> list[str]:
    """Render rows as indented lines: sections at depth 0, machines at 1."""
    lines: list[str] = []
    session_depth = 1
    for item in items:
        if isinstance(item, TaskGroupItem):
            suffix = " [manual]" if item.source is TaskSource.MANUAL else ""
            lines.append(f"{item_label(item)}{suffix}  <{item.task_id}>")
            session_depth = 1
        elif isinstance(item, TaskMachineGroupItem):
            lines.append(f"{_INDENT}{item_label(item)}")
            session_depth = 2
        elif isinstance(item, HeaderItem):
            lines.append(item.title)
            session_depth = 1
        elif isinstance(item, ActiveSessionsItem):
            lines.append(item_label(item))
            lines.extend(_session_line(s, 1, now_ms) for s in item.sessions)
        elif isinstance(item, SessionItem):
            lines.append(_session_line(item.session, session_depth, now_ms))
    return lines
