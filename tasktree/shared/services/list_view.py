"""Session list view data — flat rows for the session list.

Two layouts:
- task tree (experimental): task group -> machine group -> session rows;
- default: one bundle of active sessions, then inactive sessions under
  day headers ("Today", "Yesterday", "N days ago").
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Union

from tasktree.engine.config import TreeConfig
from tasktree.engine.task_tree import build_task_tree
from tasktree.shared.models.machine import Machine
from tasktree.shared.models.session import Session, TaskSource
from tasktree.shared.models.task import Task

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeaderItem:
    title: str
    type: str = field(default="header", init=False)


@dataclass(frozen=True)
class ActiveSessionsItem:
    sessions: tuple[Session, ...]
    type: str = field(default="active-sessions", init=False)


@dataclass(frozen=True)
class SessionItem:
    session: Session
    type: str = field(default="session", init=False)


@dataclass(frozen=True)
class TaskGroupItem:
    task_id: str
    title: str
    source: TaskSource
    session_count: int
    session_ids: tuple[str, ...]
    type: str = field(default="task-group", init=False)


@dataclass(frozen=True)
class TaskMachineGroupItem:
    task_id: str
    machine_id: str
    machine: Machine | None
    session_count: int
    type: str = field(default="task-machine-group", init=False)


SessionListViewItem = Union[
    HeaderItem, ActiveSessionsItem, SessionItem, TaskGroupItem, TaskMachineGroupItem,
]

# Rows that open a new section; kept only if a visible session follows.
_SECTION_ITEM_TYPES = frozenset({"header", "task-group"})


def task_tree_items(tasks: list[Task]) -> list[SessionListViewItem]:
    """Flatten built tasks into task / machine / session rows."""
    items: list[SessionListViewItem] = []
    for task in tasks:
        items.append(TaskGroupItem(
            task_id=task.id,
            title=task.title,
            source=task.source,
            session_count=task.session_count,
            session_ids=tuple(task.session_ids),
        ))
        for group in task.machines:
            items.append(TaskMachineGroupItem(
                task_id=task.id,
                machine_id=group.machine_id,
                machine=group.machine,
                session_count=group.session_count,
            ))
            items.extend(SessionItem(session) for session in group.sessions)
    return items


def _day_header(day: date, today: date) -> str:
    days = (today - day).days
    if days <= 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    return f"{days} days ago"


def _local_day(timestamp_ms: int) -> date:
    return datetime.fromtimestamp(timestamp_ms / 1000).date()


def default_items(
    sessions: Mapping[str, Session],
    now: datetime | None = None,
) -> list[SessionListViewItem]:
    """Active sessions bundled first, then inactive sessions by day."""
    newest_first = sorted(sessions.values(), key=lambda s: (-s.updated_at, s.id))
    active = tuple(s for s in newest_first if s.active)
    inactive = [s for s in newest_first if not s.active]

    items: list[SessionListViewItem] = []
    if active:
        items.append(ActiveSessionsItem(active))

    today = (now or datetime.now()).date()
    current_day: date | None = None
    for session in inactive:
        day = _local_day(session.updated_at)
        if day != current_day:
            items.append(HeaderItem(_day_header(day, today)))
            current_day = day
        items.append(SessionItem(session))
    return items


def build_session_list_view_data(
    sessions: Mapping[str, Session],
    machines: Mapping[str, Machine],
    config: TreeConfig,
    now: datetime | None = None,
) -> list[SessionListViewItem]:
    """Rows for the session list, in tree or default layout per *config*."""
    if config.task_tree_active:
        items = task_tree_items(build_task_tree(sessions, machines))
        layout = "task-tree"
    else:
        items = default_items(sessions, now=now)
        layout = "default"
    logger.debug("build_session_list_view_data: layout=%s rows=%d", layout, len(items))
    return items


def filter_visible_items(
    items: list[SessionListViewItem],
    hide_inactive_sessions: bool,
) -> list[SessionListViewItem]:
    """Drop inactive sessions and any group rows left with no session under them."""
    if not hide_inactive_sessions:
        return items

    filtered: list[SessionListViewItem] = []
    pending: list[SessionListViewItem] = []
    for item in items:
        if item.type in _SECTION_ITEM_TYPES:
            pending = [item]
            continue
        if isinstance(item, TaskMachineGroupItem):
            pending = [p for p in pending if not isinstance(p, TaskMachineGroupItem)]
            pending.append(item)
            continue
        if isinstance(item, SessionItem):
            if item.session.active:
                filtered.extend(pending)
                pending = []
                filtered.append(item)
            continue
        pending = []
        if isinstance(item, ActiveSessionsItem):
            filtered.append(item)
    return filtered
