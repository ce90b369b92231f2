"""tasktree TUI — Textual application class."""

from __future__ import annotations

import logging
from pathlib import Path

from textual.app import App, ComposeResult
from textual.widgets import Footer, Header

from tasktree.engine.config import TreeConfig
from tasktree.engine.errors import TaskTreeError
from tasktree.engine.task_tree import build_task_tree
from tasktree.shared.services.list_view import (
    build_session_list_view_data,
    filter_visible_items,
)
from tasktree.shared.services.preferences import UserPreferences
from tasktree.shared.services.snapshot import Snapshot, load_snapshot, save_snapshot
from tasktree.shared.services.task_metadata import rename_task
from tasktree.tui.screens.rename_task import RenameTaskScreen
from tasktree.tui.widgets.task_tree import TaskTreeWidget

logger = logging.getLogger(__name__)


class TaskTreeApp(App):
    """Browse a session snapshot as a task tree or a flat list."""

    TITLE = "tasktree"
    SUB_TITLE = "Task -> Machine -> Session"

    BINDINGS = [
        ("ctrl+q", "quit", "Quit"),
        ("t", "toggle_task_tree", "Tree View"),
        ("h", "toggle_hide_inactive", "Hide Inactive"),
        ("f5", "reload", "Reload"),
    ]

    def __init__(
        self,
        snapshot_path: Path,
        config: TreeConfig | None = None,
        prefs_path: Path | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.snapshot_path = Path(snapshot_path)
        self.config = config or TreeConfig.from_env()
        self.prefs_path = prefs_path
        self.snapshot = Snapshot()

    def compose(self) -> ComposeResult:
        yield Header()
        yield TaskTreeWidget(id="task-tree")
        yield Footer()

    def on_mount(self) -> None:
        self.action_reload()
        self.query_one(TaskTreeWidget).focus()

    def refresh_view(self) -> None:
        items = build_session_list_view_data(
            self.snapshot.sessions, self.snapshot.machines, self.config,
        )
        items = filter_visible_items(items, self.config.hide_inactive_sessions)
        self.query_one(TaskTreeWidget).load_items(items)
        self.sub_title = (
            "Task -> Machine -> Session" if self.config.task_tree_active else "Sessions"
        )

    def action_reload(self) -> None:
        try:
            self.snapshot = load_snapshot(self.snapshot_path)
        except TaskTreeError as exc:
            logger.warning("Reload failed: %s", exc)
            self.notify(str(exc), severity="error")
        self.refresh_view()

    def _save_preferences(self) -> None:
        UserPreferences.from_config(self.config).save(self.prefs_path)

    def action_toggle_task_tree(self) -> None:
        enable = not self.config.task_tree_active
        self.config.task_tree_view_enabled = enable
        if enable:
            self.config.experiments = True
        self._save_preferences()
        self.refresh_view()

    def action_toggle_hide_inactive(self) -> None:
        self.config.hide_inactive_sessions = not self.config.hide_inactive_sessions
        self._save_preferences()
        self.refresh_view()

    def on_task_tree_widget_rename_requested(
        self, event: TaskTreeWidget.RenameRequested,
    ) -> None:
        item = event.item

        def _apply(title: str | None) -> None:
            if title:
                self.apply_rename(item.task_id, title)

        self.push_screen(RenameTaskScreen(item), _apply)

    def apply_rename(self, task_id: str, title: str) -> None:
        """Rename a task across its sessions and write the snapshot back."""
        tasks = build_task_tree(self.snapshot.sessions, self.snapshot.machines)
        task = next((t for t in tasks if t.id == task_id), None)
        if task is None:
            self.notify(f"Task {task_id} no longer exists", severity="warning")
            return
        try:
            updated = rename_task(task, self.snapshot.sessions.values(), title)
            snapshot = self.snapshot.with_sessions(updated)
            save_snapshot(self.snapshot_path, snapshot)
        except TaskTreeError as exc:
            logger.warning("Rename of %s failed: %s", task_id, exc)
            self.notify("Failed to rename task. Please try again.", severity="error")
            return
        self.snapshot = snapshot
        self.refresh_view()
