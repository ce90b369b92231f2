"""Rename task modal — asks for a new manual title for a task.

Returns the entered title, or None if cancelled. The title is applied to
every session of the task, so it wins over automatic names from then on.
"""
from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Static

from tasktree.shared.services.list_view import TaskGroupItem
from tasktree.shared.services.task_metadata import TASK_TITLE_MAX_LENGTH


class RenameTaskScreen(ModalScreen[str | None]):
    """Modal dialog for renaming a task."""

    DEFAULT_CSS = """
    RenameTaskScreen {
        align: center middle;
    }
    #rename-task-dialog {
        width: 70;
        height: auto;
        border: thick $primary;
        background: $surface;
        padding: 1 2;
    }
    #rename-task-actions {
        height: auto;
        margin-top: 1;
    }
    """

    BINDINGS = [
        ("escape", "cancel", "Cancel"),
    ]

    def __init__(self, item: TaskGroupItem, **kwargs) -> None:
        super().__init__(**kwargs)
        self.item = item

    def compose(self) -> ComposeResult:
        with Vertical(id="rename-task-dialog"):
            yield Label("Rename Task")
            yield Static(
                f"[dim]Updates task metadata for all {self.item.session_count} "
                "session(s) in this task.[/dim]",
                markup=True,
            )
            yield Input(
                value=self.item.title,
                max_length=TASK_TITLE_MAX_LENGTH,
                id="rename-task-input",
            )
            with Horizontal(id="rename-task-actions"):
                yield Button("Rename", id="btn-rename-confirm", variant="primary")
                yield Button("[Esc] Cancel", id="btn-rename-cancel")

    def on_mount(self) -> None:
        self.query_one("#rename-task-input", Input).focus()

    def _submit(self) -> None:
        title = self.query_one("#rename-task-input", Input).value.strip()
        self.dismiss(title or None)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._submit()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-rename-confirm":
            self._submit()
        else:
            self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)
