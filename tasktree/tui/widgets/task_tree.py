"""Task tree widget — the session list as a Textual tree.

Renders list view rows either as Task -> Machine -> Session nodes or as
day-grouped sessions, depending on which layout produced the rows.
"""

from __future__ import annotations

from rich.segment import Segment
from rich.style import Style
from rich.text import Text
from textual.message import Message
from textual.strip import Strip
from textual.widgets import Tree
from textual.widgets._tree import TreeNode

from tasktree.shared.formatters.list_view import (
    format_relative_time,
    item_label,
    session_title,
)
from tasktree.shared.models.session import TaskSource
from tasktree.shared.services.list_view import (
    ActiveSessionsItem,
    HeaderItem,
    SessionItem,
    SessionListViewItem,
    TaskGroupItem,
    TaskMachineGroupItem,
)

ROOT_LABEL = "Sessions"

_ACTIVE_ICON = ("\u25cf", "green")  # ●
_INACTIVE_ICON = ("\u25cb", "dim")  # ○


class TaskTreeWidget(Tree[SessionListViewItem]):
    """Hierarchical view of tasks, machines and sessions."""

    class RenameRequested(Message):
        """Posted when the user presses 'r' on a task row."""

        def __init__(self, item: TaskGroupItem) -> None:
            super().__init__()
            self.item = item

    BINDINGS = [
        ("enter", "select_cursor", "Select"),
        ("space", "toggle_node", "Expand/Collapse"),
        ("r", "rename_task", "Rename Task"),
    ]

    # Refresh timestamps every 10 seconds so relative times stay accurate
    _TIMESTAMP_REFRESH_INTERVAL = 10.0

    def __init__(self, **kwargs) -> None:
        super().__init__(ROOT_LABEL, **kwargs)
        self.show_root = False
        self.guide_depth = 3
        self._timestamp_timer = None

    def on_mount(self) -> None:
        self._timestamp_timer = self.set_interval(
            self._TIMESTAMP_REFRESH_INTERVAL, self._refresh_timestamps
        )

    def on_unmount(self) -> None:
        if self._timestamp_timer is not None:
            self._timestamp_timer.stop()
            self._timestamp_timer = None

    def _refresh_timestamps(self) -> None:
        if self.root.children:
            self._invalidate()

    def load_items(self, items: list[SessionListViewItem]) -> None:
        """Replace the tree contents with *items*."""
        self.clear()
        section: TreeNode[SessionListViewItem] | None = None
        machine: TreeNode[SessionListViewItem] | None = None

        for item in items:
            label = item_label(item)
            if isinstance(item, (HeaderItem, TaskGroupItem)):
                section = self.root.add(label, data=item, expand=True)
                machine = None
            elif isinstance(item, TaskMachineGroupItem):
                parent = section or self.root
                machine = parent.add(label, data=item, expand=True)
            elif isinstance(item, ActiveSessionsItem):
                bundle = self.root.add(label, data=item, expand=True)
                for session in item.sessions:
                    bundle.add_leaf(session_title(session), data=SessionItem(session))
                section = machine = None
            elif isinstance(item, SessionItem):
                parent = machine or section or self.root
                parent.add_leaf(label, data=item)
        self.root.expand()

    def render_label(self, node: TreeNode[SessionListViewItem], base_style, style) -> Text:
        item = node.data
        if item is None:
            return Text(str(node.label), style=style)

        label = Text()
        if isinstance(item, SessionItem):
            icon, color = _ACTIVE_ICON if item.session.active else _INACTIVE_ICON
            label.append(f"{icon} ", style=color)
            label.append(str(node.label), style=style)
        elif isinstance(item, TaskGroupItem):
            label.append(str(node.label), style=style + Style(bold=True))
            if item.source is TaskSource.MANUAL:
                label.append(" [manual]", style="dim cyan")
        elif isinstance(item, (HeaderItem, ActiveSessionsItem)):
            label.append(str(node.label), style=style + Style(bold=True))
        else:
            label.append(str(node.label), style=style)
        return label

    def render_line(self, y: int) -> Strip:
        """Render a line, then splice in a right-justified timestamp for sessions."""
        strip = super().render_line(y)
        width = self.size.width
        if width <= 0:
            return strip

        line_index = y + self.scroll_offset.y
        tree_lines = self._tree_lines
        if line_index >= len(tree_lines):
            return strip

        item = tree_lines[line_index].node.data
        if not isinstance(item, SessionItem):
            return strip

        ts_text = f" {format_relative_time(item.session.updated_at)} "
        ts_len = len(ts_text)
        if ts_len >= width:
            return strip

        cropped = strip.crop(0, width - ts_len)
        segments = list(cropped._segments)
        gap = width - ts_len - cropped.cell_length
        if gap > 0:
            segments.append(Segment(" " * gap))
        segments.append(Segment(ts_text, Style.parse("dim")))
        return Strip(segments, width)

    def action_rename_task(self) -> None:
        node = self.cursor_node
        if node is not None and isinstance(node.data, TaskGroupItem):
            self.post_message(self.RenameRequested(node.data))
