"""Derived task tree nodes: Task -> MachineGroup -> Session."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tasktree.shared.models.machine import Machine
from tasktree.shared.models.session import Session, TaskSource

# Machine group id for sessions that carry no machine id. A machine really
# registered under this id shares the group, but its record is never attached.
UNKNOWN_MACHINE_ID = "unknown-machine"


@dataclass
class MachineGroup:
    """The sessions of one task that ran on one machine."""
    machine_id: str
    machine: Machine | None = None
    sessions: list[Session] = field(default_factory=list)
    updated_at: int = 0

    @property
    def session_count(self) -> int:
        return len(self.sessions)

    @property
    def label(self) -> str:
        if self.machine is not None:
            return self.machine.display_label
        return self.machine_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "machineId": self.machine_id,
            "machine": self.machine.to_dict() if self.machine else None,
            "sessions": [s.to_dict() for s in self.sessions],
            "updatedAt": self.updated_at,
            "sessionCount": self.session_count,
        }


@dataclass
class Task:
    """A unit of work grouping one or more sessions.

    ``id`` is an explicit task id or a synthesized ``derived:<machine>:<path>``
    key. ``updated_at`` is the latest activity of any member session.
    """
    id: str
    title: str
    source: TaskSource
    updated_at: int
    session_ids: list[str] = field(default_factory=list)
    machines: list[MachineGroup] = field(default_factory=list)

    @property
    def session_count(self) -> int:
        return sum(group.session_count for group in self.machines)

    @property
    def is_derived(self) -> bool:
        return self.id.startswith("derived:")

    def iter_sessions(self):
        for group in self.machines:
            yield from group.sessions

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "source": self.source.value,
            "updatedAt": self.updated_at,
            "sessionIds": list(self.session_ids),
            "sessionCount": self.session_count,
            "machines": [group.to_dict() for group in self.machines],
        }
