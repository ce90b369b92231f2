"""Task tree aggregation.

Folds a snapshot of sessions and machines into an ordered
Task -> MachineGroup -> Session hierarchy:

    grouping_identity -> aggregate_sessions -> resolve_task_title -> assemble_tasks

The fold treats sessions as an unordered set; every ordering in the
output comes from explicit sort keys, so identical input always yields
an identical tree.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from tasktree.engine.errors import MalformedInputError
from tasktree.engine.grouping import GroupingKey, grouping_identity
from tasktree.shared.models.machine import Machine
from tasktree.shared.models.session import Session, TaskSource
from tasktree.shared.models.task import UNKNOWN_MACHINE_ID, MachineGroup, Task

logger = logging.getLogger(__name__)

UNTITLED_TASK = "Untitled Task"


@dataclass
class TaskAccumulator:
    """In-progress task built up during the fold."""
    key: GroupingKey
    session_count: int = 0
    groups: dict[str, MachineGroup] = field(default_factory=dict)

    def add(self, session: Session, machines: Mapping[str, Machine]) -> None:
        machine_id = session.machine_id or UNKNOWN_MACHINE_ID
        group = self.groups.get(machine_id)
        if group is None:
            machine = machines.get(machine_id) if session.machine_id else None
            group = MachineGroup(machine_id=machine_id, machine=machine)
            self.groups[machine_id] = group
        group.sessions.append(session)
        group.updated_at = max(group.updated_at, session.updated_at)
        self.session_count += 1

    @property
    def task_id(self) -> str:
        return self.key[1]

    def iter_sessions(self) -> Iterable[Session]:
        for group in self.groups.values():
            yield from group.sessions


def _session_order(session: Session) -> tuple[int, str]:
    """Newest first, then by id."""
    return (-session.updated_at, session.id)


def _path_basename(path: str | None) -> str:
    if not path:
        return UNTITLED_TASK
    parts = [part for part in path.split("/") if part]
    return parts[-1] if parts else path


def fallback_title(session: Session) -> str:
    """Title for a session without a usable task title: summary, then path."""
    metadata = session.metadata
    if metadata is None:
        return UNTITLED_TASK
    if metadata.summary is not None:
        summary = metadata.summary.text.strip()
        if summary:
            return summary
    return _path_basename(metadata.path)


def _validate_inputs(
    sessions: Mapping[str, Session],
    machines: Mapping[str, Machine],
) -> None:
    if not isinstance(sessions, Mapping):
        raise MalformedInputError(
            "sessions", None, f"expected a mapping, got {type(sessions).__name__}"
        )
    if not isinstance(machines, Mapping):
        raise MalformedInputError(
            "machines", None, f"expected a mapping, got {type(machines).__name__}"
        )
    for key, machine in machines.items():
        if not isinstance(machine, Machine):
            raise MalformedInputError("machine", key, f"expected Machine, got {type(machine).__name__}")
        if machine.id != key:
            raise MalformedInputError("machine", key, f"keyed under a different id ({machine.id!r})")


def aggregate_sessions(
    sessions: Mapping[str, Session],
    machines: Mapping[str, Machine],
) -> dict[GroupingKey, TaskAccumulator]:
    """Bucket every session into a task and, within it, a machine group.

    Raises:
        MalformedInputError: If either collection is not a mapping of
            records keyed by their own ids.
    """
    _validate_inputs(sessions, machines)
    accumulators: dict[GroupingKey, TaskAccumulator] = {}
    for key, session in sessions.items():
        if not isinstance(session, Session):
            raise MalformedInputError("session", key, f"expected Session, got {type(session).__name__}")
        if session.id != key:
            raise MalformedInputError("session", key, f"keyed under a different id ({session.id!r})")

        task_key = grouping_identity(session)
        accumulator = accumulators.get(task_key)
        if accumulator is None:
            accumulator = TaskAccumulator(key=task_key)
            accumulators[task_key] = accumulator
        accumulator.add(session, machines)
    return accumulators


def resolve_task_title(members: Iterable[Session]) -> tuple[str, TaskSource]:
    """Pick the representative title and source for a task.

    A manual title outranks every auto title. Within the winning source
    the newest ``task.updated_at`` wins; equal timestamps go to the
    lexically smallest session id.
    """
    winner: Session | None = None
    winner_rank: tuple[bool, int] | None = None
    latest: Session | None = None

    for session in members:
        if latest is None or _session_order(session) < _session_order(latest):
            latest = session
        task = session.task
        if task is None:
            continue
        rank = (task.source is TaskSource.MANUAL, task.updated_at)
        if (
            winner_rank is None
            or rank > winner_rank
            or (rank == winner_rank and session.id < winner.id)
        ):
            winner, winner_rank = session, rank

    if winner is not None:
        task = winner.task
        return (task.title.strip() or fallback_title(winner), task.source)
    if latest is not None:
        return (fallback_title(latest), TaskSource.AUTO)
    return (UNTITLED_TASK, TaskSource.AUTO)


def _assemble_task(accumulator: TaskAccumulator) -> Task:
    members = list(accumulator.iter_sessions())
    title, source = resolve_task_title(members)

    groups = [
        MachineGroup(
            machine_id=group.machine_id,
            machine=group.machine,
            sessions=sorted(group.sessions, key=_session_order),
            updated_at=group.updated_at,
        )
        for group in accumulator.groups.values()
    ]
    groups.sort(key=lambda g: (-g.updated_at, g.machine_id))

    return Task(
        id=accumulator.task_id,
        title=title,
        source=source,
        updated_at=max(s.updated_at for s in members),
        session_ids=[s.id for s in sorted(members, key=_session_order)],
        machines=groups,
    )


def assemble_tasks(accumulators: Mapping[GroupingKey, TaskAccumulator]) -> list[Task]:
    """Order tasks newest first (ties by id, then key kind) with machine
    groups and sessions ordered the same way (ties by machine id / session id)."""
    keyed = [
        (acc.key[0], _assemble_task(acc))
        for acc in accumulators.values() if acc.session_count
    ]
    keyed.sort(key=lambda pair: (-pair[1].updated_at, pair[1].id, pair[0]))
    return [task for _, task in keyed]


def build_task_tree(
    sessions: Mapping[str, Session],
    machines: Mapping[str, Machine],
) -> list[Task]:
    """Build the Task -> Machine -> Session tree for a snapshot.

    Args:
        sessions: Sessions keyed by session id.
        machines: Machines keyed by machine id. Sessions may reference
            machines that are missing here.

    Returns:
        Tasks ordered most recently active first.
    """
    accumulators = aggregate_sessions(sessions, machines)
    tasks = assemble_tasks(accumulators)
    logger.debug(
        "build_task_tree: %d sessions -> %d tasks (%d machines known)",
        len(sessions), len(tasks), len(machines),
    )
    return tasks
