from __future__ import annotations

import itertools

import pytest

from tasktree.engine.errors import MalformedInputError
from tasktree.engine.grouping import DERIVED, EXPLICIT, ISOLATED, grouping_identity, resolve_grouping_key
from tasktree.engine.task_tree import build_task_tree, resolve_task_title
from tasktree.shared.models.machine import Machine, MachineMetadata
from tasktree.shared.models.session import (
    Session,
    SessionMetadata,
    SessionSummary,
    TaskDescriptor,
    TaskSource,
)
from tasktree.shared.models.task import UNKNOWN_MACHINE_ID


def _session(
    session_id: str,
    updated_at: int = 1,
    machine_id: str | None = "m1",
    path: str | None = "/repo/a",
    task: TaskDescriptor | None = None,
    summary: str | None = None,
    no_metadata: bool = False,
) -> Session:
    metadata = None
    if not no_metadata:
        metadata = SessionMetadata(
            path=path,
            host="host-1",
            machine_id=machine_id,
            task=task,
            summary=SessionSummary(summary, updated_at) if summary else None,
        )
    return Session(id=session_id, updated_at=updated_at, metadata=metadata)


def _machine(machine_id: str, host: str = "host-1") -> Machine:
    return Machine(id=machine_id, metadata=MachineMetadata(host=host, platform="darwin"))


def _task(task_id: str, title: str, source: str = "auto", updated_at: int = 1) -> TaskDescriptor:
    return TaskDescriptor(
        id=task_id, title=title, source=TaskSource(source), updated_at=updated_at,
    )


def _by_id(*sessions: Session) -> dict[str, Session]:
    return {s.id: s for s in sessions}


def test_derives_grouping_by_machine_and_path_when_task_metadata_is_missing() -> None:
    sessions = _by_id(
        _session("s1", updated_at=10),
        _session("s2", updated_at=20),
    )

    tasks = build_task_tree(sessions, {"m1": _machine("m1")})

    assert len(tasks) == 1
    assert tasks[0].id == "derived:m1:/repo/a"
    assert tasks[0].session_count == 2


def test_merges_sessions_by_explicit_task_id_and_keeps_machine_subgroups() -> None:
    sessions = _by_id(
        _session("s1", 100, "m1", "/repo/a", task=_task("task-x", "Task X", updated_at=100)),
        _session("s2", 120, "m2", "/repo/b", task=_task("task-x", "Task X", updated_at=120)),
    )

    tasks = build_task_tree(sessions, {"m1": _machine("m1"), "m2": _machine("m2")})

    assert len(tasks) == 1
    assert tasks[0].id == "task-x"
    assert len(tasks[0].machines) == 2
    assert tasks[0].session_count == 2


def test_same_machine_and_different_path_without_task_id_stay_apart() -> None:
    sessions = _by_id(
        _session("s1", path="/repo/a"),
        _session("s2", path="/repo/b"),
    )

    tasks = build_task_tree(sessions, {})

    assert {t.id for t in tasks} == {"derived:m1:/repo/a", "derived:m1:/repo/b"}


def test_manual_title_wins_regardless_of_input_order() -> None:
    auto = _session("s1", 100, task=_task("task-x", "Auto Name", "auto", 100))
    manual = _session("s2", 200, task=_task("task-x", "Manual Name", "manual", 200))

    for ordering in ([auto, manual], [manual, auto]):
        tasks = build_task_tree(_by_id(*ordering), {"m1": _machine("m1")})
        assert len(tasks) == 1
        assert tasks[0].title == "Manual Name"
        assert tasks[0].source is TaskSource.MANUAL


def test_manual_title_beats_newer_auto_title() -> None:
    sessions = _by_id(
        _session("s1", 100, task=_task("task-x", "Renamed", "manual", 100)),
        _session("s2", 300, task=_task("task-x", "Later auto", "auto", 300)),
    )

    task = build_task_tree(sessions, {})[0]

    assert task.title == "Renamed"
    assert task.source is TaskSource.MANUAL


def test_latest_title_wins_within_same_source() -> None:
    sessions = _by_id(
        _session("s1", 500, task=_task("task-x", "Old", "auto", 100)),
        _session("s2", 50, task=_task("task-x", "New", "auto", 200)),
    )

    assert build_task_tree(sessions, {})[0].title == "New"


def test_title_tie_goes_to_smallest_session_id() -> None:
    sessions = _by_id(
        _session("s-b", 10, task=_task("task-x", "From B", "manual", 100)),
        _session("s-a", 10, task=_task("task-x", "From A", "manual", 100)),
        _session("s-c", 10, task=_task("task-x", "From C", "manual", 100)),
    )

    assert build_task_tree(sessions, {})[0].title == "From A"


def test_fallback_title_uses_summary_then_path_basename() -> None:
    with_summary = build_task_tree(_by_id(_session("s1", summary="Fix login bug")), {})[0]
    without_summary = build_task_tree(_by_id(_session("s1", path="/repo/app/")), {})[0]

    assert with_summary.title == "Fix login bug"
    assert with_summary.source is TaskSource.AUTO
    assert without_summary.title == "app"


def test_blank_task_title_falls_back_but_keeps_source() -> None:
    sessions = _by_id(_session("s1", task=_task("task-x", "   ", "manual", 5)))

    task = build_task_tree(sessions, {})[0]

    assert task.title == "a"
    assert task.source is TaskSource.MANUAL


def test_task_updated_at_tracks_all_member_sessions() -> None:
    sessions = _by_id(
        _session("s1", 10, task=_task("task-x", "X", "auto", 500)),
        _session("s2", 20, task=_task("task-x", "X", "auto", 400)),
    )

    assert build_task_tree(sessions, {})[0].updated_at == 20


def test_sessions_without_machine_or_path_become_singleton_tasks() -> None:
    sessions = _by_id(
        _session("s1", machine_id=None, path="/repo/a"),
        _session("s2", machine_id=None, path="/repo/a"),
        _session("s3", machine_id="m1", path=None),
    )

    tasks = build_task_tree(sessions, {})

    assert sorted(t.id for t in tasks) == ["session:s1", "session:s2", "session:s3"]
    assert all(t.session_count == 1 for t in tasks)


def test_session_without_metadata_is_kept_under_unknown_machine() -> None:
    tasks = build_task_tree(_by_id(_session("s1", no_metadata=True)), {})

    assert len(tasks) == 1
    assert tasks[0].id == "session:s1"
    assert tasks[0].title == "Untitled Task"
    group = tasks[0].machines[0]
    assert group.machine_id == UNKNOWN_MACHINE_ID
    assert group.machine is None


def test_sessions_without_machine_id_share_one_placeholder_group() -> None:
    sessions = _by_id(
        _session("s1", machine_id=None, task=_task("task-x", "X")),
        _session("s2", machine_id=None, task=_task("task-x", "X")),
    )

    task = build_task_tree(sessions, {})[0]

    assert [g.machine_id for g in task.machines] == [UNKNOWN_MACHINE_ID]
    assert task.machines[0].session_count == 2


def test_dangling_machine_reference_still_produces_group() -> None:
    tasks = build_task_tree(_by_id(_session("s1", machine_id="ghost")), {"m1": _machine("m1")})

    assert len(tasks) == 1
    group = tasks[0].machines[0]
    assert group.machine_id == "ghost"
    assert group.machine is None
    assert [s.id for s in group.sessions] == ["s1"]


def test_known_machine_record_is_attached() -> None:
    machine = _machine("m1", host="laptop")

    group = build_task_tree(_by_id(_session("s1")), {"m1": machine})[0].machines[0]

    assert group.machine is machine
    assert group.label == "laptop"


def test_empty_input_yields_no_tasks() -> None:
    assert build_task_tree({}, {}) == []
    assert build_task_tree({}, {"m1": _machine("m1")}) == []


def _mixed_sessions() -> list[Session]:
    return [
        _session("s1", 100, "m1", "/repo/a", task=_task("task-x", "X", "auto", 100)),
        _session("s2", 120, "m2", "/repo/b", task=_task("task-x", "X2", "manual", 90)),
        _session("s3", 50, "m1", "/repo/a"),
        _session("s4", 70, "m1", "/repo/a"),
        _session("s5", 70, None, "/repo/c"),
        _session("s6", 30, no_metadata=True),
        _session("s7", 120, "m3", "/repo/d", task=_task("task-y", "Y", "auto", 10)),
    ]


def test_conservation_and_partition() -> None:
    sessions = _by_id(*_mixed_sessions())

    tasks = build_task_tree(sessions, {"m1": _machine("m1")})

    assert sum(t.session_count for t in tasks) == len(sessions)
    seen = [s.id for t in tasks for g in t.machines for s in g.sessions]
    assert sorted(seen) == sorted(sessions)
    for task in tasks:
        assert task.session_count == sum(g.session_count for g in task.machines)
        assert sorted(task.session_ids) == sorted(s.id for s in task.iter_sessions())
        machine_ids = [g.machine_id for g in task.machines]
        assert len(machine_ids) == len(set(machine_ids))


def test_output_is_independent_of_input_order() -> None:
    machines = {"m1": _machine("m1"), "m2": _machine("m2")}
    expected = [t.to_dict() for t in build_task_tree(_by_id(*_mixed_sessions()), machines)]

    for ordering in itertools.permutations(_mixed_sessions()[:5]):
        sessions = _by_id(*ordering, *_mixed_sessions()[5:])
        result = [t.to_dict() for t in build_task_tree(sessions, machines)]
        assert result == expected


def test_repeated_calls_are_deeply_equal() -> None:
    sessions = _by_id(*_mixed_sessions())
    machines = {"m1": _machine("m1")}

    assert build_task_tree(sessions, machines) == build_task_tree(sessions, machines)


def test_tasks_ordered_by_activity_then_id() -> None:
    sessions = _by_id(
        _session("s1", 10, task=_task("b-task", "B")),
        _session("s2", 10, task=_task("a-task", "A")),
        _session("s3", 99, task=_task("c-task", "C")),
    )

    assert [t.id for t in build_task_tree(sessions, {})] == ["c-task", "a-task", "b-task"]


def test_machine_groups_and_sessions_have_stable_order() -> None:
    sessions = _by_id(
        _session("s1", 10, "m2", task=_task("task-x", "X")),
        _session("s2", 10, "m1", task=_task("task-x", "X")),
        _session("s3", 40, "m3", task=_task("task-x", "X")),
        _session("s5", 5, "m1", task=_task("task-x", "X")),
        _session("s4", 5, "m1", task=_task("task-x", "X")),
    )

    task = build_task_tree(sessions, {})[0]

    assert [g.machine_id for g in task.machines] == ["m3", "m1", "m2"]
    assert [s.id for s in task.machines[1].sessions] == ["s2", "s4", "s5"]
    assert task.session_ids == ["s3", "s1", "s2", "s4", "s5"]


def test_grouping_key_prefers_explicit_task_id() -> None:
    explicit = _session("s1", task=_task("task-x", "X"))
    empty_id = _session("s2", task=_task("", "X"))

    assert resolve_grouping_key(explicit) == "task-x"
    assert resolve_grouping_key(empty_id) == "derived:m1:/repo/a"
    assert resolve_grouping_key(_session("s3", path="")) == "session:s3"


def test_resolve_task_title_without_members() -> None:
    assert resolve_task_title([]) == ("Untitled Task", TaskSource.AUTO)


def test_non_mapping_sessions_fail_fast() -> None:
    with pytest.raises(MalformedInputError):
        build_task_tree([_session("s1")], {})  # type: ignore[arg-type]


def test_non_session_values_fail_fast() -> None:
    with pytest.raises(MalformedInputError) as exc_info:
        build_task_tree({"s1": {"id": "s1"}}, {})  # type: ignore[dict-item]
    assert exc_info.value.key == "s1"


def test_mismatched_keys_fail_fast() -> None:
    with pytest.raises(MalformedInputError):
        build_task_tree({"other": _session("s1")}, {})
    with pytest.raises(MalformedInputError):
        build_task_tree(_by_id(_session("s1")), {"m1": _machine("m2")})


def test_grouping_identity_tags_each_key_kind() -> None:
    assert grouping_identity(_session("s1", task=_task("task-x", "X"))) == (EXPLICIT, "task-x")
    assert grouping_identity(_session("s2")) == (DERIVED, "derived:m1:/repo/a")
    assert grouping_identity(_session("s3", no_metadata=True)) == (ISOLATED, "session:s3")


def test_explicit_id_shaped_like_isolated_key_does_not_absorb_session() -> None:
    sessions = _by_id(
        _session("s1", 20, task=_task("session:s2", "Lookalike")),
        _session("s2", 10, no_metadata=True),
    )

    tasks = build_task_tree(sessions, {})

    assert len(tasks) == 2
    assert [t.session_ids for t in tasks] == [["s1"], ["s2"]]
    assert {t.title for t in tasks} == {"Lookalike", "Untitled Task"}


def test_explicit_id_shaped_like_derived_key_stays_separate() -> None:
    sessions = _by_id(
        _session("s1", 10, task=_task("derived:m1:/repo/a", "Lookalike")),
        _session("s2", 10, machine_id="m1", path="/repo/a"),
    )

    tasks = build_task_tree(sessions, {})

    assert [t.id for t in tasks] == ["derived:m1:/repo/a", "derived:m1:/repo/a"]
    # Same id and activity: the derived bucket sorts before the explicit one.
    assert [t.session_ids for t in tasks] == [["s2"], ["s1"]]


def test_placeholder_group_never_attaches_a_machine_record() -> None:
    registered = Machine(id=UNKNOWN_MACHINE_ID, metadata=MachineMetadata(host="real-host"))

    tasks = build_task_tree(
        _by_id(_session("s1", machine_id=None, task=_task("task-x", "X"))),
        {UNKNOWN_MACHINE_ID: registered},
    )

    group = tasks[0].machines[0]
    assert group.machine_id == UNKNOWN_MACHINE_ID
    assert group.machine is None
