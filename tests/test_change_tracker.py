# tests/test_change_tracker.py

from __future__ import annotations

from datetime import date

from devterm.tasks.change_tracker import Directory, apply_completion_stamp, track_changes
from devterm.tasks.progress import calculate_progress
from devterm.tasks.task_models import Priority, Subtask, Task, TaskPatch, TaskStatus, copy_task


def _task(**kw) -> Task:
    base = dict(id="t1", title="Fix login", description="Users cannot log in", project_id="p-core", created_by="u1", created_at=1)
    base.update(kw)
    return Task(**base)


def test_progress_edges() -> None:
    assert calculate_progress([]) == 0
    assert calculate_progress([Subtask("a", "a", True)]) == 100
    assert calculate_progress([Subtask("a", "a", True), Subtask("b", "b"), Subtask("c", "c")]) == 33
    assert calculate_progress([Subtask("a", "a", True), Subtask("b", "b", True), Subtask("c", "c")]) == 67
    # Halves round up: 12.5 -> 13.
    assert calculate_progress([Subtask(str(i), "s", i == 0) for i in range(8)]) == 13


def test_unchanged_task_produces_no_entries() -> None:
    old = _task(tags=["a", "b"])
    new = copy_task(old)
    new.tags = ["b", "a"]
    assert track_changes(old, new, "u1", now_ms=5) == []
    assert track_changes(None, new, "u1", now_ms=5) == []


def test_entries_follow_fixed_field_order() -> None:
    old = _task()
    new = TaskPatch(tags=["backend"], priority=Priority.HIGH, title="Fix auth").apply_to(old)

    entries = track_changes(old, new, "u1", now_ms=42)

    assert [e.field_name for e in entries] == ["title", "priority", "tags"]
    assert entries[0].action == 'Renamed task from "Fix login" to "Fix auth"'
    assert all(e.timestamp == 42 and e.user_id == "u1" for e in entries)
    assert len({e.id for e in entries}) == 3


def test_assignee_and_project_use_display_names() -> None:
    directory = Directory(users={"u2": "trinity"}, projects={"p-core": "Core", "p-web": "Web"})
    old = _task()
    new = TaskPatch(assigned_to="u2", project_id="p-web").apply_to(old)

    assignee, project = track_changes(old, new, "u1", now_ms=1, resolver=directory)

    assert assignee.action == "Assigned to trinity"
    assert (assignee.old_value, assignee.new_value) == ("Unassigned", "trinity")
    assert project.action == "Moved from project Core to Web"


def test_description_logged_by_presence_only() -> None:
    old = _task()
    new = TaskPatch(description="Totally different text").apply_to(old)

    (entry,) = track_changes(old, new, "u1", now_ms=1)

    assert entry.action == "Updated description"
    assert (entry.old_value, entry.new_value) == ("present", "present")


def test_subtasks_and_deadline_summaries() -> None:
    old = _task(subtasks=[Subtask("s1", "one")])
    new = TaskPatch(
        subtasks=[Subtask("s1", "one", True), Subtask("s2", "two")],
        deadline=date(2024, 5, 1),
    ).apply_to(old)

    deadline, subtasks = track_changes(old, new, "u1", now_ms=1)

    assert deadline.new_value == "May 01, 2024"
    assert deadline.old_value == "none"
    assert subtasks.action == "Updated subtasks (1/2 completed)"
    assert (subtasks.old_value, subtasks.new_value) == ("0/1", "1/2")


def test_completion_stamp_rules() -> None:
    todo = _task()
    done = TaskPatch(status=TaskStatus.DONE).apply_to(todo)
    apply_completion_stamp(todo, done, 100)
    assert done.completed_at == 100

    still_done = TaskPatch(title="x").apply_to(done)
    apply_completion_stamp(done, still_done, 200)
    assert still_done.completed_at == 100

    reopened = TaskPatch(status=TaskStatus.IN_PROGRESS).apply_to(done)
    apply_completion_stamp(done, reopened, 300)
    assert reopened.completed_at is None


def test_every_tracked_field_in_one_save() -> None:
    directory = Directory(users={"u2": "trinity"}, projects={"p-core": "Core", "p-web": "Web"})
    old = _task(
        tags=["api"],
        depends_on=["t0"],
        subtasks=[Subtask("s1", "one")],
        attachments=["spec.pdf"],
    )
    new = TaskPatch(
        title="Fix auth",
        description="",
        status=TaskStatus.IN_PROGRESS,
        priority=Priority.CRITICAL,
        assigned_to="u2",
        deadline=date(2024, 7, 1),
        project_id="p-web",
        tags=["api", "auth"],
        depends_on=["t0", "t9"],
        subtasks=[Subtask("s1", "one", True)],
        attachments=[],
    ).apply_to(old)

    entries = track_changes(old, new, "u1", now_ms=7, resolver=directory)

    assert [e.field_name for e in entries] == [
        "title",
        "description",
        "status",
        "priority",
        "assignedTo",
        "deadline",
        "projectId",
        "tags",
        "dependsOn",
        "subtasks",
        "attachments",
    ]
    by_field = {e.field_name: e for e in entries}
    assert by_field["description"].action == "Removed description"
    assert (by_field["description"].old_value, by_field["description"].new_value) == ("present", "empty")
    assert by_field["deadline"].action == "Changed deadline from none to Jul 01, 2024"
    assert by_field["dependsOn"].action == "Updated dependencies (2 tasks): t0, t9"
    assert (by_field["dependsOn"].old_value, by_field["dependsOn"].new_value) == ("t0", "t0, t9")
    assert by_field["subtasks"].action == "Updated subtasks (1/1 completed)"
    assert by_field["attachments"].action == "Attachments changed (1 -> 0)"
    assert (by_field["attachments"].old_value, by_field["attachments"].new_value) == (1, 0)
