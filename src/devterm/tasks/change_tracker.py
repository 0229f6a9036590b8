# src/devterm/tasks/change_tracker.py

"""
Field-level audit trail.

Diffs an old task snapshot against the merged new one and returns one
ActivityLogEntry per changed tracked field. Checks run in a fixed order, so
the same set of changes always produces the same ordered entries no matter
which UI path submitted them.

Comparison is structural (dataclass/list equality), never identity: callers
rebuild collections like tags on every edit.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from ..core.clock import format_display_date
from ..core.ports import NameResolver
from .progress import subtask_counts
from .task_models import ActivityLogEntry, Task, TaskStatus, new_id


@dataclass(slots=True)
class Directory:
    """In-memory id -> display name snapshot (implements NameResolver)."""

    users: dict[str, str] = field(default_factory=dict)
    projects: dict[str, str] = field(default_factory=dict)

    def user_display_name(self, user_id: str) -> str | None:
        return self.users.get(user_id)

    def project_display_name(self, project_id: str) -> str | None:
        return self.projects.get(project_id)


class _EntryFactory:
    def __init__(self, user_id: str, now_ms: int) -> None:
        self._user_id = user_id
        self._now_ms = now_ms
        self.entries: list[ActivityLogEntry] = []

    def add(self, action: str, field_name: str, old_value: object, new_value: object) -> None:
        self.entries.append(
            ActivityLogEntry(
                id=new_id("l"),
                user_id=self._user_id,
                action=action,
                timestamp=self._now_ms,
                field_name=field_name,
                old_value=old_value,
                new_value=new_value,
            )
        )


def _assignee_name(resolver: NameResolver | None, user_id: str | None) -> str:
    if not user_id:
        return "Unassigned"
    name = resolver.user_display_name(user_id) if resolver is not None else None
    return name or user_id


def _project_name(resolver: NameResolver | None, project_id: str | None) -> str:
    if not project_id:
        return "none"
    name = resolver.project_display_name(project_id) if resolver is not None else None
    return name or project_id


def _joined(values: list[str]) -> str:
    return ", ".join(sorted(set(values))) or "none"


# ---- individual checks (the tuple below fixes their order) ----


def _check_title(old: Task, new: Task, out: _EntryFactory, resolver: NameResolver | None) -> None:
    if old.title != new.title:
        out.add(f'Renamed task from "{old.title}" to "{new.title}"', "title", old.title, new.title)


def _check_description(old: Task, new: Task, out: _EntryFactory, resolver: NameResolver | None) -> None:
    if old.description == new.description:
        return
    # Presence only: full text diffs would bloat the log.
    had, has = bool(old.description.strip()), bool(new.description.strip())
    if had and has:
        action = "Updated description"
    elif has:
        action = "Added description"
    else:
        action = "Removed description"
    out.add(action, "description", "present" if had else "empty", "present" if has else "empty")


def _check_status(old: Task, new: Task, out: _EntryFactory, resolver: NameResolver | None) -> None:
    if old.status != new.status:
        out.add(
            f"Changed status from {old.status.value} to {new.status.value}",
            "status",
            old.status.value,
            new.status.value,
        )


def _check_priority(old: Task, new: Task, out: _EntryFactory, resolver: NameResolver | None) -> None:
    if old.priority != new.priority:
        out.add(
            f"Changed priority from {old.priority.value} to {new.priority.value}",
            "priority",
            old.priority.value,
            new.priority.value,
        )


def _check_assignee(old: Task, new: Task, out: _EntryFactory, resolver: NameResolver | None) -> None:
    if (old.assigned_to or None) == (new.assigned_to or None):
        return
    before = _assignee_name(resolver, old.assigned_to)
    after = _assignee_name(resolver, new.assigned_to)
    action = f"Assigned to {after}" if new.assigned_to else "Unassigned task"
    out.add(action, "assignedTo", before, after)


def _check_deadline(old: Task, new: Task, out: _EntryFactory, resolver: NameResolver | None) -> None:
    if old.deadline == new.deadline:
        return
    before = format_display_date(old.deadline)
    after = format_display_date(new.deadline)
    out.add(f"Changed deadline from {before} to {after}", "deadline", before, after)


def _check_project(old: Task, new: Task, out: _EntryFactory, resolver: NameResolver | None) -> None:
    if old.project_id == new.project_id:
        return
    before = _project_name(resolver, old.project_id)
    after = _project_name(resolver, new.project_id)
    out.add(f"Moved from project {before} to {after}", "projectId", before, after)


def _check_tags(old: Task, new: Task, out: _EntryFactory, resolver: NameResolver | None) -> None:
    if set(old.tags) == set(new.tags):
        return
    before, after = _joined(old.tags), _joined(new.tags)
    out.add(f"Updated tags ({len(set(new.tags))}): {after}", "tags", before, after)


def _check_dependencies(old: Task, new: Task, out: _EntryFactory, resolver: NameResolver | None) -> None:
    if set(old.depends_on) == set(new.depends_on):
        return
    before, after = _joined(old.depends_on), _joined(new.depends_on)
    out.add(
        f"Updated dependencies ({len(set(new.depends_on))} tasks): {after}",
        "dependsOn",
        before,
        after,
    )


def _check_subtasks(old: Task, new: Task, out: _EntryFactory, resolver: NameResolver | None) -> None:
    od, ot = subtask_counts(old.subtasks)
    nd, nt = subtask_counts(new.subtasks)
    if (od, ot) == (nd, nt):
        return
    out.add(f"Updated subtasks ({nd}/{nt} completed)", "subtasks", f"{od}/{ot}", f"{nd}/{nt}")


def _check_attachments(old: Task, new: Task, out: _EntryFactory, resolver: NameResolver | None) -> None:
    before, after = len(old.attachments), len(new.attachments)
    if before != after:
        out.add(f"Attachments changed ({before} -> {after})", "attachments", before, after)


_Check = Callable[[Task, Task, _EntryFactory, NameResolver | None], None]

FIELD_CHECKS: tuple[tuple[str, _Check], ...] = (
    ("title", _check_title),
    ("description", _check_description),
    ("status", _check_status),
    ("priority", _check_priority),
    ("assignedTo", _check_assignee),
    ("deadline", _check_deadline),
    ("projectId", _check_project),
    ("tags", _check_tags),
    ("dependsOn", _check_dependencies),
    ("subtasks", _check_subtasks),
    ("attachments", _check_attachments),
)


def track_changes(
    old: Task | None,
    new: Task,
    acting_user_id: str,
    *,
    now_ms: int,
    resolver: NameResolver | None = None,
) -> list[ActivityLogEntry]:
    """
    Audit entries for every tracked field that differs between `old` and `new`.

    A brand-new task (old is None) yields nothing: the orchestrator seeds
    the single "created" entry itself.
    """
    if old is None:
        return []
    out = _EntryFactory(acting_user_id, now_ms)
    for _name, check in FIELD_CHECKS:
        check(old, new, out, resolver)
    return out.entries


def entered_done(old_status: TaskStatus | None, new_status: TaskStatus) -> bool:
    """Edge-triggered completion: only a transition into DONE counts."""
    return new_status == TaskStatus.DONE and old_status != TaskStatus.DONE


def apply_completion_stamp(old: Task | None, new: Task, now_ms: int) -> None:
    """
    Keep completed_at consistent with the status transition (in place on `new`).

    - entering DONE stamps now
    - leaving DONE clears it
    - staying DONE keeps the original stamp
    """
    old_status = old.status if old is not None else None
    if entered_done(old_status, new.status):
        new.completed_at = now_ms
    elif new.status != TaskStatus.DONE:
        new.completed_at = None
    elif old is not None:
        new.completed_at = old.completed_at if old.completed_at is not None else now_ms
