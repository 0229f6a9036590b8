# src/devterm/tasks/task_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from enum import StrEnum
from typing import Any

SYSTEM_USER_ID = "system"

# Sentinel for "field not provided" in a TaskPatch (None is a legal value for optional fields).
UNSET: Any = object()


class TaskStatus(StrEnum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW = "REVIEW"
    DONE = "DONE"
    BLOCKED = "BLOCKED"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.TODO
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            return cls.TODO


class Priority(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @classmethod
    def from_db(cls, raw: str | None) -> Priority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            return cls.MEDIUM


def new_id(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex[:12]}"


@dataclass(slots=True)
class Subtask:
    id: str
    title: str
    completed: bool = False


@dataclass(slots=True)
class Comment:
    id: str
    user_id: str
    text: str
    timestamp: int
    mentions: list[str] = field(default_factory=list)
    reactions: dict[str, list[str]] = field(default_factory=dict)
    edited: bool = False
    edited_at: int | None = None


@dataclass(frozen=True, slots=True)
class ActivityLogEntry:
    """One audit record. Never mutated or reordered once appended to a task."""

    id: str
    user_id: str
    action: str
    timestamp: int
    field_name: str | None = None
    old_value: Any = None
    new_value: Any = None


@dataclass(slots=True)
class Project:
    id: str
    name: str
    color: str = "#00ffff"


@dataclass(slots=True)
class Snippet:
    """Archived code snippet (the code vault)."""

    id: str
    title: str
    language: str
    code: str
    created_by: str
    timestamp: int


@dataclass(slots=True)
class Task:
    id: str
    title: str
    description: str
    project_id: str
    created_by: str
    created_at: int

    status: TaskStatus = TaskStatus.TODO
    priority: Priority = Priority.MEDIUM
    assigned_to: str | None = None
    deadline: date | None = None
    completed_at: int | None = None

    subtasks: list[Subtask] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)
    activity_log: list[ActivityLogEntry] = field(default_factory=list)
    attachments: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    depends_on: list[str] = field(default_factory=list)

    # Time tracking: timer_started_at is not None => running session not yet folded into time_spent.
    time_spent: float = 0.0
    timer_started_at: int | None = None

    progress: int = 0
    order: int = 0
    updated_at: int | None = None

    @property
    def timer_running(self) -> bool:
        return self.timer_started_at is not None


_PATCHABLE = (
    "title",
    "description",
    "project_id",
    "assigned_to",
    "deadline",
    "status",
    "priority",
    "subtasks",
    "attachments",
    "tags",
    "depends_on",
    "order",
)


@dataclass(slots=True)
class TaskPatch:
    """
    Caller-supplied changes to a task.

    Only the fields a caller may set directly are present. Derived fields
    (progress, completed_at), the audit log, comments and timer state are
    owned by the orchestrator. UNSET means "keep the current value".
    """

    title: str | Any = UNSET
    description: str | Any = UNSET
    project_id: str | Any = UNSET
    assigned_to: str | None | Any = UNSET
    deadline: date | None | Any = UNSET
    status: TaskStatus | str | Any = UNSET
    priority: Priority | str | Any = UNSET
    subtasks: list[Subtask] | Any = UNSET
    attachments: list[str] | Any = UNSET
    tags: list[str] | Any = UNSET
    depends_on: list[str] | Any = UNSET
    order: int | Any = UNSET

    def provided(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in _PATCHABLE if getattr(self, name) is not UNSET}

    def apply_to(self, task: Task) -> Task:
        """Return a copy of `task` with the provided fields replaced (collections copied)."""
        changes: dict[str, Any] = {}
        for name, value in self.provided().items():
            if name == "status":
                value = TaskStatus.from_db(value) if not isinstance(value, TaskStatus) else value
            elif name == "priority":
                value = Priority.from_db(value) if not isinstance(value, Priority) else value
            elif name == "subtasks":
                value = [replace(s) for s in (value or [])]
            elif name in ("attachments", "tags", "depends_on"):
                value = list(value or [])
            changes[name] = value
        return replace(copy_task(task), **changes)


def copy_task(task: Task) -> Task:
    """Copy with fresh containers so edits never leak into the caller's object."""
    return replace(
        task,
        subtasks=[replace(s) for s in task.subtasks],
        comments=[
            replace(c, mentions=list(c.mentions), reactions={k: list(v) for k, v in c.reactions.items()})
            for c in task.comments
        ],
        activity_log=list(task.activity_log),
        attachments=list(task.attachments),
        tags=list(task.tags),
        depends_on=list(task.depends_on),
    )


# ---- serialization (used by the SQLite store and exports) ----


def subtask_to_dict(s: Subtask) -> dict[str, Any]:
    return {"id": s.id, "title": s.title, "completed": bool(s.completed)}


def subtask_from_dict(d: dict[str, Any]) -> Subtask:
    return Subtask(
        id=str(d.get("id") or new_id("st")),
        title=str(d.get("title") or ""),
        completed=bool(d.get("completed", False)),
    )


def comment_to_dict(c: Comment) -> dict[str, Any]:
    return {
        "id": c.id,
        "userId": c.user_id,
        "text": c.text,
        "timestamp": c.timestamp,
        "mentions": list(c.mentions),
        "reactions": {k: list(v) for k, v in c.reactions.items()},
        "edited": c.edited,
        "editedAt": c.edited_at,
    }


def comment_from_dict(d: dict[str, Any]) -> Comment:
    reactions_raw = d.get("reactions") or {}
    reactions = {
        str(k): [str(u) for u in v]
        for k, v in reactions_raw.items()
        if isinstance(v, list)
    } if isinstance(reactions_raw, dict) else {}
    return Comment(
        id=str(d.get("id") or new_id("c")),
        user_id=str(d.get("userId") or SYSTEM_USER_ID),
        text=str(d.get("text") or ""),
        timestamp=int(d.get("timestamp") or 0),
        mentions=[str(m) for m in (d.get("mentions") or [])],
        reactions=reactions,
        edited=bool(d.get("edited", False)),
        edited_at=int(d["editedAt"]) if d.get("editedAt") is not None else None,
    )


def entry_to_dict(e: ActivityLogEntry) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": e.id,
        "userId": e.user_id,
        "action": e.action,
        "timestamp": e.timestamp,
    }
    if e.field_name is not None:
        out["fieldName"] = e.field_name
        out["oldValue"] = e.old_value
        out["newValue"] = e.new_value
    return out


def entry_from_dict(d: dict[str, Any]) -> ActivityLogEntry:
    return ActivityLogEntry(
        id=str(d.get("id") or new_id("l")),
        user_id=str(d.get("userId") or SYSTEM_USER_ID),
        action=str(d.get("action") or ""),
        timestamp=int(d.get("timestamp") or 0),
        field_name=d.get("fieldName"),
        old_value=d.get("oldValue"),
        new_value=d.get("newValue"),
    )
