# tests/test_stores.py

from __future__ import annotations

import sqlite3
from datetime import date
from pathlib import Path

import pytest

from devterm.core.errors import PersistenceError, ValidationError
from devterm.tasks.task_models import (
    ActivityLogEntry,
    Comment,
    Priority,
    Project,
    Snippet,
    Subtask,
    Task,
    TaskStatus,
)
from devterm.tasks.task_store import TaskStore
from devterm.users.user_models import Role, User
from devterm.users.user_store import UserStore

from .fakes import ManualClock


def _task(task_id: str = "t1", **kw) -> Task:
    base = dict(
        id=task_id,
        title="Persist me",
        description="with everything",
        project_id="p-core",
        created_by="u1",
        created_at=1_000,
        assigned_to="u1",
    )
    base.update(kw)
    return Task(**base)


@pytest.mark.asyncio
async def test_task_store_round_trip(tmp_path: Path) -> None:
    clock = ManualClock(now_ms=5_000)
    store = TaskStore(tmp_path / "db.sqlite3", clock=clock)
    task = _task(
        status=TaskStatus.REVIEW,
        priority=Priority.CRITICAL,
        deadline=date(2024, 6, 1),
        subtasks=[Subtask("s1", "one", True), Subtask("s2", "two")],
        comments=[Comment("c1", "u1", "hi", 2_000, mentions=["u2"], reactions={"👍": ["u2"]})],
        activity_log=[
            ActivityLogEntry("l1", "u1", "Created task", 1_000),
            ActivityLogEntry("l2", "u1", "Changed status from TODO to REVIEW", 1_500, "status", "TODO", "REVIEW"),
        ],
        tags=["api", "auth"],
        depends_on=["t0"],
        time_spent=12.75,
        timer_started_at=4_000,
        progress=50,
    )

    saved = await store.save_task(task)

    assert saved.updated_at == 5_000
    assert saved.deadline == date(2024, 6, 1)
    assert saved.status == TaskStatus.REVIEW
    assert saved.priority == Priority.CRITICAL
    assert saved.subtasks == task.subtasks
    assert saved.comments == task.comments
    assert saved.activity_log == task.activity_log
    assert saved.tags == ["api", "auth"]
    assert saved.depends_on == ["t0"]
    assert saved.time_spent == pytest.approx(12.75)
    assert saved.timer_started_at == 4_000
    assert await store.get_task("t1") == saved


@pytest.mark.asyncio
async def test_task_store_upsert_filter_and_delete(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "db.sqlite3", clock=ManualClock())
    await store.save_task(_task("t1"))
    await store.save_task(_task("t2", assigned_to="u2"))
    await store.save_task(_task("t1", title="Renamed"))

    assert store.count_tasks() == 2
    mine = await store.load_tasks_for_user("u1")
    assert [t.title for t in mine] == ["Renamed"]

    assert await store.delete_task("t1") is True
    assert await store.delete_task("t1") is False
    assert await store.get_task("t1") is None


@pytest.mark.asyncio
async def test_task_store_projects(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "db.sqlite3")
    await store.save_project(Project(id="p2", name="web"))
    await store.save_project(Project(id="p1", name="Core", color="#ff00ff"))

    assert [p.name for p in await store.list_projects()] == ["Core", "web"]


@pytest.mark.asyncio
async def test_task_store_migrates_old_schema(tmp_path: Path) -> None:
    db = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(db)
    conn.execute(
        """
        CREATE TABLE tasks (
            id TEXT PRIMARY KEY, title TEXT NOT NULL, description TEXT NOT NULL DEFAULT '',
            project_id TEXT NOT NULL, assigned_to TEXT, created_by TEXT NOT NULL,
            created_at INTEGER NOT NULL, deadline TEXT, completed_at INTEGER,
            status TEXT NOT NULL DEFAULT 'TODO', priority TEXT NOT NULL DEFAULT 'MEDIUM',
            subtasks TEXT NOT NULL DEFAULT '[]', comments TEXT NOT NULL DEFAULT '[]',
            activity_log TEXT NOT NULL DEFAULT '[]', attachments TEXT NOT NULL DEFAULT '[]',
            time_spent REAL NOT NULL DEFAULT 0, timer_started_at INTEGER
        )
        """
    )
    conn.execute("INSERT INTO tasks(id, title, project_id, created_by, created_at) VALUES ('old', 'Legacy', 'p', 'u', 1)")
    conn.commit()
    conn.close()

    store = TaskStore(db)
    legacy = await store.get_task("old")

    assert legacy is not None
    assert legacy.tags == []
    assert legacy.order == 0
    assert legacy.updated_at is None


@pytest.mark.asyncio
async def test_task_store_wraps_sqlite_errors(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "db.sqlite3")
    conn = sqlite3.connect(tmp_path / "db.sqlite3")
    conn.execute("DROP TABLE tasks")
    conn.commit()
    conn.close()

    with pytest.raises(PersistenceError):
        await store.save_task(_task())


@pytest.mark.asyncio
async def test_user_store_seed_auth_and_save(tmp_path: Path) -> None:
    store = UserStore(tmp_path / "db.sqlite3")

    admin = await store.ensure_admin("admin", "s3cret")
    assert admin is not None and admin.role == Role.ADMIN
    assert await store.ensure_admin("admin", "other") is None

    assert await store.authenticate("ADMIN", "s3cret") is not None
    assert await store.authenticate("admin", "wrong") is None
    assert await store.authenticate("ghost", "s3cret") is None

    dev = await store.add_user("neo", "pw", Role.DEVELOPER)
    dev.xp = 350
    dev.achievements = ["a1", "a2"]
    saved = await store.save_user(dev)

    assert saved.xp == 350
    assert saved.achievements == ["a1", "a2"]
    assert [u.username for u in await store.list_users()] == ["admin", "neo"]


@pytest.mark.asyncio
async def test_user_store_rejects_duplicates_and_unknown_users(tmp_path: Path) -> None:
    store = UserStore(tmp_path / "db.sqlite3")
    await store.add_user("neo", "pw")

    with pytest.raises(ValidationError):
        await store.add_user("Neo", "pw2")

    with pytest.raises(PersistenceError):
        await store.save_user(User(id="u-ghost", username="ghost"))


@pytest.mark.asyncio
async def test_task_store_snippets(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "db.sqlite3")
    code = "def f():\n\treturn 1\n"
    await store.save_snippet(Snippet("s1", "Old", "python", code, "u1", 1_000))
    await store.save_snippet(Snippet("s2", "New", "sql", "SELECT 1;", "u1", 2_000))

    snippets = await store.list_snippets()

    assert [s.id for s in snippets] == ["s2", "s1"]
    assert snippets[1].code == code
    assert snippets[1].timestamp == 1_000
    assert await store.delete_snippet("s1") is True
    assert await store.delete_snippet("s1") is False
    assert [s.id for s in await store.list_snippets()] == ["s2"]


@pytest.mark.asyncio
async def test_user_store_delete(tmp_path: Path) -> None:
    store = UserStore(tmp_path / "db.sqlite3")
    neo = await store.add_user("neo", "pw")

    assert await store.delete_user(neo.id) is True
    assert await store.delete_user(neo.id) is False
    assert await store.authenticate("neo", "pw") is None


@pytest.mark.asyncio
async def test_user_store_save_reports_row_lost_after_update(tmp_path: Path, monkeypatch) -> None:
    store = UserStore(tmp_path / "db.sqlite3")
    neo = await store.add_user("neo", "pw")
    monkeypatch.setattr(store, "_get_user_sync", lambda user_id: None)

    with pytest.raises(PersistenceError) as exc:
        await store.save_user(neo)
    assert exc.value.pending is neo
