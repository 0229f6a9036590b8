# src/devterm/tasks/task_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sqlite3
from datetime import date
from pathlib import Path
from typing import Any

from ..core.clock import SystemClock
from ..core.errors import PersistenceError, ValidationError
from ..core.ports import Clock
from .task_models import (
    Priority,
    Project,
    Snippet,
    Task,
    TaskStatus,
    comment_from_dict,
    comment_to_dict,
    entry_from_dict,
    entry_to_dict,
    subtask_from_dict,
    subtask_to_dict,
)

logger = logging.getLogger(__name__)


class TaskStore:
    """
    SQLite task, project and snippet store.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Collections (subtasks, comments, activity log, tags, ...) live in JSON
    text columns. Writes are last-write-wins upserts by id; there is no
    optimistic-concurrency token.

    Thread-safety:
    - each method opens its own SQLite connection
    - async methods run the blocking SQL in a worker thread
    """

    def __init__(self, db_path: str | Path = "devterm.sqlite3", *, clock: Clock | None = None) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._clock = clock or SystemClock()
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except Exception:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    project_id TEXT NOT NULL,
                    assigned_to TEXT,
                    created_by TEXT NOT NULL,
                    created_at INTEGER NOT NULL,
                    deadline TEXT,
                    completed_at INTEGER,
                    status TEXT NOT NULL DEFAULT 'TODO',
                    priority TEXT NOT NULL DEFAULT 'MEDIUM',
                    subtasks TEXT NOT NULL DEFAULT '[]',
                    comments TEXT NOT NULL DEFAULT '[]',
                    activity_log TEXT NOT NULL DEFAULT '[]',
                    attachments TEXT NOT NULL DEFAULT '[]',
                    time_spent REAL NOT NULL DEFAULT 0,
                    timer_started_at INTEGER
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS projects (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    color TEXT NOT NULL DEFAULT '#00ffff'
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS snippets (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    language TEXT NOT NULL DEFAULT 'text',
                    code TEXT NOT NULL,
                    created_by TEXT NOT NULL,
                    created_at INTEGER NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("tags", "TEXT NOT NULL DEFAULT '[]'")
            add_col("depends_on", "TEXT NOT NULL DEFAULT '[]'")
            add_col("progress", "INTEGER NOT NULL DEFAULT 0")
            add_col("sort_order", "INTEGER NOT NULL DEFAULT 0")
            add_col("updated_at", "INTEGER")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_assigned ON tasks(assigned_to, status)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_project ON tasks(project_id)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _list_to_str(values: list[Any] | None) -> str:
        try:
            return json.dumps(list(values or []), ensure_ascii=False)
        except Exception:
            logger.exception("Failed to JSON-encode column; storing [].")
            return "[]"

    @staticmethod
    def _str_to_list(s: str | None) -> list[Any]:
        if not s:
            return []
        try:
            val = json.loads(s)
            return val if isinstance(val, list) else []
        except Exception:
            return []

    @staticmethod
    def _parse_date(raw: str | None) -> date | None:
        if not raw:
            return None
        try:
            return date.fromisoformat(str(raw)[:10])
        except ValueError:
            return None

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            description=str(row["description"] or ""),
            project_id=str(row["project_id"] or ""),
            assigned_to=row["assigned_to"],
            created_by=str(row["created_by"] or ""),
            created_at=int(row["created_at"] or 0),
            deadline=self._parse_date(row["deadline"]),
            completed_at=int(row["completed_at"]) if row["completed_at"] is not None else None,
            status=TaskStatus.from_db(row["status"]),
            priority=Priority.from_db(row["priority"]),
            subtasks=[subtask_from_dict(d) for d in self._str_to_list(row["subtasks"]) if isinstance(d, dict)],
            comments=[comment_from_dict(d) for d in self._str_to_list(row["comments"]) if isinstance(d, dict)],
            activity_log=[entry_from_dict(d) for d in self._str_to_list(row["activity_log"]) if isinstance(d, dict)],
            attachments=[str(a) for a in self._str_to_list(row["attachments"])],
            tags=[str(t) for t in self._str_to_list(row["tags"])],
            depends_on=[str(t) for t in self._str_to_list(row["depends_on"])],
            time_spent=max(0.0, float(row["time_spent"] or 0.0)),
            timer_started_at=int(row["timer_started_at"]) if row["timer_started_at"] is not None else None,
            progress=int(row["progress"] or 0),
            order=int(row["sort_order"] or 0),
            updated_at=int(row["updated_at"]) if row["updated_at"] is not None else None,
        )

    # ---- sync implementation ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def _get_task_sync(self, task_id: str) -> Task | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE id = ?", (str(task_id),))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def _save_task_sync(self, task: Task) -> Task:
        now = self._clock.now_ms()
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO tasks(
                    id, title, description, project_id, assigned_to, created_by, created_at,
                    deadline, completed_at, status, priority,
                    subtasks, comments, activity_log, attachments, tags, depends_on,
                    time_spent, timer_started_at, progress, sort_order, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    description = excluded.description,
                    project_id = excluded.project_id,
                    assigned_to = excluded.assigned_to,
                    deadline = excluded.deadline,
                    completed_at = excluded.completed_at,
                    status = excluded.status,
                    priority = excluded.priority,
                    subtasks = excluded.subtasks,
                    comments = excluded.comments,
                    activity_log = excluded.activity_log,
                    attachments = excluded.attachments,
                    tags = excluded.tags,
                    depends_on = excluded.depends_on,
                    time_spent = excluded.time_spent,
                    timer_started_at = excluded.timer_started_at,
                    progress = excluded.progress,
                    sort_order = excluded.sort_order,
                    updated_at = excluded.updated_at
                """,
                (
                    task.id,
                    task.title,
                    task.description,
                    task.project_id,
                    task.assigned_to,
                    task.created_by,
                    int(task.created_at),
                    task.deadline.isoformat() if task.deadline else None,
                    task.completed_at,
                    task.status.value,
                    task.priority.value,
                    self._list_to_str([subtask_to_dict(s) for s in task.subtasks]),
                    self._list_to_str([comment_to_dict(c) for c in task.comments]),
                    self._list_to_str([entry_to_dict(e) for e in task.activity_log]),
                    self._list_to_str(task.attachments),
                    self._list_to_str(task.tags),
                    self._list_to_str(task.depends_on),
                    max(0.0, float(task.time_spent)),
                    task.timer_started_at,
                    int(task.progress),
                    int(task.order),
                    now,
                ),
            )
            conn.commit()
        finally:
            conn.close()

        saved = self._get_task_sync(task.id)
        if saved is None:
            raise RuntimeError(f"Task vanished right after save id={task.id}")
        logger.debug("Task saved id=%s status=%s", task.id, task.status.value)
        return saved

    def _load_tasks_sync(self, user_id: str | None = None) -> list[Task]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if user_id is None:
                cur.execute("SELECT * FROM tasks ORDER BY sort_order ASC, created_at DESC")
            else:
                cur.execute(
                    "SELECT * FROM tasks WHERE assigned_to = ? ORDER BY sort_order ASC, created_at DESC",
                    (str(user_id),),
                )
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def _delete_task_sync(self, task_id: str) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("DELETE FROM tasks WHERE id = ?", (str(task_id),))
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def _list_projects_sync(self) -> list[Project]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM projects ORDER BY name COLLATE NOCASE ASC")
            return [Project(id=r["id"], name=r["name"], color=r["color"]) for r in cur.fetchall()]
        finally:
            conn.close()

    def _save_project_sync(self, project: Project) -> Project:
        if not project.name or not project.name.strip():
            raise ValidationError("Project name is required", fields=["name"])
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO projects(id, name, color) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET name = excluded.name, color = excluded.color
                """,
                (project.id, project.name.strip(), project.color),
            )
            conn.commit()
            return Project(id=project.id, name=project.name.strip(), color=project.color)
        finally:
            conn.close()

    @staticmethod
    def _row_to_snippet(row: sqlite3.Row) -> Snippet:
        return Snippet(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            language=str(row["language"] or "text"),
            code=str(row["code"] or ""),
            created_by=str(row["created_by"] or ""),
            timestamp=int(row["created_at"] or 0),
        )

    def _list_snippets_sync(self) -> list[Snippet]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM snippets ORDER BY created_at DESC, id ASC").fetchall()
            return [self._row_to_snippet(r) for r in rows]
        finally:
            conn.close()

    def _save_snippet_sync(self, snippet: Snippet) -> Snippet:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO snippets(id, title, language, code, created_by, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    language = excluded.language,
                    code = excluded.code
                """,
                (snippet.id, snippet.title, snippet.language, snippet.code, snippet.created_by, int(snippet.timestamp)),
            )
            conn.commit()
            row = conn.execute("SELECT * FROM snippets WHERE id = ?", (snippet.id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            raise RuntimeError(f"Snippet vanished right after save id={snippet.id}")
        return self._row_to_snippet(row)

    def _delete_snippet_sync(self, snippet_id: str) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("DELETE FROM snippets WHERE id = ?", (str(snippet_id),))
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    # ---- public API (TaskRepo) ----

    async def _call(self, what: str, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.Error as e:
            logger.exception("TaskStore %s failed", what)
            raise PersistenceError(f"Task store error during {what}: {e}") from e

    async def save_task(self, task: Task) -> Task:
        return await self._call("save_task", self._save_task_sync, task)

    async def get_task(self, task_id: str) -> Task | None:
        return await self._call("get_task", self._get_task_sync, task_id)

    async def load_all_tasks(self) -> list[Task]:
        return await self._call("load_all_tasks", self._load_tasks_sync)

    async def load_tasks_for_user(self, user_id: str) -> list[Task]:
        return await self._call("load_tasks_for_user", self._load_tasks_sync, user_id)

    async def delete_task(self, task_id: str) -> bool:
        return await self._call("delete_task", self._delete_task_sync, task_id)

    async def list_projects(self) -> list[Project]:
        return await self._call("list_projects", self._list_projects_sync)

    async def save_project(self, project: Project) -> Project:
        return await self._call("save_project", self._save_project_sync, project)

    async def list_snippets(self) -> list[Snippet]:
        return await self._call("list_snippets", self._list_snippets_sync)

    async def save_snippet(self, snippet: Snippet) -> Snippet:
        return await self._call("save_snippet", self._save_snippet_sync, snippet)

    async def delete_snippet(self, snippet_id: str) -> bool:
        return await self._call("delete_snippet", self._delete_snippet_sync, snippet_id)
