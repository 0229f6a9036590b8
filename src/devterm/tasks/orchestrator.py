# src/devterm/tasks/orchestrator.py

"""
Task mutation orchestration.

Every change to a task goes through TaskMutationOrchestrator so that derived
state stays consistent no matter which command triggered it:

- progress is recomputed from the subtasks, never taken from the caller,
- audit entries are appended (never replaced) in the fixed tracker order,
- completed_at follows the DONE edge,
- completion XP is edge-triggered and granted only after the task save succeeded,
- the store's response is returned, so callers resync from one source of truth.

Failure policy:
- ValidationError / AccessDeniedError are raised before anything is computed,
- PersistenceError on the task save aborts XP and achievement evaluation and
  carries the unsaved task in `pending`,
- a failed user save is logged only; the task save stays committed.

Every error is reported to the notification sink before it is re-raised.
Concurrent sessions editing the same task are last-write-wins; there is no
version check.
"""

from __future__ import annotations

import logging
import re
from datetime import tzinfo

from ..core.errors import AccessDeniedError, NotFoundError, PersistenceError, ValidationError
from ..core.ports import Clock, Notifier, Severity, TaskRepo, UserRepo
from ..gamification.evaluator import (
    AnnouncementContext,
    EvaluationResult,
    XpTable,
    completion_xp,
    evaluate_achievements,
)
from ..users.user_models import User
from . import time_tracking
from .change_tracker import Directory, apply_completion_stamp, track_changes
from .progress import calculate_progress
from .task_models import (
    ActivityLogEntry,
    Comment,
    Project,
    Snippet,
    Task,
    TaskPatch,
    copy_task,
    new_id,
)

logger = logging.getLogger(__name__)

_MENTION_RE = re.compile(r"@([A-Za-z0-9_.\-]+)")
_REQUIRED = (("title", "title"), ("description", "description"), ("project_id", "project"))

# Store failures the orchestrator reports as PersistenceError.
_STORE_ERRORS = (PersistenceError, OSError)


class TaskMutationOrchestrator:
    def __init__(
        self,
        task_repo: TaskRepo,
        user_repo: UserRepo,
        notifier: Notifier,
        clock: Clock,
        *,
        xp_table: XpTable | None = None,
        announcements: AnnouncementContext | None = None,
        directory: Directory | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self._tasks = task_repo
        self._users = user_repo
        self._notifier = notifier
        self._clock = clock
        self.xp_table = xp_table or XpTable()
        self.announcements = announcements or AnnouncementContext()
        self.directory = directory or Directory()
        self._tz = tz

    # ---- helpers ----

    def _notify(self, message: str, severity: Severity = Severity.INFO) -> None:
        try:
            self._notifier.notify(message, severity)
        except Exception:
            logger.exception("Notifier failed for message=%r", message)

    def _fail(self, exc: Exception) -> Exception:
        """Report an error to the sink and hand it back for `raise`."""
        self._notify(str(exc), Severity.ERROR)
        return exc

    def _require_editor(self, actor: User) -> None:
        if not actor.can_edit:
            raise self._fail(AccessDeniedError(f"{actor.username} has read-only access"))

    def _validate(self, title: object, description: object, project_id: object) -> None:
        values = {"title": title, "description": description, "project_id": project_id}
        missing = [label for key, label in _REQUIRED if not str(values[key] or "").strip()]
        if missing:
            raise self._fail(
                ValidationError(f"Missing required field(s): {', '.join(missing)}", fields=missing)
            )

    async def _load(self, task_id: str) -> Task:
        try:
            task = await self._tasks.get_task(task_id)
        except _STORE_ERRORS as e:
            logger.exception("Task load failed id=%s", task_id)
            raise self._fail(PersistenceError(f"Could not load task {task_id}: {e}")) from e
        if task is None:
            raise self._fail(NotFoundError(f"Task {task_id} not found"))
        return task

    async def _persist(self, task: Task) -> Task:
        try:
            return await self._tasks.save_task(task)
        except _STORE_ERRORS as e:
            logger.exception("Task save failed id=%s", task.id)
            raise self._fail(PersistenceError(f"Could not save task {task.id}: {e}", pending=task)) from e

    async def _settle_user(self, actor: User, xp_delta: int) -> EvaluationResult:
        """
        Apply completion XP, run the achievement evaluator over the actor's
        tasks and persist the user if anything changed. Best-effort: store
        failures here are logged and never undo the task save.
        """
        if xp_delta > 0:
            actor.xp = int(actor.xp) + xp_delta

        result = EvaluationResult()
        try:
            tasks = await self._tasks.load_tasks_for_user(actor.id)
        except _STORE_ERRORS:
            logger.exception("Could not load tasks for achievement evaluation user=%s", actor.id)
        else:
            result = evaluate_achievements(
                actor,
                tasks,
                announcements=self.announcements,
                notifier=self._notifier,
                tz=self._tz,
            )

        if xp_delta > 0 or result.changed:
            try:
                await self._users.save_user(actor)
            except _STORE_ERRORS:
                logger.exception("User save failed user=%s xp=%s (task save kept)", actor.id, actor.xp)
        return result

    async def refresh_directory(self) -> Directory:
        """Reload id -> display name maps used in audit messages and @mentions."""
        users = await self._users.list_users()
        projects = await self._tasks.list_projects()
        self.directory.users = {u.id: u.username for u in users}
        self.directory.projects = {p.id: p.name for p in projects}
        return self.directory

    # ---- create / update ----

    async def create_task(self, patch: TaskPatch, actor: User) -> Task:
        """First save of a new task: one "created" entry, no diffing, no XP."""
        self._require_editor(actor)
        fields = patch.provided()
        self._validate(fields.get("title"), fields.get("description"), fields.get("project_id"))

        now = self._clock.now_ms()
        task = patch.apply_to(
            Task(id=new_id("t"), title="", description="", project_id="", created_by=actor.id, created_at=now)
        )
        task.progress = calculate_progress(task.subtasks)
        apply_completion_stamp(None, task, now)
        task.activity_log = [
            ActivityLogEntry(id=new_id("l"), user_id=actor.id, action="Created task", timestamp=now)
        ]

        saved = await self._persist(task)
        logger.info("Task created id=%s by=%s", saved.id, actor.id)
        self._notify("New directive created", Severity.SUCCESS)
        await self._settle_user(actor, 0)
        return saved

    async def update_task(self, existing: Task | None, patch: TaskPatch, actor: User) -> Task:
        if existing is None:
            return await self.create_task(patch, actor)

        self._require_editor(actor)
        merged = patch.apply_to(existing)
        self._validate(merged.title, merged.description, merged.project_id)

        now = self._clock.now_ms()
        merged.progress = calculate_progress(merged.subtasks)
        merged.activity_log.extend(
            track_changes(existing, merged, actor.id, now_ms=now, resolver=self.directory)
        )
        apply_completion_stamp(existing, merged, now)
        # Bonus follows the priority the task had before this edit.
        xp = completion_xp(existing.status, merged.status, existing.priority, self.xp_table)

        saved = await self._persist(merged)
        logger.info(
            "Task updated id=%s by=%s entries=%s xp=%s",
            saved.id,
            actor.id,
            len(merged.activity_log) - len(existing.activity_log),
            xp,
        )
        if xp > 0:
            self._notify(f"Task Complete! +{xp} XP", Severity.SUCCESS)
        await self._settle_user(actor, xp)
        return saved

    async def update_task_by_id(self, task_id: str, patch: TaskPatch, actor: User) -> Task:
        self._require_editor(actor)
        existing = await self._load(task_id)
        return await self.update_task(existing, patch, actor)

    async def delete_task(self, task_id: str, actor: User) -> None:
        self._require_editor(actor)
        try:
            deleted = await self._tasks.delete_task(task_id)
        except _STORE_ERRORS as e:
            logger.exception("Task delete failed id=%s", task_id)
            raise self._fail(PersistenceError(f"Could not delete task {task_id}: {e}")) from e
        if not deleted:
            raise self._fail(NotFoundError(f"Task {task_id} not found"))
        logger.info("Task deleted id=%s by=%s", task_id, actor.id)
        self._notify("Task purged", Severity.WARNING)

    async def create_project(self, name: str, actor: User, *, color: str = "#00ffff") -> Project:
        self._require_editor(actor)
        name = (name or "").strip()
        if not name:
            raise self._fail(ValidationError("Project name is required", fields=["name"]))
        try:
            project = await self._tasks.save_project(Project(id=new_id("p"), name=name, color=color))
        except _STORE_ERRORS as e:
            logger.exception("Project save failed name=%s", name)
            raise self._fail(PersistenceError(f"Could not save project {name}: {e}")) from e
        self.directory.projects[project.id] = project.name
        self._notify(f"Project {project.name} initialized", Severity.SUCCESS)
        return project

    # ---- timers ----

    async def start_timer(self, task_id: str, actor: User) -> Task:
        self._require_editor(actor)
        task = await self._load(task_id)
        started = time_tracking.start_timer(task, now_ms=self._clock.now_ms(), user_id=actor.id)
        if started is None:
            logger.info("Timer already running id=%s", task_id)
            return task
        return await self._persist(started)

    async def stop_timer(
        self,
        task_id: str,
        actor: User,
        *,
        action: str = "Stopped time tracking",
    ) -> Task:
        self._require_editor(actor)
        task = await self._load(task_id)
        stopped = time_tracking.stop_timer(task, now_ms=self._clock.now_ms(), user_id=actor.id, action=action)
        if stopped is None:
            logger.info("Timer not running id=%s", task_id)
            return task
        saved = await self._persist(stopped)
        await self._settle_user(actor, 0)
        return saved

    async def heartbeat(self, task_id: str) -> Task | None:
        """
        Fold the running session into time_spent and restart it. Reads the
        stored task, so a timer stopped elsewhere makes this a no-op.
        """
        task = await self._load(task_id)
        folded = time_tracking.fold_elapsed(task, now_ms=self._clock.now_ms())
        if folded is None:
            return None
        saved = await self._persist(folded)
        logger.debug("Heartbeat id=%s time_spent=%.1f", task_id, saved.time_spent)
        return saved

    async def reconcile_timer_on_open(self, task_id: str, actor: User) -> Task:
        """Stop a timer left running when the task is opened again."""
        task = await self._load(task_id)
        if not task.timer_running or not actor.can_edit:
            return task
        return await self.stop_timer(task_id, actor, action="Auto-stopped time tracking")

    async def open_task(self, task_id: str, actor: User) -> Task:
        task = await self._load(task_id)
        if not actor.can_view_project(task.project_id):
            raise self._fail(AccessDeniedError(f"{actor.username} may not open tasks of this project"))
        return await self.reconcile_timer_on_open(task_id, actor)

    # ---- comments ----

    def resolve_mentions(self, text: str) -> list[str]:
        by_name = {name.lower(): uid for uid, name in self.directory.users.items()}
        out: list[str] = []
        for name in _MENTION_RE.findall(text):
            uid = by_name.get(name.lower())
            if uid and uid not in out:
                out.append(uid)
        return out

    @staticmethod
    def _find_comment(task: Task, comment_id: str) -> Comment | None:
        for c in task.comments:
            if c.id == comment_id:
                return c
        return None

    async def add_comment(self, task_id: str, text: str, actor: User) -> Task:
        self._require_editor(actor)
        text = (text or "").strip()
        if not text:
            raise self._fail(ValidationError("Comment text is empty", fields=["text"]))

        task = copy_task(await self._load(task_id))
        task.comments.append(
            Comment(
                id=new_id("c"),
                user_id=actor.id,
                text=text,
                timestamp=self._clock.now_ms(),
                mentions=self.resolve_mentions(text),
            )
        )
        saved = await self._persist(task)
        self._notify("Comment added", Severity.SUCCESS)
        return saved

    async def edit_comment(self, task_id: str, comment_id: str, text: str, actor: User) -> Task:
        self._require_editor(actor)
        text = (text or "").strip()
        if not text:
            raise self._fail(ValidationError("Comment text is empty", fields=["text"]))

        task = copy_task(await self._load(task_id))
        comment = self._find_comment(task, comment_id)
        if comment is None:
            raise self._fail(NotFoundError(f"Comment {comment_id} not found"))
        if comment.user_id != actor.id:
            raise self._fail(AccessDeniedError("Only the author can edit a comment"))

        comment.text = text
        comment.mentions = self.resolve_mentions(text)
        comment.edited = True
        comment.edited_at = self._clock.now_ms()
        return await self._persist(task)

    async def toggle_reaction(self, task_id: str, comment_id: str, emoji: str, actor: User) -> Task:
        self._require_editor(actor)
        emoji = (emoji or "").strip()
        if not emoji:
            raise self._fail(ValidationError("Reaction is empty", fields=["emoji"]))

        task = copy_task(await self._load(task_id))
        comment = self._find_comment(task, comment_id)
        if comment is None:
            raise self._fail(NotFoundError(f"Comment {comment_id} not found"))

        users = comment.reactions.setdefault(emoji, [])
        if actor.id in users:
            users.remove(actor.id)
        else:
            users.append(actor.id)
        if not users:
            del comment.reactions[emoji]
        return await self._persist(task)

    # ---- snippets ----

    async def add_snippet(self, title: str, language: str, code: str, actor: User) -> Snippet:
        self._require_editor(actor)
        title = (title or "").strip()
        if not title or not (code or "").strip():
            raise self._fail(ValidationError("Snippet title and code are required", fields=["title", "code"]))

        snippet = Snippet(
            id=new_id("s"),
            title=title,
            language=(language or "").strip().lower() or "text",
            code=code,
            created_by=actor.id,
            timestamp=self._clock.now_ms(),
        )
        try:
            saved = await self._tasks.save_snippet(snippet)
        except _STORE_ERRORS as e:
            logger.exception("Snippet save failed title=%s", title)
            raise self._fail(PersistenceError(f"Could not save snippet {title}: {e}")) from e
        logger.info("Snippet archived id=%s by=%s", saved.id, actor.id)
        self._notify("Code snippet archived", Severity.SUCCESS)
        return saved

    async def delete_snippet(self, snippet_id: str, actor: User) -> None:
        self._require_editor(actor)
        try:
            deleted = await self._tasks.delete_snippet(snippet_id)
        except _STORE_ERRORS as e:
            logger.exception("Snippet delete failed id=%s", snippet_id)
            raise self._fail(PersistenceError(f"Could not delete snippet {snippet_id}: {e}")) from e
        if not deleted:
            raise self._fail(NotFoundError(f"Snippet {snippet_id} not found"))
        self._notify("Snippet deleted", Severity.WARNING)
