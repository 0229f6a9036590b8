# src/devterm/cli/commands.py

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Callable, Coroutine
from datetime import date
from pathlib import Path
from typing import Any, TypeVar, cast

from ..core.clock import format_display_date, format_duration, local_datetime
from ..core.errors import AccessDeniedError, DevtermError, NotFoundError, ValidationError
from ..core.ports import Severity
from ..core.state import AppState
from ..gamification.achievements import ACHIEVEMENTS
from ..gamification.levels import build_leaderboard, level_info
from ..llm.client import friendly_llm_error_message
from ..tasks.activity_feed import build_activity_feed
from ..tasks.task_api import audit_snippet, suggest_subtasks
from ..tasks.task_models import Priority, Snippet, Subtask, Task, TaskPatch, TaskStatus, new_id
from ..tasks.time_tracking import live_time_spent
from ..users.user_models import Role, User

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

T = TypeVar("T")

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Slash-command registry used by the console connector (/help, /new, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        nparams = len(inspect.signature(handler).parameters)
        try:
            if nparams >= 3:
                return cast(CommandHandler3, handler)(state, args, emit)
            return cast(CommandHandler2, handler)(state, args)
        except DevtermError as e:
            logger.info("Command /%s aborted: %s", name, e)
            return f"Aborted: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


def _user(state: AppState) -> User:
    if state.current_user is None:
        raise AccessDeniedError("Login required. Use /login <username> <password>.")
    return state.current_user


def _fmt_ts(ts_ms: int | None) -> str:
    if not ts_ms:
        return "-"
    return local_datetime(ts_ms).strftime("%Y-%m-%d %H:%M")


def _username(state: AppState, user_id: str | None) -> str:
    if not user_id:
        return "Unassigned"
    return state.orchestrator.directory.user_display_name(user_id) or user_id


def _project_name(state: AppState, project_id: str) -> str:
    return state.orchestrator.directory.project_display_name(project_id) or project_id


def _find_user_id(state: AppState, token: str) -> str | None:
    token = token.strip().lstrip("@").lower()
    for uid, name in state.orchestrator.directory.users.items():
        if uid.lower() == token or name.lower() == token:
            return uid
    return None


def _find_project_id(state: AppState, token: str) -> str | None:
    token = token.strip().lower()
    for pid, name in state.orchestrator.directory.projects.items():
        if pid.lower() == token or name.lower() == token:
            return pid
    return None


async def _resolve_task(state: AppState, token: str | None) -> Task:
    """Task by id, unique id prefix, or the currently open task."""
    token = (token or state.open_task_id or "").strip()
    if not token:
        raise NotFoundError("No task selected. Use /open <id> first.")

    task = await state.task_store.get_task(token)
    if task is not None:
        return task

    matches = [t for t in await state.task_store.load_all_tasks() if t.id.startswith(token)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise NotFoundError(f"Task {token} not found")
    raise NotFoundError(f"Ambiguous task id prefix {token}")


def _task_line(state: AppState, t: Task) -> str:
    timer = " [REC]" if t.timer_running else ""
    return (
        f"  {t.id}  {t.status.value:<11} {t.priority.value:<8} {t.progress:>3}%  "
        f"{t.title} ({_project_name(state, t.project_id)}, {_username(state, t.assigned_to)}){timer}"
    )


def _parse_title_and_description(args: list[str]) -> tuple[str, str]:
    text = " ".join(args)
    title, _, description = text.partition("|")
    return title.strip(), description.strip()


# ---- session ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    s = state.settings
    models = ", ".join(list(getattr(s, "llm_models", []) or []))
    who = state.current_user.username if state.current_user else "(nobody)"
    return (
        "Status:\n"
        f"  Logged in: {who}\n"
        f"  Open task: {state.open_task_id or '-'}\n"
        f"  Database: {s.db_path}\n"
        f"  XP table: base {s.xp_completion_base}, high +{s.xp_high_priority_bonus}, "
        f"critical +{s.xp_critical_priority_bonus}\n"
        f"  Timer heartbeat: {s.timer_heartbeat_seconds}s\n"
        f"  Sound: {'ON' if s.sound_enabled else 'OFF'}\n"
        f"  Models (priority -> fallback): {models}"
    )


def cmd_login(state: AppState, args: list[str]) -> str:
    if len(args) != 2:
        return "Usage: /login <username> <password>"
    user = _run(state.user_store.authenticate(args[0], args[1]))
    if user is None:
        state.notifier.notify("Access denied: bad credentials", Severity.ERROR)
        return "Login failed."
    close_open_task(state)
    state.current_user = user
    state.conversation.clear()
    _run(state.orchestrator.refresh_directory())
    logger.info("Login user=%s role=%s", user.id, user.role.value)
    state.notifier.notify(f"Welcome back, {user.username}", Severity.SUCCESS)
    return f"Logged in as {user.username} ({user.role.value})."


def cmd_logout(state: AppState, args: list[str]) -> str:
    if state.current_user is None:
        return "Not logged in."
    close_open_task(state)
    state.current_user = None
    state.conversation.clear()
    state.notifier.notify("Logged out successfully")
    return "Logged out."


def cmd_whoami(state: AppState, args: list[str]) -> str:
    user = _user(state)
    info = level_info(user.xp)
    return f"{user.username} [{user.role.value}] id={user.id} LVL {info.level} {info.title} ({user.xp} XP)"


def cmd_users(state: AppState, args: list[str]) -> str:
    _user(state)
    users = _run(state.user_store.list_users())
    lines = ["Users:"]
    for u in users:
        info = level_info(u.xp)
        lines.append(f"  {u.username:<16} {u.role.value:<9} LVL {info.level:<3} {u.xp} XP")
    return "\n".join(lines)


def cmd_adduser(state: AppState, args: list[str]) -> str:
    """
    /adduser <username> <password> [ADMIN|DEVELOPER|VIEWER] [project ...]
    Projects restrict what a VIEWER may open.
    """
    actor = _user(state)
    if actor.role != Role.ADMIN:
        raise AccessDeniedError("Only admins can create users")
    if len(args) < 2:
        return "Usage: /adduser <username> <password> [role] [project ...]"
    role = Role.from_db(args[2]) if len(args) > 2 else Role.DEVELOPER
    projects = [pid for pid in (_find_project_id(state, p) for p in args[3:]) if pid]
    user = _run(state.user_store.add_user(args[0], args[1], role, projects))
    _run(state.orchestrator.refresh_directory())
    state.notifier.notify(f"User {user.username} created", Severity.SUCCESS)
    return f"Created {user.username} ({user.role.value})."


def cmd_deluser(state: AppState, args: list[str]) -> str:
    actor = _user(state)
    if actor.role != Role.ADMIN:
        raise AccessDeniedError("Only admins can delete users")
    if len(args) != 1:
        return "Usage: /deluser <username>"
    uid = _find_user_id(state, args[0])
    if uid is None:
        raise NotFoundError(f"User {args[0]} not found")
    if uid == actor.id:
        raise AccessDeniedError("You cannot delete your own account")
    name = _username(state, uid)
    if not _run(state.user_store.delete_user(uid)):
        raise NotFoundError(f"User {args[0]} not found")
    _run(state.orchestrator.refresh_directory())
    logger.info("User deleted id=%s by=%s", uid, actor.id)
    state.notifier.notify("User deleted", Severity.INFO)
    return f"Deleted user {name}."


# ---- projects / tasks ----


def cmd_projects(state: AppState, args: list[str]) -> str:
    _user(state)
    projects = _run(state.task_store.list_projects())
    if not projects:
        return "No projects. Use /project add <name>."
    return "Projects:\n" + "\n".join(f"  {p.id}  {p.name} {p.color}" for p in projects)


def cmd_project(state: AppState, args: list[str]) -> str:
    if len(args) < 2 or args[0].lower() != "add":
        return "Usage: /project add <name> [#color]"
    actor = _user(state)
    color = "#00ffff"
    name_parts = args[1:]
    if len(name_parts) > 1 and name_parts[-1].startswith("#"):
        color = name_parts.pop()
    project = _run(state.orchestrator.create_project(" ".join(name_parts), actor, color=color))
    return f"Project {project.name} id={project.id}"


def cmd_tasks(state: AppState, args: list[str]) -> str:
    """
    /tasks      -> tasks assigned to me
    /tasks all  -> every task I may see
    """
    user = _user(state)
    if args and args[0].lower() == "all":
        tasks = _run(state.task_store.load_all_tasks())
        tasks = [t for t in tasks if user.can_view_project(t.project_id)]
    else:
        tasks = _run(state.task_store.load_tasks_for_user(user.id))
    if not tasks:
        return "No tasks."
    return "Tasks:\n" + "\n".join(_task_line(state, t) for t in tasks)


def cmd_new(state: AppState, args: list[str]) -> str:
    """/new <project> <title> | <description>"""
    actor = _user(state)
    if len(args) < 2:
        return "Usage: /new <project> <title> | <description>"
    project_id = _find_project_id(state, args[0])
    if project_id is None:
        return f"Unknown project: {args[0]}. Use /projects."
    title, description = _parse_title_and_description(args[1:])
    patch = TaskPatch(title=title, description=description, project_id=project_id, assigned_to=actor.id)
    task = _run(state.orchestrator.create_task(patch, actor))
    return f"Created {task.id}: {task.title}"


def close_open_task(state: AppState) -> None:
    """Navigation away: stop the previous task's timer."""
    prev = state.open_task_id
    user = state.current_user
    state.open_task_id = None
    if prev and user is not None and user.can_edit:
        with contextlib.suppress(NotFoundError):
            _run(state.orchestrator.stop_timer(prev, user))


def cmd_open(state: AppState, args: list[str]) -> str:
    user = _user(state)
    if not args:
        return "Usage: /open <task id>"
    task = _run(_resolve_task(state, args[0]))
    if task.id != state.open_task_id:
        close_open_task(state)
    task = _run(state.orchestrator.open_task(task.id, user))
    state.open_task_id = task.id
    return _render_task(state, task)


def _render_task(state: AppState, t: Task) -> str:
    now = state.clock.now_ms()
    lines = [
        f"[{t.id}] {t.title}",
        f"  Status: {t.status.value}   Priority: {t.priority.value}   Progress: {t.progress}%",
        f"  Project: {_project_name(state, t.project_id)}   Assignee: {_username(state, t.assigned_to)}",
        f"  Deadline: {format_display_date(t.deadline)}   Completed: {_fmt_ts(t.completed_at)}",
        f"  Time: {format_duration(live_time_spent(t, now))}{' (timer running)' if t.timer_running else ''}",
    ]
    if t.tags:
        lines.append(f"  Tags: {', '.join(t.tags)}")
    if t.depends_on:
        lines.append(f"  Depends on: {', '.join(t.depends_on)}")
    lines.append(f"  {t.description}" if t.description else "  (no description)")
    if t.subtasks:
        lines.append("  Subtasks:")
        for i, s in enumerate(t.subtasks, start=1):
            lines.append(f"    {i}. [{'x' if s.completed else ' '}] {s.title}")
    if t.comments:
        lines.append("  Comments:")
        for c in t.comments:
            reactions = " ".join(f"{emoji}{len(users)}" for emoji, users in c.reactions.items())
            edited = " (edited)" if c.edited else ""
            lines.append(f"    {c.id} {_username(state, c.user_id)}: {c.text}{edited} {reactions}".rstrip())
    return "\n".join(lines)


def cmd_show(state: AppState, args: list[str]) -> str:
    user = _user(state)
    task = _run(_resolve_task(state, args[0] if args else None))
    if not user.can_view_project(task.project_id):
        raise AccessDeniedError(f"{user.username} may not open tasks of this project")
    return _render_task(state, task)


def cmd_log(state: AppState, args: list[str]) -> str:
    user = _user(state)
    task = _run(_resolve_task(state, args[0] if args else None))
    if not user.can_view_project(task.project_id):
        raise AccessDeniedError(f"{user.username} may not open tasks of this project")
    if not task.activity_log:
        return "No activity."
    lines = [f"Activity for {task.id}:"]
    for e in task.activity_log:
        lines.append(f"  {_fmt_ts(e.timestamp)}  {_username(state, e.user_id)}: {e.action}")
    return "\n".join(lines)


SYSLOG_LIMIT = 50


def cmd_syslog(state: AppState, args: list[str]) -> str:
    """
    /syslog            -> newest activity across every task I may see
    /syslog <filter>   -> grep by action, task title or user
    """
    user = _user(state)
    tasks = [t for t in _run(state.task_store.load_all_tasks()) if user.can_view_project(t.project_id)]
    feed = build_activity_feed(
        tasks,
        " ".join(args),
        resolver=state.orchestrator.directory,
        limit=SYSLOG_LIMIT,
    )
    if not feed:
        return "-- NO ENTRIES FOUND --"
    lines = ["System log (newest first):"]
    for f in feed:
        who = state.orchestrator.directory.user_display_name(f.entry.user_id) or "SYSTEM"
        lines.append(f"  {_fmt_ts(f.entry.timestamp)}  {who:<12} #{f.task_id}  [{f.task_title}] {f.entry.action}")
    return "\n".join(lines)


_SET_USAGE = "Usage: /set <title|desc|status|priority|assign|deadline|project|tags|deps> <value>"


def _build_set_patch(state: AppState, field: str, value: str, actor: User) -> TaskPatch | str:
    none = value.lower() in ("", "none", "-")
    if field == "title":
        return TaskPatch(title=value)
    if field in ("desc", "description"):
        return TaskPatch(description=value)
    if field == "status":
        try:
            return TaskPatch(status=TaskStatus(value.upper()))
        except ValueError:
            return f"Status must be one of: {', '.join(s.value for s in TaskStatus)}"
    if field == "priority":
        try:
            return TaskPatch(priority=Priority(value.upper()))
        except ValueError:
            return f"Priority must be one of: {', '.join(p.value for p in Priority)}"
    if field == "assign":
        if none:
            return TaskPatch(assigned_to=None)
        uid = actor.id if value.lower() == "me" else _find_user_id(state, value)
        return TaskPatch(assigned_to=uid) if uid else f"Unknown user: {value}"
    if field == "deadline":
        if none:
            return TaskPatch(deadline=None)
        try:
            return TaskPatch(deadline=date.fromisoformat(value))
        except ValueError:
            return "Deadline must be YYYY-MM-DD (or none)."
    if field == "project":
        pid = _find_project_id(state, value)
        return TaskPatch(project_id=pid) if pid else f"Unknown project: {value}"
    if field == "tags":
        return TaskPatch(tags=[] if none else [t for t in value.replace(",", " ").split() if t])
    if field in ("deps", "depends"):
        return TaskPatch(depends_on=[] if none else [t for t in value.replace(",", " ").split() if t])
    return _SET_USAGE


def cmd_set(state: AppState, args: list[str]) -> str:
    actor = _user(state)
    if not args:
        return _SET_USAGE
    field = args[0].lower()
    patch = _build_set_patch(state, field, " ".join(args[1:]).strip(), actor)
    if isinstance(patch, str):
        return patch
    task = _run(_resolve_task(state, None))
    saved = _run(state.orchestrator.update_task(task, patch, actor))
    return f"Updated {saved.id}: {saved.activity_log[-1].action if saved.activity_log else 'no changes'}"


def cmd_sub(state: AppState, args: list[str]) -> str:
    """
    /sub add <title>
    /sub toggle <n>
    /sub rm <n>
    """
    actor = _user(state)
    usage = "Usage: /sub add <title> | /sub toggle <n> | /sub rm <n>"
    if len(args) < 2:
        return usage
    task = _run(_resolve_task(state, None))
    subtasks = [Subtask(id=s.id, title=s.title, completed=s.completed) for s in task.subtasks]
    op = args[0].lower()

    if op == "add":
        subtasks.append(Subtask(id=new_id("st"), title=" ".join(args[1:]).strip()))
    elif op in ("toggle", "rm"):
        try:
            idx = int(args[1]) - 1
        except ValueError:
            return usage
        if not 0 <= idx < len(subtasks):
            return f"No subtask #{args[1]}."
        if op == "toggle":
            subtasks[idx].completed = not subtasks[idx].completed
        else:
            subtasks.pop(idx)
    else:
        return usage

    saved = _run(state.orchestrator.update_task(task, TaskPatch(subtasks=subtasks), actor))
    return f"Subtasks updated. Progress: {saved.progress}%"


def cmd_timer(state: AppState, args: list[str]) -> str:
    actor = _user(state)
    if not args or args[0].lower() not in ("start", "stop"):
        return "Usage: /timer start | /timer stop"
    task = _run(_resolve_task(state, None))
    if args[0].lower() == "start":
        saved = _run(state.orchestrator.start_timer(task.id, actor))
        return f"Timer running on {saved.id}."
    saved = _run(state.orchestrator.stop_timer(task.id, actor))
    return f"Timer stopped. Total: {format_duration(saved.time_spent)}"


def cmd_comment(state: AppState, args: list[str]) -> str:
    """
    /comment <text>                -> add (use @username to mention)
    /comment edit <id> <text>      -> edit your own comment
    """
    actor = _user(state)
    if not args:
        return "Usage: /comment <text> | /comment edit <comment id> <text>"
    task = _run(_resolve_task(state, None))
    if args[0].lower() == "edit":
        if len(args) < 3:
            return "Usage: /comment edit <comment id> <text>"
        _run(state.orchestrator.edit_comment(task.id, args[1], " ".join(args[2:]), actor))
        return "Comment edited."
    saved = _run(state.orchestrator.add_comment(task.id, " ".join(args), actor))
    return f"Comment {saved.comments[-1].id} posted."


def cmd_react(state: AppState, args: list[str]) -> str:
    actor = _user(state)
    if len(args) != 2:
        return "Usage: /react <comment id> <emoji>"
    task = _run(_resolve_task(state, None))
    _run(state.orchestrator.toggle_reaction(task.id, args[0], args[1], actor))
    return "Reaction toggled."


def cmd_done(state: AppState, args: list[str]) -> str:
    actor = _user(state)
    task = _run(_resolve_task(state, args[0] if args else None))
    saved = _run(state.orchestrator.update_task(task, TaskPatch(status=TaskStatus.DONE), actor))
    return f"{saved.id} marked DONE. You have {actor.xp} XP."


def cmd_rm(state: AppState, args: list[str]) -> str:
    actor = _user(state)
    task = _run(_resolve_task(state, args[0] if args else None))
    _run(state.orchestrator.delete_task(task.id, actor))
    if state.open_task_id == task.id:
        state.open_task_id = None
    return f"Deleted {task.id}."


def cmd_ai(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """Ask the LLM to break the open task into subtasks and append them."""
    actor = _user(state)
    task = _run(_resolve_task(state, args[0] if args else None))
    if emit:
        emit("[AI] Analyzing task...")
    try:
        suggested = suggest_subtasks(state.llm, task.title, task.description)
    except RuntimeError as e:
        return f"[LLM] {friendly_llm_error_message(e)}"
    if not suggested:
        return "[AI] No subtasks suggested."
    patch = TaskPatch(subtasks=[*task.subtasks, *suggested])
    saved = _run(state.orchestrator.update_task(task, patch, actor))
    return "[AI] Added:\n" + "\n".join(f"  - {s.title}" for s in suggested) + f"\nProgress: {saved.progress}%"


# ---- code vault ----


_SNIPPET_USAGE = (
    "Usage: /snippet [query] | /snippet add <lang> <title> | <code or @file> | "
    "/snippet show <id> | /snippet rm <id> | /snippet audit <id>"
)


def _find_snippet(state: AppState, token: str) -> Snippet:
    snippets = _run(state.task_store.list_snippets())
    exact = [s for s in snippets if s.id == token]
    matches = exact or [s for s in snippets if s.id.startswith(token)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise NotFoundError(f"Snippet {token} not found")
    raise NotFoundError(f"Ambiguous snippet id prefix {token}")


def _read_snippet_code(raw: str) -> str:
    """Inline code uses \\n and \\t escapes; @path reads the code from a file."""
    if raw.startswith("@"):
        path = Path(raw[1:]).expanduser()
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise ValidationError(f"Cannot read {path}: {e}", fields=["code"]) from e
    return raw.replace("\\n", "\n").replace("\\t", "\t")


def cmd_snippet(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    actor = _user(state)
    op = args[0].lower() if args else ""

    if op == "add":
        if len(args) < 3:
            return _SNIPPET_USAGE
        title, code = _parse_title_and_description(args[2:])
        saved = _run(state.orchestrator.add_snippet(title, args[1], _read_snippet_code(code), actor))
        return f"Archived {saved.id}: {saved.title} [{saved.language}]"

    if op in ("show", "rm", "audit"):
        if len(args) != 2:
            return _SNIPPET_USAGE
        snippet = _find_snippet(state, args[1])
        if op == "show":
            return f"{snippet.id} {snippet.title} [{snippet.language}] by {_username(state, snippet.created_by)}\n{snippet.code}"
        if op == "rm":
            _run(state.orchestrator.delete_snippet(snippet.id, actor))
            return f"Deleted snippet {snippet.id}."
        if emit:
            emit("[AI] Scanning snippet...")
        try:
            return f"[AUDIT] {audit_snippet(state.llm, snippet.code, snippet.language)}"
        except RuntimeError as e:
            return f"[LLM] {friendly_llm_error_message(e)}"

    query = " ".join(args).lower()
    snippets = [
        s
        for s in _run(state.task_store.list_snippets())
        if not query or query in s.title.lower() or query in s.code.lower()
    ]
    if not snippets:
        return "Code vault is empty." if not query else f"No snippets match {query!r}."
    lines = ["Code vault:"]
    for s in snippets:
        lines.append(f"  {s.id}  {s.language:<10} {s.title} ({_username(state, s.created_by)}, {_fmt_ts(s.timestamp)})")
    return "\n".join(lines)


def cmd_board(state: AppState, args: list[str]) -> str:
    _user(state)
    users = _run(state.user_store.list_users())
    tasks = _run(state.task_store.load_all_tasks())
    lines = ["Leaderboard:"]
    for row in build_leaderboard(users, tasks):
        lines.append(
            f"  #{row.rank:<3} {row.user.username:<16} LVL {row.level.level:<3} {row.user.xp:>6} XP  "
            f"{row.completed} done  {format_duration(row.time_spent)}"
        )
    return "\n".join(lines)


def cmd_level(state: AppState, args: list[str]) -> str:
    user = _user(state)
    info = level_info(user.xp)
    nxt = f"{info.next_level_xp} XP" if info.next_level_xp is not None else "MAX"
    lines = [
        f"LVL {info.level} {info.title}  ({user.xp} XP, {info.progress:.0f}% to next: {nxt})",
        "Achievements:",
    ]
    for a in ACHIEVEMENTS:
        mark = "x" if a.id in user.achievements else " "
        lines.append(f"  [{mark}] {a.icon} {a.title} - {a.description} (+{a.xp_bonus} XP)")
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show current settings and session.")
registry.register("login", cmd_login, help_text="Log in: /login <username> <password>.")
registry.register("logout", cmd_logout, help_text="Log out.")
registry.register("whoami", cmd_whoami, help_text="Show the current user.")
registry.register("users", cmd_users, help_text="List users.")
registry.register("adduser", cmd_adduser, help_text="Create a user (admin): /adduser <name> <pass> [role].")
registry.register("deluser", cmd_deluser, help_text="Delete a user (admin): /deluser <name>.")
registry.register("projects", cmd_projects, help_text="List projects.")
registry.register("project", cmd_project, help_text="Create a project: /project add <name> [#color].")
registry.register("tasks", cmd_tasks, help_text="List my tasks (/tasks all for every task).", aliases=["ls"])
registry.register("new", cmd_new, help_text="Create a task: /new <project> <title> | <description>.")
registry.register("open", cmd_open, help_text="Open a task (stops timers left running).")
registry.register("show", cmd_show, help_text="Show a task (defaults to the open task).")
registry.register("log", cmd_log, help_text="Show a task's activity log.")
registry.register("syslog", cmd_syslog, help_text="System-wide activity feed, newest first: /syslog [filter].")
registry.register("set", cmd_set, help_text="Edit the open task: /set <field> <value>.")
registry.register("sub", cmd_sub, help_text="Subtasks: /sub add <title> | toggle <n> | rm <n>.")
registry.register("timer", cmd_timer, help_text="Time tracking: /timer start | /timer stop.")
registry.register("comment", cmd_comment, help_text="Comment on the open task (@name mentions).")
registry.register("react", cmd_react, help_text="Toggle a reaction: /react <comment id> <emoji>.")
registry.register("done", cmd_done, help_text="Mark a task DONE.")
registry.register("rm", cmd_rm, help_text="Delete a task.")
registry.register("ai", cmd_ai, help_text="AI subtask breakdown for the open task.")
registry.register("snippet", cmd_snippet, help_text="Code vault: /snippet [query] | add | show | rm | audit.", aliases=["snippets"])
registry.register("board", cmd_board, help_text="Leaderboard.", aliases=["leaderboard"])
registry.register("level", cmd_level, help_text="Level and achievements.")
