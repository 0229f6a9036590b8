# src/devterm/tasks/time_tracking.py

"""
Per-task timer.

States:
- STOPPED: timer_started_at is None
- RUNNING: timer_started_at holds the session start (epoch ms); elapsed time
  is NOT yet part of time_spent

All functions are pure: they return a new Task (or None for a no-op) and
never touch storage. Every path that folds time (stop, heartbeat, reconcile)
goes through elapsed_seconds(), so a manual stop racing a heartbeat can
never credit the same interval twice: whichever persists first clears or
moves timer_started_at, and the other sees a stale/None start.
"""

from __future__ import annotations

from .task_models import ActivityLogEntry, Task, copy_task, new_id
from ..core.clock import format_duration


def elapsed_seconds(started_at_ms: int, now_ms: int) -> float:
    """Fractional seconds since started_at_ms; clock skew never yields negative time."""
    return max(0.0, (int(now_ms) - int(started_at_ms)) / 1000.0)


def _entry(user_id: str, now_ms: int, action: str, old_value: float, new_value: float) -> ActivityLogEntry:
    return ActivityLogEntry(
        id=new_id("l"),
        user_id=user_id,
        action=action,
        timestamp=now_ms,
        field_name="timeSpent",
        old_value=old_value,
        new_value=new_value,
    )


def start_timer(task: Task, *, now_ms: int, user_id: str) -> Task | None:
    """STOPPED -> RUNNING. Returns None if the timer is already running."""
    if task.timer_running:
        return None
    out = copy_task(task)
    out.timer_started_at = int(now_ms)
    out.activity_log.append(
        _entry(user_id, now_ms, "Started time tracking", task.time_spent, task.time_spent)
    )
    return out


def stop_timer(
    task: Task,
    *,
    now_ms: int,
    user_id: str,
    action: str = "Stopped time tracking",
) -> Task | None:
    """RUNNING -> STOPPED, folding the session into time_spent. None if not running."""
    if task.timer_started_at is None:
        return None
    elapsed = elapsed_seconds(task.timer_started_at, now_ms)
    out = copy_task(task)
    out.time_spent = float(task.time_spent) + elapsed
    out.timer_started_at = None
    out.activity_log.append(
        _entry(user_id, now_ms, f"{action} (+{format_duration(elapsed)})", task.time_spent, out.time_spent)
    )
    return out


def fold_elapsed(task: Task, *, now_ms: int) -> Task | None:
    """
    Heartbeat: fold the running session into time_spent and restart the
    session clock at now. Stays RUNNING. No audit entry (it would flood the log).
    """
    if task.timer_started_at is None:
        return None
    out = copy_task(task)
    out.time_spent = float(task.time_spent) + elapsed_seconds(task.timer_started_at, now_ms)
    out.timer_started_at = int(now_ms)
    return out


def live_time_spent(task: Task, now_ms: int) -> float:
    """time_spent plus the not-yet-folded running session (display only)."""
    if task.timer_started_at is None:
        return float(task.time_spent)
    return float(task.time_spent) + elapsed_seconds(task.timer_started_at, now_ms)
