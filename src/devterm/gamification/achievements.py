# src/devterm/gamification/achievements.py

"""
Achievement catalog.

Each achievement is plain data: a kind plus the parameters that kind needs
(thresholds, hour windows, priorities). `achievement_holds` dispatches on
the kind. Predicates are pure and recomputed from the full task list every
time, so evaluating twice gives the same answer.

Only tasks assigned to the user count.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, tzinfo
from enum import StrEnum

from ..core.clock import local_datetime
from ..tasks.task_models import Priority, Task, TaskStatus
from ..users.user_models import User

HOUR_MS = 60 * 60 * 1000


class AchievementKind(StrEnum):
    FIRST_COMPLETION = "first_completion"
    PRIORITY_COMPLETIONS = "priority_completions"
    TOTAL_COMPLETIONS = "total_completions"
    TIME_LOGGED = "time_logged"
    COMPLETION_HOUR_WINDOW = "completion_hour_window"
    WEEKEND_COMPLETIONS = "weekend_completions"
    COMPLETION_STREAK = "completion_streak"
    FAST_COMPLETION = "fast_completion"


@dataclass(frozen=True, slots=True)
class Achievement:
    id: str
    title: str
    description: str
    icon: str
    xp_bonus: int
    kind: AchievementKind

    # Parameters (only the ones relevant to `kind` are read).
    count: int = 1
    priorities: frozenset[Priority] = field(default_factory=frozenset)
    seconds: float = 0.0
    start_hour: int = 0
    end_hour: int = 0  # exclusive; start_hour > end_hour wraps past midnight
    max_latency_ms: int = 0


ACHIEVEMENTS: tuple[Achievement, ...] = (
    Achievement(
        id="a1",
        title="First Byte",
        description="Complete your first task",
        icon="🥚",
        xp_bonus=50,
        kind=AchievementKind.FIRST_COMPLETION,
    ),
    Achievement(
        id="a2",
        title="Bug Hunter",
        description="Complete 3 High or Critical priority tasks",
        icon="🐞",
        xp_bonus=300,
        kind=AchievementKind.PRIORITY_COMPLETIONS,
        count=3,
        priorities=frozenset({Priority.HIGH, Priority.CRITICAL}),
    ),
    Achievement(
        id="a3",
        title="Workaholic",
        description="Complete 10 tasks total",
        icon="🦾",
        xp_bonus=500,
        kind=AchievementKind.TOTAL_COMPLETIONS,
        count=10,
    ),
    Achievement(
        id="a4",
        title="Time Lord",
        description="Log over 10 hours of work",
        icon="⏳",
        xp_bonus=200,
        kind=AchievementKind.TIME_LOGGED,
        seconds=36000.0,
    ),
    Achievement(
        id="a5",
        title="Early Bird",
        description="Complete a task between 6-9 AM",
        icon="🌅",
        xp_bonus=150,
        kind=AchievementKind.COMPLETION_HOUR_WINDOW,
        start_hour=6,
        end_hour=9,
    ),
    Achievement(
        id="a6",
        title="Night Owl",
        description="Complete a task between 10 PM - 2 AM",
        icon="🦉",
        xp_bonus=150,
        kind=AchievementKind.COMPLETION_HOUR_WINDOW,
        start_hour=22,
        end_hour=2,
    ),
    Achievement(
        id="a7",
        title="Weekend Warrior",
        description="Complete 3 tasks on weekends",
        icon="🏋️",
        xp_bonus=250,
        kind=AchievementKind.WEEKEND_COMPLETIONS,
        count=3,
    ),
    Achievement(
        id="a8",
        title="Streak Master",
        description="Complete tasks for 5 consecutive days",
        icon="🔥",
        xp_bonus=400,
        kind=AchievementKind.COMPLETION_STREAK,
        count=5,
    ),
    Achievement(
        id="a9",
        title="Speed Demon",
        description="Complete a task in under 1 hour",
        icon="⚡",
        xp_bonus=200,
        kind=AchievementKind.FAST_COMPLETION,
        max_latency_ms=HOUR_MS,
    ),
)

ACHIEVEMENTS_BY_ID: dict[str, Achievement] = {a.id: a for a in ACHIEVEMENTS}


# ---- helpers ----


def _assigned(user: User, tasks: Iterable[Task]) -> list[Task]:
    return [t for t in tasks if t.assigned_to == user.id]


def _completed(user: User, tasks: Iterable[Task]) -> list[Task]:
    return [t for t in _assigned(user, tasks) if t.status == TaskStatus.DONE]


def _completed_stamped(user: User, tasks: Iterable[Task]) -> list[Task]:
    return [t for t in _completed(user, tasks) if t.completed_at]


def in_hour_window(hour: int, start_hour: int, end_hour: int) -> bool:
    if start_hour <= end_hour:
        return start_hour <= hour < end_hour
    return hour >= start_hour or hour < end_hour


def completion_dates(user: User, tasks: Iterable[Task], tz: tzinfo | None = None) -> list[date]:
    """Distinct local calendar dates on which the user completed tasks, ascending."""
    days = {local_datetime(t.completed_at, tz).date() for t in _completed_stamped(user, tasks) if t.completed_at}
    return sorted(days)


def has_streak(days: list[date], length: int) -> bool:
    """True if `days` (sorted, distinct) contains `length` dates each exactly one day apart."""
    if length <= 0:
        return True
    if not days:
        return False
    run = 1
    if run >= length:
        return True
    for prev, cur in zip(days, days[1:]):
        if (cur - prev).days == 1:
            run += 1
            if run >= length:
                return True
        else:
            run = 1
    return False


# ---- predicates by kind ----


def _first_completion(a: Achievement, user: User, tasks: list[Task], tz: tzinfo | None) -> bool:
    return bool(_completed(user, tasks))


def _priority_completions(a: Achievement, user: User, tasks: list[Task], tz: tzinfo | None) -> bool:
    return sum(1 for t in _completed(user, tasks) if t.priority in a.priorities) >= a.count


def _total_completions(a: Achievement, user: User, tasks: list[Task], tz: tzinfo | None) -> bool:
    return len(_completed(user, tasks)) >= a.count


def _time_logged(a: Achievement, user: User, tasks: list[Task], tz: tzinfo | None) -> bool:
    return sum(float(t.time_spent or 0.0) for t in _assigned(user, tasks)) >= a.seconds


def _hour_window(a: Achievement, user: User, tasks: list[Task], tz: tzinfo | None) -> bool:
    return any(
        in_hour_window(local_datetime(t.completed_at, tz).hour, a.start_hour, a.end_hour)
        for t in _completed_stamped(user, tasks)
        if t.completed_at
    )


def _weekend_completions(a: Achievement, user: User, tasks: list[Task], tz: tzinfo | None) -> bool:
    weekend = [
        t
        for t in _completed_stamped(user, tasks)
        if t.completed_at and local_datetime(t.completed_at, tz).weekday() >= 5
    ]
    return len(weekend) >= a.count


def _completion_streak(a: Achievement, user: User, tasks: list[Task], tz: tzinfo | None) -> bool:
    return has_streak(completion_dates(user, tasks, tz), a.count)


def _fast_completion(a: Achievement, user: User, tasks: list[Task], tz: tzinfo | None) -> bool:
    for t in _completed_stamped(user, tasks):
        if not t.completed_at or not t.created_at:
            continue
        latency = t.completed_at - t.created_at
        if 0 < latency < a.max_latency_ms:
            return True
    return False


_Predicate = Callable[[Achievement, User, list[Task], tzinfo | None], bool]

_PREDICATES: dict[AchievementKind, _Predicate] = {
    AchievementKind.FIRST_COMPLETION: _first_completion,
    AchievementKind.PRIORITY_COMPLETIONS: _priority_completions,
    AchievementKind.TOTAL_COMPLETIONS: _total_completions,
    AchievementKind.TIME_LOGGED: _time_logged,
    AchievementKind.COMPLETION_HOUR_WINDOW: _hour_window,
    AchievementKind.WEEKEND_COMPLETIONS: _weekend_completions,
    AchievementKind.COMPLETION_STREAK: _completion_streak,
    AchievementKind.FAST_COMPLETION: _fast_completion,
}


def achievement_holds(
    achievement: Achievement,
    user: User,
    tasks: Iterable[Task],
    *,
    tz: tzinfo | None = None,
) -> bool:
    predicate = _PREDICATES[achievement.kind]
    return predicate(achievement, user, list(tasks), tz)
