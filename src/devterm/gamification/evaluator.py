# src/devterm/gamification/evaluator.py

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import tzinfo

from ..core.ports import Notifier, Severity
from ..tasks.change_tracker import entered_done
from ..tasks.task_models import Priority, Task, TaskStatus
from ..users.user_models import User
from .achievements import ACHIEVEMENTS, Achievement, achievement_holds

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class XpTable:
    """XP granted for entering DONE. Defaults mirror the settings defaults."""

    completion_base: int = 150
    high_priority_bonus: int = 100
    critical_priority_bonus: int = 250

    @classmethod
    def from_settings(cls, settings) -> XpTable:
        return cls(
            completion_base=int(getattr(settings, "xp_completion_base", 150)),
            high_priority_bonus=int(getattr(settings, "xp_high_priority_bonus", 100)),
            critical_priority_bonus=int(getattr(settings, "xp_critical_priority_bonus", 250)),
        )


def completion_xp(
    old_status: TaskStatus | None,
    new_status: TaskStatus,
    priority: Priority,
    table: XpTable,
) -> int:
    """XP for a status transition. Non-zero only on the edge into DONE from an existing task."""
    if old_status is None or not entered_done(old_status, new_status):
        return 0
    xp = table.completion_base
    if priority == Priority.HIGH:
        xp += table.high_priority_bonus
    elif priority == Priority.CRITICAL:
        xp += table.critical_priority_bonus
    return xp


@dataclass(slots=True)
class AnnouncementContext:
    """
    Session-scoped "already announced" set.

    Separate from User.achievements (the persisted unlocked set): it only
    suppresses duplicate unlock toasts within one running session and is
    never persisted.
    """

    announced: set[tuple[str, str]] = field(default_factory=set)

    def claim(self, user_id: str, achievement_id: str) -> bool:
        """True the first time a (user, achievement) pair is seen in this session."""
        key = (user_id, achievement_id)
        if key in self.announced:
            return False
        self.announced.add(key)
        return True

    def reset(self) -> None:
        self.announced.clear()


@dataclass(frozen=True, slots=True)
class EvaluationResult:
    unlocked: tuple[Achievement, ...] = ()
    xp_gained: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.unlocked)


def evaluate_achievements(
    user: User,
    tasks: Iterable[Task],
    *,
    announcements: AnnouncementContext,
    notifier: Notifier | None = None,
    catalog: Sequence[Achievement] = ACHIEVEMENTS,
    tz: tzinfo | None = None,
) -> EvaluationResult:
    """
    Unlock every catalog achievement whose predicate now holds.

    Mutates `user` in place (achievements appended in catalog order, xp
    increased by the sum of bonuses). Already-unlocked achievements are
    skipped, so repeated calls are idempotent.
    """
    task_list = list(tasks)
    unlocked: list[Achievement] = []
    gained = 0

    for ach in catalog:
        if ach.id in user.achievements:
            continue
        if not achievement_holds(ach, user, task_list, tz=tz):
            continue

        user.achievements.append(ach.id)
        gained += int(ach.xp_bonus)
        unlocked.append(ach)
        logger.info("Achievement unlocked user=%s id=%s xp=+%s", user.id, ach.id, ach.xp_bonus)

        if notifier is not None and announcements.claim(user.id, ach.id):
            notifier.notify(
                f"ACHIEVEMENT UNLOCKED: {ach.icon} {ach.title} (+{ach.xp_bonus} XP)",
                Severity.SUCCESS,
            )

    if gained:
        user.xp = max(0, int(user.xp) + gained)

    return EvaluationResult(unlocked=tuple(unlocked), xp_gained=gained)
