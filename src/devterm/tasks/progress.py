# src/devterm/tasks/progress.py

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from .task_models import Subtask


def subtask_counts(subtasks: Iterable[Subtask]) -> tuple[int, int]:
    """(completed, total)."""
    done = 0
    total = 0
    for s in subtasks:
        total += 1
        if s.completed:
            done += 1
    return done, total


def calculate_progress(subtasks: Iterable[Subtask]) -> int:
    """
    Completion percentage derived from the subtask checklist.

    0 when there are no subtasks, otherwise round(100 * completed / total)
    with halves rounded up (1/8 -> 13), never banker's rounding.
    """
    done, total = subtask_counts(subtasks)
    if total == 0:
        return 0
    pct = Decimal(100 * done) / Decimal(total)
    return int(pct.quantize(Decimal(1), rounding=ROUND_HALF_UP))
