# src/devterm/tasks/activity_feed.py

"""
System-wide audit feed: every task's activity log flattened into one
newest-first list, optionally narrowed by a case-insensitive query that
matches the action text, the task title or the acting user.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from ..core.ports import NameResolver
from .task_models import ActivityLogEntry, Task


@dataclass(frozen=True, slots=True)
class FeedEntry:
    entry: ActivityLogEntry
    task_id: str
    task_title: str


def build_activity_feed(
    tasks: Iterable[Task],
    query: str = "",
    *,
    resolver: NameResolver | None = None,
    limit: int | None = None,
) -> list[FeedEntry]:
    feed = [FeedEntry(entry=e, task_id=t.id, task_title=t.title) for t in tasks for e in t.activity_log]
    # Stable sort: entries with equal timestamps keep their log order.
    feed.sort(key=lambda f: f.entry.timestamp, reverse=True)

    needle = (query or "").strip().lower()
    if needle:
        feed = [f for f in feed if needle in _haystack(f, resolver)]
    return feed[:limit] if limit is not None else feed


def _haystack(item: FeedEntry, resolver: NameResolver | None) -> str:
    user_name = resolver.user_display_name(item.entry.user_id) if resolver else None
    return "\n".join((item.entry.action, item.task_title, item.entry.user_id, user_name or "")).lower()
