# tests/test_activity_feed.py

from __future__ import annotations

from devterm.tasks.activity_feed import build_activity_feed
from devterm.tasks.change_tracker import Directory
from devterm.tasks.task_models import ActivityLogEntry, Task


def _task(task_id: str, title: str, *entries: ActivityLogEntry) -> Task:
    return Task(
        id=task_id,
        title=title,
        description="d",
        project_id="p-core",
        created_by="u1",
        created_at=0,
        activity_log=list(entries),
    )


def _tasks() -> list[Task]:
    return [
        _task(
            "t1",
            "Deploy API",
            ActivityLogEntry("l1", "u1", "Created task", 100),
            ActivityLogEntry("l3", "u2", "Changed status from TODO to DONE", 300),
        ),
        _task(
            "t2",
            "Write docs",
            ActivityLogEntry("l2", "u2", "Created task", 200),
            ActivityLogEntry("l4", "system", "Auto-stopped time tracking (+5s)", 300),
        ),
    ]


def test_feed_is_flattened_newest_first() -> None:
    feed = build_activity_feed(_tasks())

    assert [f.entry.id for f in feed] == ["l3", "l4", "l2", "l1"]
    assert (feed[0].task_id, feed[0].task_title) == ("t1", "Deploy API")
    assert [f.entry.id for f in build_activity_feed(_tasks(), limit=2)] == ["l3", "l4"]
    assert build_activity_feed([]) == []


def test_feed_filter_matches_action_title_and_user() -> None:
    directory = Directory(users={"u1": "neo", "u2": "trinity"})

    by_action = build_activity_feed(_tasks(), "created")
    by_title = build_activity_feed(_tasks(), "DOCS")
    by_user_id = build_activity_feed(_tasks(), "system")
    by_name = build_activity_feed(_tasks(), "trinity", resolver=directory)

    assert [f.entry.id for f in by_action] == ["l2", "l1"]
    assert [f.entry.id for f in by_title] == ["l4", "l2"]
    assert [f.entry.id for f in by_user_id] == ["l4"]
    assert [f.entry.id for f in by_name] == ["l3", "l2"]
    assert build_activity_feed(_tasks(), "trinity") == []
