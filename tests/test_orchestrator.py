# tests/test_orchestrator.py

from __future__ import annotations

import pytest

from devterm.core.errors import AccessDeniedError, NotFoundError, PersistenceError, ValidationError
from devterm.core.ports import Severity
from devterm.tasks.task_models import Priority, Subtask, TaskPatch, TaskStatus


def _new(**kw) -> TaskPatch:
    base = dict(title="Ship it", description="Release 1.0", project_id="p-core", assigned_to="u-neo")
    base.update(kw)
    return TaskPatch(**base)


@pytest.mark.asyncio
async def test_create_seeds_single_entry_and_grants_no_xp(orchestrator, notifier, dev) -> None:
    task = await orchestrator.create_task(_new(status=TaskStatus.TODO), dev)

    assert [e.action for e in task.activity_log] == ["Created task"]
    assert task.progress == 0
    assert task.created_by == dev.id
    assert dev.xp == 0
    assert "New directive created" in notifier.texts(Severity.SUCCESS)


@pytest.mark.asyncio
async def test_validation_runs_before_any_side_effect(orchestrator, task_repo, notifier, dev) -> None:
    with pytest.raises(ValidationError) as exc:
        await orchestrator.create_task(_new(description="  "), dev)

    assert exc.value.fields == ["description"]
    assert task_repo.save_calls == 0
    assert notifier.texts(Severity.ERROR)

    task = await orchestrator.create_task(_new(), dev)
    with pytest.raises(ValidationError):
        await orchestrator.update_task(task, TaskPatch(title=""), dev)
    assert task_repo.save_calls == 1


@pytest.mark.asyncio
async def test_viewer_cannot_mutate(orchestrator, task_repo, viewer) -> None:
    with pytest.raises(AccessDeniedError):
        await orchestrator.create_task(_new(), viewer)
    assert task_repo.save_calls == 0


@pytest.mark.asyncio
async def test_completion_xp_granted_exactly_once(orchestrator, user_repo, notifier, clock, dev) -> None:
    task = await orchestrator.create_task(_new(priority=Priority.HIGH), dev)
    clock.advance(2 * 3600)

    done = await orchestrator.update_task(task, TaskPatch(status=TaskStatus.DONE), dev)

    # 150 base + 100 high bonus + 50 for the first-completion achievement.
    assert dev.xp == 300
    assert dev.achievements == ["a1"]
    assert user_repo.users[dev.id].xp == 300
    assert "Task Complete! +250 XP" in notifier.texts(Severity.SUCCESS)

    await orchestrator.update_task(done, TaskPatch(title="Ship it now"), dev)
    assert dev.xp == 300


@pytest.mark.asyncio
async def test_end_to_end_scenario(orchestrator, clock, dev) -> None:
    task = await orchestrator.create_task(_new(), dev)
    assert task.progress == 0

    clock.advance(3 * 3600)
    task = await orchestrator.update_task(
        task,
        TaskPatch(subtasks=[Subtask("s1", "build", True), Subtask("s2", "deploy")]),
        dev,
    )
    assert task.progress == 50

    task = await orchestrator.update_task(task, TaskPatch(status=TaskStatus.DONE), dev)
    assert task.progress == 50
    assert task.completed_at == clock.now_ms()
    xp_after_done = dev.xp
    assert xp_after_done == 150 + 50

    task = await orchestrator.update_task(task, TaskPatch(status=TaskStatus.IN_PROGRESS), dev)
    assert task.completed_at is None
    assert dev.xp == xp_after_done

    assert [e.action for e in task.activity_log] == [
        "Created task",
        "Updated subtasks (1/2 completed)",
        "Changed status from TODO to DONE",
        "Changed status from DONE to IN_PROGRESS",
    ]


@pytest.mark.asyncio
async def test_task_save_failure_keeps_pending_and_skips_xp(orchestrator, task_repo, user_repo, dev) -> None:
    task = await orchestrator.create_task(_new(), dev)
    user_saves = user_repo.save_calls
    task_repo.fail_saves = True

    with pytest.raises(PersistenceError) as exc:
        await orchestrator.update_task(task, TaskPatch(status=TaskStatus.DONE), dev)

    pending = exc.value.pending
    assert pending.status == TaskStatus.DONE
    assert pending.completed_at is not None
    assert pending.activity_log[-1].action == "Changed status from TODO to DONE"
    assert dev.xp == 0
    assert dev.achievements == []
    assert user_repo.save_calls == user_saves
    assert task_repo.tasks[task.id].status == TaskStatus.TODO


@pytest.mark.asyncio
async def test_user_save_failure_does_not_undo_task_save(orchestrator, task_repo, user_repo, dev) -> None:
    task = await orchestrator.create_task(_new(), dev)
    user_repo.fail_saves = True

    saved = await orchestrator.update_task(task, TaskPatch(status=TaskStatus.DONE), dev)

    assert saved.status == TaskStatus.DONE
    assert task_repo.tasks[task.id].status == TaskStatus.DONE
    assert dev.xp > 0


@pytest.mark.asyncio
async def test_returns_store_response(orchestrator, task_repo, dev) -> None:
    task = await orchestrator.create_task(_new(), dev)
    updated = await orchestrator.update_task(task, TaskPatch(title="Renamed"), dev)

    assert updated.updated_at == task_repo.tasks[task.id].updated_at
    assert updated.updated_at > task.updated_at


@pytest.mark.asyncio
async def test_update_by_missing_id_raises_not_found(orchestrator, dev) -> None:
    with pytest.raises(NotFoundError):
        await orchestrator.update_task_by_id("t-missing", TaskPatch(title="x"), dev)


@pytest.mark.asyncio
async def test_comments_mentions_and_reactions(orchestrator, user_repo, dev) -> None:
    task = await orchestrator.create_task(_new(), dev)

    task = await orchestrator.add_comment(task.id, "ping @trinity and @nobody", dev)
    comment = task.comments[-1]
    assert comment.mentions == ["u-tri"]

    trinity = user_repo.users["u-tri"]
    with pytest.raises(AccessDeniedError):
        await orchestrator.edit_comment(task.id, comment.id, "hijacked", trinity)

    task = await orchestrator.edit_comment(task.id, comment.id, "ping @trinity", dev)
    assert task.comments[-1].edited
    assert task.comments[-1].text == "ping @trinity"

    task = await orchestrator.toggle_reaction(task.id, comment.id, "🔥", trinity)
    assert task.comments[-1].reactions == {"🔥": ["u-tri"]}
    task = await orchestrator.toggle_reaction(task.id, comment.id, "🔥", trinity)
    assert task.comments[-1].reactions == {}

    # Comments are not part of the field audit trail.
    assert [e.action for e in task.activity_log] == ["Created task"]


@pytest.mark.asyncio
async def test_delete_task(orchestrator, notifier, dev) -> None:
    task = await orchestrator.create_task(_new(), dev)
    await orchestrator.delete_task(task.id, dev)
    assert ("Task purged", Severity.WARNING) in notifier.messages

    with pytest.raises(NotFoundError):
        await orchestrator.delete_task(task.id, dev)


@pytest.mark.asyncio
async def test_viewer_project_restriction_on_open(orchestrator, viewer, dev) -> None:
    hidden = await orchestrator.create_task(_new(project_id="p-web"), dev)
    visible = await orchestrator.create_task(_new(), dev)

    with pytest.raises(AccessDeniedError):
        await orchestrator.open_task(hidden.id, viewer)
    assert (await orchestrator.open_task(visible.id, viewer)).id == visible.id


@pytest.mark.asyncio
async def test_create_project_updates_directory(orchestrator, dev) -> None:
    project = await orchestrator.create_project("Infra", dev)
    assert orchestrator.directory.project_display_name(project.id) == "Infra"

    with pytest.raises(ValidationError):
        await orchestrator.create_project("  ", dev)


@pytest.mark.asyncio
async def test_priority_bonus_uses_priority_before_the_edit(orchestrator, notifier, dev) -> None:
    # Assigned to someone else so no achievement XP lands on the actor.
    low = await orchestrator.create_task(_new(priority=Priority.LOW, assigned_to="u-tri"), dev)
    high = await orchestrator.create_task(_new(priority=Priority.HIGH, assigned_to="u-tri"), dev)

    raised = await orchestrator.update_task(
        low, TaskPatch(status=TaskStatus.DONE, priority=Priority.CRITICAL), dev
    )
    assert raised.priority == Priority.CRITICAL
    assert dev.xp == 150

    await orchestrator.update_task(high, TaskPatch(status=TaskStatus.DONE, priority=Priority.LOW), dev)
    assert dev.xp == 150 + 250
    assert notifier.texts(Severity.SUCCESS).count("Task Complete! +150 XP") == 1
    assert "Task Complete! +250 XP" in notifier.texts(Severity.SUCCESS)


@pytest.mark.asyncio
async def test_snippet_vault(orchestrator, task_repo, notifier, clock, dev, viewer) -> None:
    first = await orchestrator.add_snippet("Retry loop", "Python", "for i in range(3):\n    pass", dev)
    clock.advance(5)
    second = await orchestrator.add_snippet("Ping", "", "curl -s localhost", dev)

    assert first.language == "python"
    assert second.language == "text"
    assert first.created_by == dev.id
    assert [s.id for s in await task_repo.list_snippets()] == [second.id, first.id]
    assert ("Code snippet archived", Severity.SUCCESS) in notifier.messages

    with pytest.raises(ValidationError):
        await orchestrator.add_snippet("Empty", "python", "   ", dev)
    with pytest.raises(AccessDeniedError):
        await orchestrator.delete_snippet(first.id, viewer)

    await orchestrator.delete_snippet(first.id, dev)
    assert ("Snippet deleted", Severity.WARNING) in notifier.messages
    with pytest.raises(NotFoundError):
        await orchestrator.delete_snippet(first.id, dev)
