# tests/test_time_tracking.py

from __future__ import annotations

import asyncio

import pytest

from devterm.core.state import AppState
from devterm.tasks import time_tracking
from devterm.tasks.task_models import Task, TaskPatch
from devterm.tasks.timer_heartbeat import heartbeat_tick, run_timer_heartbeat


def _task() -> Task:
    return Task(id="t1", title="t", description="d", project_id="p-core", created_by="u1", created_at=0)


def test_start_then_stop_accumulates_elapsed_time() -> None:
    running = time_tracking.start_timer(_task(), now_ms=1_000, user_id="u1")
    assert running is not None and running.timer_started_at == 1_000
    assert running.time_spent == 0

    stopped = time_tracking.stop_timer(running, now_ms=91_500, user_id="u1")

    assert stopped is not None
    assert stopped.time_spent == pytest.approx(90.5)
    assert stopped.timer_started_at is None
    assert [e.action for e in stopped.activity_log] == [
        "Started time tracking",
        "Stopped time tracking (+1m 30s)",
    ]


def test_double_start_and_double_stop_are_noops() -> None:
    running = time_tracking.start_timer(_task(), now_ms=0, user_id="u1")
    assert time_tracking.start_timer(running, now_ms=10, user_id="u1") is None

    stopped = time_tracking.stop_timer(running, now_ms=5_000, user_id="u1")
    assert time_tracking.stop_timer(stopped, now_ms=9_000, user_id="u1") is None


def test_fold_elapsed_restarts_session_without_audit_entry() -> None:
    running = time_tracking.start_timer(_task(), now_ms=0, user_id="u1")
    folded = time_tracking.fold_elapsed(running, now_ms=30_000)

    assert folded.time_spent == pytest.approx(30.0)
    assert folded.timer_started_at == 30_000
    assert len(folded.activity_log) == len(running.activity_log)


def test_clock_skew_never_subtracts_time() -> None:
    assert time_tracking.elapsed_seconds(10_000, 5_000) == 0.0


async def _create(orchestrator, actor) -> Task:
    return await orchestrator.create_task(
        TaskPatch(title="Timer task", description="d", project_id="p-core", assigned_to=actor.id), actor
    )


@pytest.mark.asyncio
async def test_heartbeat_then_stop_does_not_double_count(orchestrator, clock, dev) -> None:
    task = await _create(orchestrator, dev)
    await orchestrator.start_timer(task.id, dev)

    clock.advance(30)
    beat = await orchestrator.heartbeat(task.id)
    assert beat.time_spent == pytest.approx(30.0)

    clock.advance(10)
    stopped = await orchestrator.stop_timer(task.id, dev)

    assert stopped.time_spent == pytest.approx(40.0)
    assert stopped.timer_started_at is None
    # A heartbeat racing behind the stop finds nothing to fold.
    assert await orchestrator.heartbeat(task.id) is None


@pytest.mark.asyncio
async def test_stop_twice_does_not_save_again(orchestrator, task_repo, clock, dev) -> None:
    task = await _create(orchestrator, dev)
    await orchestrator.start_timer(task.id, dev)
    clock.advance(5)
    await orchestrator.stop_timer(task.id, dev)
    saves = task_repo.save_calls

    again = await orchestrator.stop_timer(task.id, dev)

    assert task_repo.save_calls == saves
    assert again.time_spent == pytest.approx(5.0)


@pytest.mark.asyncio
async def test_reconcile_on_open_stops_running_timer(orchestrator, clock, dev) -> None:
    task = await _create(orchestrator, dev)
    await orchestrator.start_timer(task.id, dev)
    clock.advance(125)

    opened = await orchestrator.open_task(task.id, dev)

    assert opened.timer_started_at is None
    assert opened.time_spent == pytest.approx(125.0)
    assert opened.activity_log[-1].action == "Auto-stopped time tracking (+2m 5s)"


@pytest.mark.asyncio
async def test_heartbeat_tick_folds_open_task(state: AppState, clock, dev) -> None:
    task = await _create(state.orchestrator, dev)
    await state.orchestrator.start_timer(task.id, dev)
    assert await heartbeat_tick(state) is None  # nothing open yet

    state.open_task_id = task.id
    clock.advance(30)
    saved = await heartbeat_tick(state)

    assert saved is not None
    assert saved.time_spent == pytest.approx(30.0)
    assert saved.timer_running


@pytest.mark.asyncio
async def test_heartbeat_loop_waits_for_console_lock_off_the_event_loop(state: AppState, clock, dev) -> None:
    task = await _create(state.orchestrator, dev)
    await state.orchestrator.start_timer(task.id, dev)
    state.open_task_id = task.id
    clock.advance(45)

    stop = asyncio.Event()
    state.lock.acquire()  # a console command is running
    loop_task = asyncio.create_task(run_timer_heartbeat(state, stop, interval_seconds=1))
    try:
        await asyncio.sleep(1.3)
        # The event loop kept running and nothing was folded while the lock was held.
        stored = await state.task_store.get_task(task.id)
        assert stored is not None and stored.time_spent == 0
    finally:
        state.lock.release()

    await asyncio.sleep(0.3)
    stop.set()
    await asyncio.wait_for(loop_task, timeout=2)

    stored = await state.task_store.get_task(task.id)
    assert stored is not None
    assert stored.time_spent == pytest.approx(45.0)
    assert not state.lock.locked()
