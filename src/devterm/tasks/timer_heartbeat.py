# src/devterm/tasks/timer_heartbeat.py

"""
Timer heartbeat.

While a task is open in the console and its timer is running, elapsed time
is folded into time_spent every fixed interval, which bounds what a crash
can lose. The loop runs in a background thread with its own event loop
(the console REPL blocks on input()).

Heartbeats and console commands share AppState.lock, so a heartbeat never
interleaves with a manual stop. Both read the stored task, so whichever
runs second sees the other's result.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from dataclasses import dataclass

from ..core.errors import DevtermError
from ..core.state import AppState
from .task_models import Task

logger = logging.getLogger(__name__)


async def heartbeat_tick(state: AppState) -> Task | None:
    """One fold for the currently open task. Returns the saved task or None."""
    task_id = state.open_task_id
    user = state.current_user
    if not task_id or user is None or not user.can_edit:
        return None
    return await state.orchestrator.heartbeat(task_id)


async def run_timer_heartbeat(
    state: AppState,
    stop_event: asyncio.Event,
    *,
    interval_seconds: float = 30.0,
) -> None:
    """
    Every interval_seconds, fold the open task's running session.

    Errors are logged and the loop keeps going. Set stop_event to exit.
    """
    sleep_s = max(1.0, float(interval_seconds))
    logger.info("Timer heartbeat started interval=%.0fs", sleep_s)

    while not stop_event.is_set():
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(stop_event.wait(), timeout=sleep_s)
        if stop_event.is_set():
            break

        # The console thread holds the lock while it runs a command.
        await asyncio.to_thread(state.lock.acquire)
        try:
            await heartbeat_tick(state)
        except DevtermError as e:
            logger.warning("Heartbeat failed: %s", e)
        except Exception:
            logger.exception("Heartbeat crashed")
        finally:
            state.lock.release()

    logger.info("Timer heartbeat stopped.")


@dataclass(slots=True)
class HeartbeatRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Heartbeat loop already closed.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_heartbeat_in_background(state: AppState) -> HeartbeatRunner | None:
    interval = float(getattr(state.settings, "timer_heartbeat_seconds", 30))

    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(run_timer_heartbeat(state, stop_event, interval_seconds=interval))
        finally:
            loop.close()

    t = threading.Thread(target=runner, name="devterm-heartbeat", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Heartbeat thread did not initialize properly.")
        return None

    return HeartbeatRunner(thread=t, loop=loop, stop_event=stop_event)
