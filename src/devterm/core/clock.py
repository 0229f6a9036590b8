# src/devterm/core/clock.py

from __future__ import annotations

import time
from datetime import date, datetime, tzinfo


class SystemClock:
    """Wall clock in epoch milliseconds."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


def local_datetime(ts_ms: int | float, tz: tzinfo | None = None) -> datetime:
    """Epoch ms -> aware datetime (local timezone when tz is None)."""
    dt = datetime.fromtimestamp(float(ts_ms) / 1000.0, tz=tz)
    return dt if tz is not None else dt.astimezone()


def format_display_date(d: date | None) -> str:
    if d is None:
        return "none"
    return d.strftime("%b %d, %Y")


def format_duration(seconds: float) -> str:
    """1h 2m 3s style; seconds are floored for display only."""
    total = max(0, int(seconds))
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    if h:
        return f"{h}h {m}m {s}s"
    if m:
        return f"{m}m {s}s"
    return f"{s}s"
