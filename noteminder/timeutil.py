from __future__ import annotations
import datetime as dt
import time
from typing import Callable, Optional, Tuple

Clock = Callable[[], int]

MIN_MS = 60_000
DAY_MS = 24 * 60 * MIN_MS


def now_ms() -> int:
    return int(time.time() * 1000)


# tz=None means the machine's local time (naive datetimes)

def to_datetime(ms: int, tz: Optional[dt.tzinfo] = None) -> dt.datetime:
    return dt.datetime.fromtimestamp(ms / 1000.0, tz=tz)


def to_ms(d: dt.datetime) -> int:
    return int(round(d.timestamp() * 1000))


def day_of(ms: int, tz: Optional[dt.tzinfo] = None) -> dt.date:
    return to_datetime(ms, tz).date()


def at_minute(d: dt.date, minute_of_day: int, tz: Optional[dt.tzinfo] = None) -> int:
    """Epoch ms for `minute_of_day` minutes after midnight on `d`."""
    t = dt.time(minute_of_day // 60, minute_of_day % 60)
    return to_ms(dt.datetime.combine(d, t, tzinfo=tz))


def day_bounds(d: dt.date, tz: Optional[dt.tzinfo] = None) -> Tuple[int, int]:
    """[00:00:00.000, 23:59:59.999] of `d` in epoch ms."""
    start = to_ms(dt.datetime.combine(d, dt.time(0, 0), tzinfo=tz))
    end = to_ms(dt.datetime.combine(d + dt.timedelta(days=1), dt.time(0, 0), tzinfo=tz)) - 1
    return start, end


def week_bounds(now: int, tz: Optional[dt.tzinfo] = None) -> Tuple[int, int]:
    """Monday 00:00:00.000 through Sunday 23:59:59.999 of the week containing `now`."""
    today = day_of(now, tz)
    monday = today - dt.timedelta(days=today.weekday())
    start, _ = day_bounds(monday, tz)
    _, end = day_bounds(monday + dt.timedelta(days=6), tz)
    return start, end


def short_date(d: dt.date) -> str:
    return f"{d.month}/{d.day}"
