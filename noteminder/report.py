from __future__ import annotations
import datetime as dt
import math
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from .models import Note
from .timeutil import at_minute, day_of, short_date, week_bounds

NO_EVENTS = "No events this week"
HALF_HOUR_MS = 30 * 60_000

_WINDOW_RE = re.compile(r"\s*(\d{1,2}):(\d{2})\s*-\s*(\d{1,2}):(\d{2})\s*")


@dataclass(frozen=True)
class WorkWindow:
    """Daily working hours as minutes after midnight, end exclusive."""

    start_minute: int
    end_minute: int

    @classmethod
    def parse(cls, text: str) -> "WorkWindow":
        """'09:00-21:00' -> WorkWindow(540, 1260)."""
        m = _WINDOW_RE.fullmatch(text or "")
        if not m:
            raise ValueError(f"Work hours must look like 09:00-21:00, got {text!r}")
        sh, sm, eh, em = (int(g) for g in m.groups())
        if sh > 23 or eh > 23 or sm > 59 or em > 59:
            raise ValueError(f"Not a time of day in {text!r}")
        window = cls(sh * 60 + sm, eh * 60 + em)
        if window.end_minute <= window.start_minute:
            raise ValueError(f"Work hours must end after they start: {text!r}")
        return window


@dataclass(frozen=True)
class ReportLine:
    note_id: str
    content: str
    date_range: str
    hours: float

    def render(self) -> str:
        return f"{self.content}；{self.date_range}， {self.hours:g}h"


@dataclass(frozen=True)
class WorkReport:
    week_start: int
    week_end: int
    lines: list[ReportLine]

    def render(self) -> str:
        if not self.lines:
            return NO_EVENTS
        return "\n".join(line.render() for line in self.lines)


def work_overlap_ms(
    start: int, end: int, window: WorkWindow, tz: Optional[dt.tzinfo] = None
) -> int:
    """Milliseconds of [start, end] that fall inside the daily work window, summed over days."""
    total = 0
    day = day_of(start, tz)
    last = day_of(end, tz)
    while day <= last:
        win_start = at_minute(day, window.start_minute, tz)
        win_end = at_minute(day, window.end_minute, tz)
        total += max(0, min(end, win_end) - max(start, win_start))
        day += dt.timedelta(days=1)
    return total


def round_up_half_hours(overlap_ms: int) -> float:
    return math.ceil(overlap_ms / HALF_HOUR_MS) * 0.5


def _date_range(start: int, end: int, tz: Optional[dt.tzinfo]) -> str:
    first = day_of(start, tz)
    last = day_of(end, tz)
    if first == last:
        return short_date(first)
    return f"{short_date(first)}-{short_date(last)}"


def build_work_report(
    notes: Iterable[Note],
    window: WorkWindow,
    now: int,
    tz: Optional[dt.tzinfo] = None,
) -> WorkReport:
    """
    Hours each note spends inside the work window during the week of `now`.

    Multi-day notes are split per calendar day. Hours round up to the next
    half hour; notes that come to zero are left out.
    """
    week_start, week_end = week_bounds(now, tz)
    lines = []
    for note in notes:
        if note.start_time is None:
            continue
        start = note.start_time
        end = note.effective_end
        if end < start:
            continue
        if start > week_end or end < week_start:
            continue
        hours = round_up_half_hours(work_overlap_ms(start, end, window, tz))
        if hours <= 0:
            continue
        lines.append(
            ReportLine(
                note_id=note.id,
                content=note.content,
                date_range=_date_range(start, end, tz),
                hours=hours,
            )
        )
    return WorkReport(week_start=week_start, week_end=week_end, lines=lines)
