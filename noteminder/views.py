from __future__ import annotations
import datetime as dt
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from .models import IMPORTANCE_RANK, STATUS_ORDER, Note
from .timeutil import day_bounds, day_of


class SortKey(str, Enum):
    CREATED_AT = "createdAt"
    START_TIME = "startTime"
    END_TIME = "endTime"
    IMPORTANCE = "importance"
    STATUS = "status"
    REMINDER_TIME = "reminderTime"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortConfig:
    key: SortKey
    direction: SortDirection = SortDirection.ASC


def next_sort_config(current: Optional[SortConfig], key: SortKey) -> Optional[SortConfig]:
    """Header-click cycle for one key: none -> asc -> desc -> none. A new key starts at asc."""
    if current is None or current.key != key:
        return SortConfig(key, SortDirection.ASC)
    if current.direction == SortDirection.ASC:
        return SortConfig(key, SortDirection.DESC)
    return None


def sort_value(note: Note, key: SortKey) -> Any:
    """Comparable value of `note` under `key`; None when the note has no value."""
    if key == SortKey.REMINDER_TIME:
        return (note.reminder_time or 0) if note.is_reminder_on else -1
    if key == SortKey.IMPORTANCE:
        return IMPORTANCE_RANK.get(note.importance, 0)
    if key == SortKey.STATUS:
        return STATUS_ORDER.get(note.status, 0)
    if key == SortKey.CREATED_AT:
        return note.created_at
    if key == SortKey.START_TIME:
        return note.start_time
    return note.end_time


def sort_notes(notes: Iterable[Note], config: Optional[SortConfig]) -> list[Note]:
    """
    Stable sort. Notes without a value for the key keep their relative
    order and go after the rest in either direction.
    """
    notes = list(notes)
    if config is None:
        return notes
    present = [n for n in notes if sort_value(n, config.key) is not None]
    missing = [n for n in notes if sort_value(n, config.key) is None]
    present.sort(
        key=lambda n: sort_value(n, config.key),
        reverse=config.direction == SortDirection.DESC,
    )
    return present + missing


def overlaps_today(note: Note, now: int, tz: Optional[dt.tzinfo] = None) -> bool:
    if note.start_time is None:
        return False
    today_start, today_end = day_bounds(day_of(now, tz), tz)
    return note.start_time <= today_end and note.effective_end >= today_start


def filter_today(notes: Iterable[Note], now: int, tz: Optional[dt.tzinfo] = None) -> list[Note]:
    return [n for n in notes if overlaps_today(n, now, tz)]


def derive_view(
    notes: Iterable[Note],
    config: Optional[SortConfig] = None,
    today_only: bool = False,
    now: Optional[int] = None,
    tz: Optional[dt.tzinfo] = None,
) -> list[Note]:
    """Filtered, ordered, read-only view of a group's notes."""
    view = list(notes)
    if today_only:
        if now is None:
            raise ValueError("today_only needs the current time")
        view = filter_today(view, now, tz)
    return sort_notes(view, config)
