from __future__ import annotations
import datetime as dt
from typing import Any, Callable, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from .timeutil import to_ms


class ParsedNote(BaseModel):
    """Structured guess returned by a text parser (e.g. an LLM)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    content: str
    event_time: Optional[str] = None
    location: Optional[str] = None
    status: Optional[str] = None


NoteParser = Callable[[str], Any]


def safe_parse(parser: NoteParser, raw_text: str) -> Optional[ParsedNote]:
    """Run `parser`, accepting a ParsedNote or a plain dict. Any failure becomes None."""
    if not raw_text or not raw_text.strip():
        return None
    try:
        result = parser(raw_text)
    except Exception:
        logger.exception("Note parser failed")
        return None
    if result is None or isinstance(result, ParsedNote):
        return result
    try:
        return ParsedNote.model_validate(result)
    except ValidationError as e:
        logger.warning(f"Note parser returned an unusable result: {e}")
        return None


def parse_event_time(value: Optional[str], tz: Optional[dt.tzinfo] = None) -> Optional[int]:
    # keep "YYYY-MM-DDTHH:MM:SS" and read it as wall-clock time
    if not value:
        return None
    try:
        parsed = dt.datetime.fromisoformat(value[:19])
    except ValueError:
        return None
    return to_ms(parsed.replace(tzinfo=tz))


def parsed_changes(parsed: ParsedNote, tz: Optional[dt.tzinfo] = None) -> dict[str, Any]:
    """Note field updates suggested by a parse result; unknown parts are left alone."""
    changes: dict[str, Any] = {}
    if parsed.content:
        changes["content"] = parsed.content
    event_ms = parse_event_time(parsed.event_time, tz)
    if event_ms is not None:
        changes["start_time"] = event_ms
        changes["end_time"] = event_ms
    if parsed.location:
        changes["location"] = parsed.location
    return changes
