from __future__ import annotations
import uuid
from enum import Enum
from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlmodel import Field as SQLField, SQLModel

DEFAULT_GROUP_ID = "default"
DEFAULT_GROUP_NAME = "My Notebook 1"


class NoteStatus(str, Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    PARTIAL = "PARTIAL"
    DONE = "DONE"


class NoteImportance(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


IMPORTANCE_RANK = {
    NoteImportance.HIGH: 3,
    NoteImportance.MEDIUM: 2,
    NoteImportance.LOW: 1,
}

STATUS_ORDER = {
    NoteStatus.TODO: 0,
    NoteStatus.IN_PROGRESS: 1,
    NoteStatus.PARTIAL: 2,
    NoteStatus.DONE: 3,
}


class _Stored(BaseModel):
    # persisted blobs use camelCase keys (groupId, isReminderOn, ...)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_stored(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Position(_Stored):
    x: float = 0
    y: float = 0


class Group(_Stored):
    id: str
    name: str

    @classmethod
    def from_stored(cls, raw: Any) -> Optional["Group"]:
        if not isinstance(raw, dict) or not raw.get("id"):
            return None
        name = raw.get("name")
        return cls(id=str(raw["id"]), name=name if isinstance(name, str) else "")


class Note(_Stored):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    group_id: str = DEFAULT_GROUP_ID
    content: str = ""
    created_at: int = 0

    start_time: Optional[int] = None
    end_time: Optional[int] = None
    location: Optional[str] = None
    status: NoteStatus = NoteStatus.TODO
    importance: NoteImportance = NoteImportance.MEDIUM

    is_reminder_on: bool = False
    reminder_time: Optional[int] = None

    is_pinned: bool = False
    position: Position = Field(default_factory=Position)
    z_index: int = 0

    @property
    def effective_end(self) -> Optional[int]:
        """End of the event window; a missing end collapses onto the start."""
        return self.end_time if self.end_time is not None else self.start_time

    @classmethod
    def from_stored(cls, raw: Any) -> Optional["Note"]:
        """
        Decode one persisted note, substituting defaults field by field.
        Returns None only when the entry is not an object at all.
        """
        if not isinstance(raw, dict):
            logger.warning(f"Skipping malformed note entry: {raw!r}")
            return None

        data: dict[str, Any] = {}
        if raw.get("id"):
            data["id"] = str(raw["id"])
        data["group_id"] = str(raw.get("groupId") or DEFAULT_GROUP_ID)
        content = raw.get("content")
        data["content"] = content if isinstance(content, str) else ""
        data["created_at"] = _as_ms(raw.get("createdAt")) or 0
        data["start_time"] = _as_ms(raw.get("startTime"))
        data["end_time"] = _as_ms(raw.get("endTime"))
        location = raw.get("location")
        data["location"] = location if isinstance(location, str) else None
        data["status"] = _as_enum(NoteStatus, raw.get("status"), NoteStatus.TODO)
        data["importance"] = _as_enum(NoteImportance, raw.get("importance"), NoteImportance.MEDIUM)
        data["is_reminder_on"] = raw.get("isReminderOn") is True
        data["reminder_time"] = _as_ms(raw.get("reminderTime"))
        data["is_pinned"] = raw.get("isPinned") is True
        data["position"] = _as_position(raw.get("position"))
        data["z_index"] = _as_ms(raw.get("zIndex")) or 0
        return cls(**data)


def _as_ms(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value != value:  # NaN
        return None
    return int(value)


def _as_enum(enum_cls, value: Any, default):
    if isinstance(value, str):
        for member in enum_cls:
            if value in (member.value, member.name):
                return member
    return default


def _as_position(value: Any) -> Position:
    if not isinstance(value, dict):
        return Position()
    x = value.get("x")
    y = value.get("y")
    return Position(
        x=x if isinstance(x, (int, float)) and not isinstance(x, bool) else 0,
        y=y if isinstance(y, (int, float)) and not isinstance(y, bool) else 0,
    )


class Blob(SQLModel, table=True):
    key: str = SQLField(primary_key=True)
    value: str = ""
