from __future__ import annotations
import json
import threading
import uuid
from typing import Any, Iterable, Optional

from loguru import logger

from .db import BlobStore
from .layout import Viewport, batch_slots, pin_position
from .models import DEFAULT_GROUP_ID, DEFAULT_GROUP_NAME, Group, Note
from .timeutil import Clock, now_ms

NOTES_KEY = "noteminder_notes_v4"
GROUPS_KEY = "noteminder_groups_v1"

INITIAL_Z_INDEX = 10
DEFAULT_CONTENT = "happy every day!"

# fields a caller may change through update_note
EDITABLE_FIELDS = {
    "content",
    "created_at",
    "start_time",
    "end_time",
    "location",
    "status",
    "importance",
    "is_reminder_on",
    "reminder_time",
}


class NoteStore:
    """
    Canonical collection of notes and groups.

    Every read snapshot and write goes through one lock, which also guards
    the z-index counter, so the reminder thread and request handlers can
    share a store.
    """

    def __init__(self, blobs: Optional[BlobStore] = None, clock: Optional[Clock] = None):
        self._blobs = blobs
        self._clock = clock or now_ms
        self._lock = threading.RLock()
        self._notes: list[Note] = []
        self._groups: list[Group] = [Group(id=DEFAULT_GROUP_ID, name=DEFAULT_GROUP_NAME)]
        self._max_z = INITIAL_Z_INDEX

    # ---------- persistence ----------
    def load(self) -> None:
        """Read notes and groups from the blob store; bad data falls back to defaults."""
        if self._blobs is None:
            return
        with self._lock:
            groups = [g for g in (Group.from_stored(r) for r in self._read_list(GROUPS_KEY)) if g]
            notes = [n for n in (Note.from_stored(r) for r in self._read_list(NOTES_KEY)) if n]
            self._groups = groups or [Group(id=DEFAULT_GROUP_ID, name=DEFAULT_GROUP_NAME)]
            self._notes = notes
            self._max_z = max([INITIAL_Z_INDEX] + [n.z_index for n in notes])
            logger.info(f"Loaded {len(self._notes)} notes in {len(self._groups)} groups")

    def _read_list(self, key: str) -> list[Any]:
        try:
            blob = self._blobs.load(key)
        except Exception:
            logger.exception(f"Could not read {key}")
            return []
        if not blob:
            return []
        try:
            data = json.loads(blob)
        except ValueError:
            logger.warning(f"Discarding malformed JSON under {key}")
            return []
        if not isinstance(data, list):
            logger.warning(f"Expected a list under {key}, got {type(data).__name__}")
            return []
        return data

    def save(self) -> None:
        if self._blobs is None:
            return
        with self._lock:
            notes_blob = json.dumps([n.to_stored() for n in self._notes], ensure_ascii=False)
            groups_blob = json.dumps([g.to_stored() for g in self._groups], ensure_ascii=False)
        try:
            self._blobs.save(NOTES_KEY, notes_blob)
            self._blobs.save(GROUPS_KEY, groups_blob)
        except Exception:
            logger.exception("Could not persist notes")

    def export_payload(self) -> dict[str, Any]:
        with self._lock:
            return {
                "groups": [g.to_stored() for g in self._groups],
                "notes": [n.to_stored() for n in self._notes],
            }

    # ---------- reads ----------
    @property
    def notes(self) -> list[Note]:
        with self._lock:
            return list(self._notes)

    @property
    def groups(self) -> list[Group]:
        with self._lock:
            return list(self._groups)

    @property
    def max_z_index(self) -> int:
        with self._lock:
            return self._max_z

    def now(self) -> int:
        return self._clock()

    def get_note(self, note_id: str) -> Optional[Note]:
        with self._lock:
            return self._find_note(note_id)

    def get_group(self, group_id: str) -> Optional[Group]:
        with self._lock:
            return self._find_group(group_id)

    def notes_in_group(self, group_id: str) -> list[Note]:
        with self._lock:
            return [n for n in self._notes if n.group_id == group_id]

    def _find_note(self, note_id: str) -> Optional[Note]:
        for n in self._notes:
            if n.id == note_id:
                return n
        return None

    def _find_group(self, group_id: str) -> Optional[Group]:
        for g in self._groups:
            if g.id == group_id:
                return g
        return None

    def _next_z(self) -> int:
        self._max_z += 1
        return self._max_z

    # ---------- groups ----------
    def create_group(self, name: Optional[str] = None) -> Group:
        with self._lock:
            group = Group(
                id=str(uuid.uuid4()),
                name=(name or "").strip() or f"Notebook {len(self._groups) + 1}",
            )
            self._groups.append(group)
        self.save()
        logger.info(f"Created group {group.id} ({group.name})")
        return group

    def rename_group(self, group_id: str, name: str) -> Optional[Group]:
        if not name or not name.strip():
            return None
        with self._lock:
            group = self._find_group(group_id)
            if group is None:
                return None
            group.name = name
        self.save()
        return group

    def delete_group(self, group_id: str) -> bool:
        """Delete a group and its notes. The last remaining group cannot be deleted."""
        with self._lock:
            if len(self._groups) <= 1 or self._find_group(group_id) is None:
                logger.debug(f"Refusing to delete group {group_id}")
                return False
            self._groups = [g for g in self._groups if g.id != group_id]
            self._notes = [n for n in self._notes if n.group_id != group_id]
        self.save()
        logger.info(f"Deleted group {group_id}")
        return True

    def reorder_groups(self, from_index: int, to_index: int) -> bool:
        with self._lock:
            if not _valid_move(len(self._groups), from_index, to_index):
                return False
            moved = self._groups.pop(from_index)
            self._groups.insert(to_index, moved)
        self.save()
        return True

    # ---------- notes ----------
    def create_note(
        self,
        group_id: str = DEFAULT_GROUP_ID,
        content: str = DEFAULT_CONTENT,
        **fields: Any,
    ) -> Optional[Note]:
        """
        Create a note at the top of the collection.

        New notes are always unpinned and TODO. Without explicit times the
        event and the (disabled) reminder default to now; a missing end
        follows the start.
        """
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise TypeError(f"Unknown note fields: {', '.join(sorted(unknown))}")
        fields.pop("status", None)
        with self._lock:
            if self._find_group(group_id) is None:
                logger.debug(f"Cannot create note in unknown group {group_id}")
                return None
            now = self._clock()
            data: dict[str, Any] = {
                "created_at": now,
                "start_time": now,
                "reminder_time": now,
            }
            data.update(fields)
            data.setdefault("end_time", data["start_time"])
            note = Note(group_id=group_id, content=content, z_index=self._next_z(), **data)
            self._notes.insert(0, note)
        self.save()
        return note

    def update_note(self, note_id: str, **changes: Any) -> Optional[Note]:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise TypeError(f"Unknown note fields: {', '.join(sorted(unknown))}")
        with self._lock:
            note = self._find_note(note_id)
            if note is None:
                return None
            validated = Note.model_validate({**note.model_dump(), **changes})
            for name in changes:
                setattr(note, name, getattr(validated, name))
        self.save()
        return note

    def delete_note(self, note_id: str) -> bool:
        with self._lock:
            before = len(self._notes)
            self._notes = [n for n in self._notes if n.id != note_id]
            removed = len(self._notes) != before
        if removed:
            self.save()
        return removed

    def reorder_notes(self, group_id: str, from_index: int, to_index: int) -> bool:
        """Move a note within its group; the group's notes move to the front of the collection."""
        with self._lock:
            in_group = [n for n in self._notes if n.group_id == group_id]
            if not _valid_move(len(in_group), from_index, to_index):
                return False
            others = [n for n in self._notes if n.group_id != group_id]
            moved = in_group.pop(from_index)
            in_group.insert(to_index, moved)
            self._notes = in_group + others
        self.save()
        return True

    def import_batch(self, groups: Iterable[Any], notes: Iterable[Any]) -> tuple[int, int]:
        """Append stored-format groups and notes. Groups whose id already exists are skipped."""
        new_groups = [g for g in (Group.from_stored(r) for r in groups) if g]
        new_notes = [n for n in (Note.from_stored(r) for r in notes) if n]
        with self._lock:
            known = {g.id for g in self._groups}
            added = []
            for g in new_groups:
                if g.id not in known:
                    known.add(g.id)
                    added.append(g)
            self._groups.extend(added)
            self._notes.extend(new_notes)
            self._max_z = max([self._max_z] + [n.z_index for n in new_notes])
        self.save()
        logger.info(f"Imported {len(added)} groups and {len(new_notes)} notes")
        return len(added), len(new_notes)

    # ---------- pinning ----------
    def pin_note(
        self,
        note_id: str,
        viewport: Viewport,
        anchor: Optional[tuple[float, float]] = None,
    ) -> Optional[Note]:
        """Pin one note. Already-pinned notes are returned untouched."""
        with self._lock:
            note = self._find_note(note_id)
            if note is None:
                return None
            if note.is_pinned:
                return note
            note.position = pin_position(viewport, anchor)
            note.is_pinned = True
            note.z_index = self._next_z()
        self.save()
        return note

    def unpin_note(self, note_id: str) -> Optional[Note]:
        # position is kept for the next pin
        with self._lock:
            note = self._find_note(note_id)
            if note is None:
                return None
            note.is_pinned = False
        self.save()
        return note

    def toggle_pin(
        self,
        note_id: str,
        viewport: Viewport,
        anchor: Optional[tuple[float, float]] = None,
    ) -> Optional[Note]:
        note = self.get_note(note_id)
        if note is None:
            return None
        if note.is_pinned:
            return self.unpin_note(note_id)
        return self.pin_note(note_id, viewport, anchor)

    def batch_pin(self, note_ids: Iterable[str], canvas_width: int) -> list[Note]:
        """
        Pin several notes onto a grid, in the order given.

        Unknown ids and notes that are already pinned are skipped and do not
        take a grid slot. Returns the newly pinned notes.
        """
        with self._lock:
            targets: list[Note] = []
            seen = set()
            for note_id in note_ids:
                note = self._find_note(note_id)
                if note is None or note.is_pinned or note.id in seen:
                    continue
                seen.add(note.id)
                targets.append(note)
            for note, slot in zip(targets, batch_slots(len(targets), canvas_width)):
                note.is_pinned = True
                note.position = slot.position
                note.z_index = self._next_z()
        if targets:
            self.save()
            logger.info(f"Batch pinned {len(targets)} notes")
        return targets

    def bring_to_front(self, note_id: str) -> Optional[Note]:
        with self._lock:
            note = self._find_note(note_id)
            if note is None:
                return None
            note.z_index = self._next_z()
        self.save()
        return note


def _valid_move(size: int, from_index: int, to_index: int) -> bool:
    return 0 <= from_index < size and 0 <= to_index < size
