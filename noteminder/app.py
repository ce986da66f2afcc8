from __future__ import annotations
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .config import get_settings
from .db import SqlBlobStore
from .layout import Viewport
from .models import Group, Note, NoteImportance, NoteStatus
from .parsing import NoteParser, parsed_changes, safe_parse
from .report import WorkWindow, build_work_report
from .scheduler import Alert, ReminderScheduler, SchedulerState
from .services import DEFAULT_CONTENT, NoteStore
from .views import SortConfig, SortDirection, SortKey, derive_view


# ---------- Schemas ----------
class _Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GroupCreate(_Schema):
    name: Optional[str] = None


class GroupEdit(_Schema):
    name: str


class NoteCreate(_Schema):
    content: str = DEFAULT_CONTENT
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    location: Optional[str] = None
    importance: NoteImportance = NoteImportance.MEDIUM
    is_reminder_on: bool = False
    reminder_time: Optional[int] = None


class NoteEdit(_Schema):
    content: Optional[str] = None
    created_at: Optional[int] = None
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    location: Optional[str] = None
    status: Optional[NoteStatus] = None
    importance: Optional[NoteImportance] = None
    is_reminder_on: Optional[bool] = None
    reminder_time: Optional[int] = None

    @field_validator("content", "created_at", "status", "importance", "is_reminder_on")
    @classmethod
    def _not_null(cls, value):
        # omit the key to leave a field alone; only location and start/end/reminder times accept null
        if value is None:
            raise ValueError("must not be null")
        return value


class PinRequest(_Schema):
    x: Optional[float] = None
    y: Optional[float] = None


class BatchPinRequest(_Schema):
    ids: list[str] = Field(default_factory=list)
    width: Optional[int] = None


class ParseRequest(_Schema):
    text: str


class ReportOut(_Schema):
    week_start: int
    week_end: int
    lines: list[str]
    text: str


class AlertOut(_Schema):
    state: SchedulerState
    note_id: Optional[str] = None
    content: Optional[str] = None
    reminder_time: Optional[int] = None
    armed_at: Optional[int] = None


def _alert_out(state: SchedulerState, alert: Optional[Alert]) -> AlertOut:
    if alert is None:
        return AlertOut(state=state)
    return AlertOut(
        state=state,
        note_id=alert.note_id,
        content=alert.content,
        reminder_time=alert.reminder_time,
        armed_at=alert.armed_at,
    )


def create_app(
    store: Optional[NoteStore] = None,
    scheduler: Optional[ReminderScheduler] = None,
    parser: Optional[NoteParser] = None,
) -> FastAPI:
    settings = get_settings()
    if store is None:
        store = NoteStore(SqlBlobStore())
        store.load()
    if scheduler is None:
        scheduler = ReminderScheduler(
            store,
            interval_ms=settings.poll_interval_ms,
            window_ms=settings.reminder_window_ms,
            snooze_minutes=settings.snooze_minutes,
        )
    viewport = Viewport(settings.viewport_width, settings.viewport_height)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler.start()
        try:
            yield
        finally:
            scheduler.stop()

    app = FastAPI(title="NoteMinder API", lifespan=lifespan)
    app.state.store = store
    app.state.scheduler = scheduler

    def _note_or_404(note: Optional[Note]) -> Note:
        if note is None:
            raise HTTPException(status_code=404, detail="Note not found")
        return note

    def _group_or_404(group_id: str) -> Group:
        group = store.get_group(group_id)
        if group is None:
            raise HTTPException(status_code=404, detail="Group not found")
        return group

    # ---------- groups ----------
    @app.get("/api/groups", response_model=list[Group])
    def api_list_groups():
        return store.groups

    @app.post("/api/groups", response_model=Group, status_code=201)
    def api_create_group(payload: GroupCreate):
        return store.create_group(payload.name)

    @app.patch("/api/groups/{group_id}", response_model=Group)
    def api_rename_group(group_id: str, payload: GroupEdit):
        _group_or_404(group_id)
        group = store.rename_group(group_id, payload.name)
        if group is None:
            raise HTTPException(status_code=400, detail="Group name must not be blank")
        return group

    @app.delete("/api/groups/{group_id}")
    def api_delete_group(group_id: str):
        _group_or_404(group_id)
        if not store.delete_group(group_id):
            raise HTTPException(status_code=409, detail="The last group cannot be deleted")
        return {"ok": True}

    @app.get("/api/groups/{group_id}/notes", response_model=list[Note])
    def api_list_notes(
        group_id: str,
        sort: Optional[SortKey] = None,
        direction: SortDirection = SortDirection.ASC,
        today: bool = False,
    ):
        _group_or_404(group_id)
        config = SortConfig(sort, direction) if sort else None
        return derive_view(store.notes_in_group(group_id), config, today_only=today, now=store.now())

    @app.post("/api/groups/{group_id}/notes", response_model=Note, status_code=201)
    def api_create_note(group_id: str, payload: NoteCreate):
        fields = payload.model_dump(exclude_unset=True, exclude={"content"})
        note = store.create_note(group_id, payload.content, **fields)
        if note is None:
            raise HTTPException(status_code=404, detail="Group not found")
        return note

    @app.post("/api/groups/{group_id}/pin-all", response_model=list[Note])
    def api_pin_all(
        group_id: str,
        width: Optional[int] = None,
        sort: Optional[SortKey] = None,
        direction: SortDirection = SortDirection.ASC,
        today: bool = False,
    ):
        _group_or_404(group_id)
        config = SortConfig(sort, direction) if sort else None
        view = derive_view(store.notes_in_group(group_id), config, today_only=today, now=store.now())
        ids = [n.id for n in view if not n.is_pinned]
        return store.batch_pin(ids, width or viewport.width)

    @app.get("/api/groups/{group_id}/report", response_model=ReportOut)
    def api_report(group_id: str, hours: Optional[str] = Query(None, description="HH:MM-HH:MM")):
        _group_or_404(group_id)
        try:
            window = WorkWindow.parse(hours or settings.work_hours)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        report = build_work_report(store.notes_in_group(group_id), window, store.now())
        return ReportOut(
            week_start=report.week_start,
            week_end=report.week_end,
            lines=[line.render() for line in report.lines],
            text=report.render(),
        )

    # ---------- notes ----------
    @app.get("/api/notes/{note_id}", response_model=Note)
    def api_get_note(note_id: str):
        return _note_or_404(store.get_note(note_id))

    @app.patch("/api/notes/{note_id}", response_model=Note)
    def api_edit_note(note_id: str, payload: NoteEdit):
        changes = payload.model_dump(exclude_unset=True)
        return _note_or_404(store.update_note(note_id, **changes))

    @app.delete("/api/notes/{note_id}")
    def api_delete_note(note_id: str):
        if not store.delete_note(note_id):
            raise HTTPException(status_code=404, detail="Note not found")
        return {"ok": True}

    @app.post("/api/notes/{note_id}/pin", response_model=Note)
    def api_pin(note_id: str, payload: Optional[PinRequest] = None):
        anchor = None
        if payload is not None and payload.x is not None and payload.y is not None:
            anchor = (payload.x, payload.y)
        return _note_or_404(store.pin_note(note_id, viewport, anchor))

    @app.post("/api/notes/{note_id}/unpin", response_model=Note)
    def api_unpin(note_id: str):
        return _note_or_404(store.unpin_note(note_id))

    @app.post("/api/notes/{note_id}/toggle-pin", response_model=Note)
    def api_toggle_pin(note_id: str):
        return _note_or_404(store.toggle_pin(note_id, viewport))

    @app.post("/api/notes/{note_id}/front", response_model=Note)
    def api_bring_to_front(note_id: str):
        return _note_or_404(store.bring_to_front(note_id))

    @app.post("/api/notes/batch-pin", response_model=list[Note])
    def api_batch_pin(payload: BatchPinRequest):
        return store.batch_pin(payload.ids, payload.width or viewport.width)

    @app.post("/api/notes/{note_id}/parse", response_model=Note)
    def api_parse(note_id: str, payload: ParseRequest):
        _note_or_404(store.get_note(note_id))
        if parser is None:
            raise HTTPException(status_code=503, detail="No text parser configured")
        parsed = safe_parse(parser, payload.text)
        if parsed is None:
            raise HTTPException(status_code=422, detail="Could not parse text")
        return _note_or_404(store.update_note(note_id, **parsed_changes(parsed)))

    # ---------- reminders ----------
    @app.get("/api/alert", response_model=AlertOut)
    def api_alert():
        return _alert_out(scheduler.state, scheduler.active_alert)

    @app.post("/api/alert/dismiss", response_model=AlertOut)
    def api_dismiss():
        alert = scheduler.dismiss()
        return _alert_out(scheduler.state, alert)

    @app.post("/api/alert/snooze", response_model=AlertOut)
    def api_snooze(minutes: Optional[int] = Query(None, ge=1)):
        alert = scheduler.snooze(minutes)
        return _alert_out(scheduler.state, alert)

    @app.post("/api/alert/clear", response_model=AlertOut)
    def api_clear():
        alert = scheduler.clear()
        return _alert_out(scheduler.state, alert)

    logger.debug("NoteMinder API ready")
    return app
