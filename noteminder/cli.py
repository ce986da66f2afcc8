from __future__ import annotations
import json
import queue
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import get_settings
from .db import SqlBlobStore
from .layout import Viewport
from .models import DEFAULT_GROUP_ID, NoteImportance, NoteStatus
from .report import WorkWindow, build_work_report
from .scheduler import Alert, ReminderScheduler
from .services import DEFAULT_CONTENT, NoteStore
from .views import SortConfig, SortDirection, SortKey, derive_view

app = typer.Typer(help="NoteMinder — notes, reminders and pinned stickies")
console = Console()

_STORE: Optional[NoteStore] = None


@app.callback()
def _boot():
    global _STORE
    settings = get_settings()
    logger.configure(handlers=[{"sink": sys.stderr, "level": settings.log_level}])
    _STORE = NoteStore(SqlBlobStore())
    _STORE.load()


def _store() -> NoteStore:
    if _STORE is None:
        raise RuntimeError("Store not loaded; commands must run through the noteminder app")
    return _STORE


def _fail(message: str):
    console.print(f"[red]{message}[/]")
    raise typer.Exit(1)


def _parse_time(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(datetime.fromisoformat(value).timestamp() * 1000)
    except ValueError:
        _fail(f"Not an ISO date/time: {value}")


def _fmt(ms: Optional[int]) -> str:
    if ms is None:
        return ""
    d = datetime.fromtimestamp(ms / 1000)
    return f"{d.month}/{d.day} {d:%H:%M}"


# ---------- groups ----------
@app.command()
def groups():
    table = Table(title="Notebooks")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Notes", justify="right")
    store = _store()
    for g in store.groups:
        table.add_row(g.id, g.name, str(len(store.notes_in_group(g.id))))
    console.print(table)


@app.command("group-add")
def group_add(name: Optional[str] = typer.Argument(None)):
    g = _store().create_group(name)
    console.print(f"[green]Created[/] notebook {g.name} ({g.id})")


@app.command("group-rename")
def group_rename(group_id: str, name: str):
    g = _store().rename_group(group_id, name)
    if g is None:
        _fail(f"Cannot rename {group_id}")
    console.print(f"[green]Renamed[/] {g.id} → {g.name}")


@app.command("group-delete")
def group_delete(group_id: str):
    if not _store().delete_group(group_id):
        _fail("Unknown notebook, or it is the last one")
    console.print(f"[yellow]Deleted[/] notebook {group_id} and its notes")


# ---------- notes ----------
@app.command()
def add(
    content: str = typer.Option(DEFAULT_CONTENT, "--content", "-c"),
    group: str = typer.Option(DEFAULT_GROUP_ID, "--group", "-g"),
    start: Optional[str] = typer.Option(None, "--start", help="ISO date/time"),
    end: Optional[str] = typer.Option(None, "--end", help="ISO date/time"),
    location: Optional[str] = typer.Option(None, "--location", "-l"),
    importance: NoteImportance = typer.Option(NoteImportance.MEDIUM, "--importance", "-i"),
    remind: Optional[str] = typer.Option(None, "--remind", help="ISO date/time; turns the reminder on"),
):
    fields = {"importance": importance, "location": location}
    start_ms = _parse_time(start)
    if start_ms is not None:
        fields["start_time"] = start_ms
        fields["end_time"] = _parse_time(end) or start_ms
    remind_ms = _parse_time(remind)
    if remind_ms is not None:
        fields["reminder_time"] = remind_ms
        fields["is_reminder_on"] = True
    n = _store().create_note(group, content, **fields)
    if n is None:
        _fail(f"Unknown notebook: {group}")
    console.print(f"[green]Created[/] {n.id}: {n.content}")


@app.command("list")
def _list(
    group: str = typer.Option(DEFAULT_GROUP_ID, "--group", "-g"),
    sort: Optional[SortKey] = typer.Option(None, "--sort"),
    desc: bool = typer.Option(False, "--desc"),
    today: bool = typer.Option(False, "--today", help="only notes overlapping today"),
):
    store = _store()
    g = store.get_group(group)
    if g is None:
        _fail(f"Unknown notebook: {group}")
    config = SortConfig(sort, SortDirection.DESC if desc else SortDirection.ASC) if sort else None
    notes = derive_view(store.notes_in_group(group), config, today_only=today, now=store.now())
    table = Table(title=g.name)
    table.add_column("ID", style="cyan")
    table.add_column("Content", style="bold")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Importance", style="magenta")
    table.add_column("Status")
    table.add_column("Reminder")
    table.add_column("Pinned")
    for n in notes:
        table.add_row(
            n.id, n.content, _fmt(n.start_time), _fmt(n.end_time),
            n.importance.value, n.status.value,
            _fmt(n.reminder_time) if n.is_reminder_on else "",
            "✓" if n.is_pinned else "",
        )
    console.print(table)


@app.command()
def edit(
    note_id: str,
    content: Optional[str] = typer.Option(None, "--content", "-c"),
    start: Optional[str] = typer.Option(None, "--start"),
    end: Optional[str] = typer.Option(None, "--end"),
    location: Optional[str] = typer.Option(None, "--location", "-l"),
    status: Optional[NoteStatus] = typer.Option(None, "--status", "-s"),
    importance: Optional[NoteImportance] = typer.Option(None, "--importance", "-i"),
    remind: Optional[str] = typer.Option(None, "--remind"),
    reminder: Optional[bool] = typer.Option(None, "--reminder/--no-reminder"),
):
    changes = {
        "content": content,
        "start_time": _parse_time(start),
        "end_time": _parse_time(end),
        "location": location,
        "status": status,
        "importance": importance,
        "reminder_time": _parse_time(remind),
        "is_reminder_on": reminder,
    }
    n = _store().update_note(note_id, **{k: v for k, v in changes.items() if v is not None})
    if n is None:
        _fail(f"Not found: {note_id}")
    console.print(f"[green]Updated[/] {n.id}: {n.content}")


@app.command()
def delete(note_id: str):
    if not _store().delete_note(note_id):
        _fail(f"Not found: {note_id}")
    console.print(f"[yellow]Deleted[/] {note_id}")


@app.command()
def pin(
    note_id: str,
    x: Optional[float] = typer.Option(None, "--x"),
    y: Optional[float] = typer.Option(None, "--y"),
):
    settings = get_settings()
    anchor = (x, y) if x is not None and y is not None else None
    n = _store().pin_note(note_id, Viewport(settings.viewport_width, settings.viewport_height), anchor)
    if n is None:
        _fail(f"Not found: {note_id}")
    console.print(f"[green]Pinned[/] {n.id} at ({n.position.x:.0f}, {n.position.y:.0f})")


@app.command()
def unpin(note_id: str):
    n = _store().unpin_note(note_id)
    if n is None:
        _fail(f"Not found: {note_id}")
    console.print(f"[yellow]Unpinned[/] {n.id}")


@app.command("batch-pin")
def batch_pin(
    group: str = typer.Option(DEFAULT_GROUP_ID, "--group", "-g"),
    width: Optional[int] = typer.Option(None, "--width", help="canvas width in px"),
):
    store = _store()
    if store.get_group(group) is None:
        _fail(f"Unknown notebook: {group}")
    ids = [n.id for n in store.notes_in_group(group) if not n.is_pinned]
    pinned = store.batch_pin(ids, width or get_settings().viewport_width)
    console.print(f"[green]Pinned[/] {len(pinned)} notes")


@app.command()
def report(
    group: str = typer.Option(DEFAULT_GROUP_ID, "--group", "-g"),
    hours: Optional[str] = typer.Option(None, "--hours", help="work window, e.g. 09:00-21:00"),
):
    store = _store()
    if store.get_group(group) is None:
        _fail(f"Unknown notebook: {group}")
    try:
        window = WorkWindow.parse(hours or get_settings().work_hours)
    except ValueError as e:
        _fail(str(e))
    r = build_work_report(store.notes_in_group(group), window, store.now())
    console.print(r.render())


@app.command()
def export(to: Path = typer.Option(..., "--to")):
    payload = _store().export_payload()
    to.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    console.print(f"[green]Exported[/] {len(payload['notes'])} notes → {to}")


@app.command("import")
def import_(from_: Path = typer.Option(..., "--from")):
    try:
        data = json.loads(from_.read_text(encoding="utf-8"))
    except ValueError:
        _fail(f"Not a JSON file: {from_}")
    if not isinstance(data, dict):
        _fail("Expected an object with 'groups' and 'notes'")
    groups_added, notes_added = _store().import_batch(data.get("groups") or [], data.get("notes") or [])
    console.print(f"[green]Imported[/] {groups_added} notebooks, {notes_added} notes")


# ---------- long-running ----------
@app.command()
def watch():
    """Poll reminders and prompt to dismiss or snooze each one."""
    settings = get_settings()
    alerts: "queue.Queue[Alert]" = queue.Queue()
    scheduler = ReminderScheduler(
        _store(),
        interval_ms=settings.poll_interval_ms,
        window_ms=settings.reminder_window_ms,
        snooze_minutes=settings.snooze_minutes,
    )
    scheduler.subscribe(alerts.put)
    scheduler.start()
    console.print("[dim]Watching reminders, Ctrl+C to stop[/]")
    try:
        while True:
            alert = alerts.get()
            console.print(Panel(alert.content, title="🔔 Reminder"))
            choice = typer.prompt("[d]ismiss or [s]nooze", default="s")
            if choice.lower().startswith("d"):
                scheduler.dismiss()
            else:
                minutes = typer.prompt("Snooze minutes", default=settings.snooze_minutes, type=int)
                scheduler.snooze(max(1, minutes))
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.stop()


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
):
    import uvicorn

    uvicorn.run("noteminder.app:create_app", factory=True, host=host, port=port)


def main():
    app()


if __name__ == "__main__":
    main()
