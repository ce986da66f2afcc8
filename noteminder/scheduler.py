from __future__ import annotations
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional

from loguru import logger

from .models import Note
from .services import NoteStore
from .timeutil import MIN_MS

POLL_INTERVAL_MS = 5000
REMINDER_WINDOW_MS = 60_000
DEFAULT_SNOOZE_MINUTES = 10
NOTIFICATION_TITLE = "NoteMinder Reminder"

Notifier = Callable[[str, str], None]
AlertListener = Callable[["Alert"], None]


class SchedulerState(str, Enum):
    IDLE = "IDLE"
    ALERTING = "ALERTING"


@dataclass(frozen=True)
class Alert:
    note_id: str
    content: str
    reminder_time: int
    armed_at: int


def select_due_reminder(
    notes: Iterable[Note], now: int, window_ms: int = REMINDER_WINDOW_MS
) -> Optional[Note]:
    """
    First note, in collection order, whose reminder fell due within the
    trailing window. Reminders older than the window count as missed.
    """
    for note in notes:
        if not note.is_reminder_on or note.reminder_time is None:
            continue
        if now - window_ms < note.reminder_time <= now:
            return note
    return None


def log_notifier(title: str, body: str) -> None:
    logger.info(f"{title}: {body}")


class ReminderScheduler:
    """
    Polls a NoteStore and raises at most one reminder alert at a time.

    The poll runs on a daemon thread every `interval_ms`. `tick()` can also
    be driven directly (tests, CLI loops). Nothing here raises to callers:
    notifier and listener failures are logged and ignored.
    """

    def __init__(
        self,
        store: NoteStore,
        notifier: Optional[Notifier] = None,
        interval_ms: int = POLL_INTERVAL_MS,
        window_ms: int = REMINDER_WINDOW_MS,
        snooze_minutes: int = DEFAULT_SNOOZE_MINUTES,
    ):
        self.store = store
        self.notifier = notifier or log_notifier
        self.interval_ms = interval_ms
        self.window_ms = window_ms
        self.snooze_minutes = snooze_minutes

        self._alert: Optional[Alert] = None
        self._listeners: list[AlertListener] = []
        self._state_lock = threading.Lock()
        self._tick_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ---------- state ----------
    @property
    def state(self) -> SchedulerState:
        return SchedulerState.ALERTING if self._alert is not None else SchedulerState.IDLE

    @property
    def active_alert(self) -> Optional[Alert]:
        return self._alert

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def subscribe(self, listener: AlertListener) -> None:
        self._listeners.append(listener)

    # ---------- timer ----------
    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="reminder-poll", daemon=True)
        self._thread.start()
        logger.info(f"Reminder scheduler started (every {self.interval_ms} ms)")

    def stop(self) -> None:
        """Stop polling and drop any active alert. Safe to call repeatedly."""
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5)
            logger.info("Reminder scheduler stopped")
        with self._state_lock:
            self._alert = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval_ms / 1000.0):
            self.tick()

    # ---------- poll ----------
    def tick(self) -> Optional[Alert]:
        """One poll. Returns the alert raised by this tick, if any."""
        if not self._tick_lock.acquire(blocking=False):
            return None
        try:
            with self._state_lock:
                if self._alert is not None:
                    return None
                try:
                    now = self.store.now()
                    note = select_due_reminder(self.store.notes, now, self.window_ms)
                except Exception:
                    logger.exception("Reminder poll failed")
                    return None
                if note is None:
                    return None
                alert = Alert(
                    note_id=note.id,
                    content=note.content,
                    reminder_time=note.reminder_time,
                    armed_at=now,
                )
                self._alert = alert
            logger.info(f"Reminder due for note {alert.note_id}")
            self._emit(alert)
            return alert
        finally:
            self._tick_lock.release()

    def _emit(self, alert: Alert) -> None:
        try:
            self.notifier(NOTIFICATION_TITLE, alert.content)
        except Exception:
            logger.exception(f"Notification for note {alert.note_id} failed")
        for listener in list(self._listeners):
            try:
                listener(alert)
            except Exception:
                logger.exception("Alert listener failed")

    # ---------- commands ----------
    def dismiss(self) -> Optional[Alert]:
        """Turn the alerting note's reminder off and go idle."""
        with self._state_lock:
            alert, self._alert = self._alert, None
            if alert is None:
                return None
            # update under the state lock so a concurrent tick can't re-raise it
            self.store.update_note(alert.note_id, is_reminder_on=False)
        logger.info(f"Dismissed reminder for note {alert.note_id}")
        return alert

    def snooze(self, minutes: Optional[int] = None) -> Optional[Alert]:
        """Push the alerting note's reminder `minutes` into the future and go idle."""
        minutes = self.snooze_minutes if minutes is None else minutes
        with self._state_lock:
            alert, self._alert = self._alert, None
            if alert is None:
                return None
            self.store.update_note(
                alert.note_id,
                reminder_time=self.store.now() + minutes * MIN_MS,
                is_reminder_on=True,
            )
        logger.info(f"Snoozed reminder for note {alert.note_id} by {minutes} min")
        return alert

    def clear(self) -> Optional[Alert]:
        """Close the alert without touching the note."""
        with self._state_lock:
            alert, self._alert = self._alert, None
        return alert
