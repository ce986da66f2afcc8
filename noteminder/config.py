from __future__ import annotations
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="NOTEMINDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    db_path: Optional[Path] = None

    # Reminders
    poll_interval_ms: int = 5000
    reminder_window_ms: int = 60_000
    snooze_minutes: int = 10

    # Report
    work_hours: str = "09:00-21:00"

    # Canvas
    viewport_width: int = 1280
    viewport_height: int = 800

    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR

    @property
    def resolved_db_path(self) -> Path:
        if self.db_path is not None:
            return self.db_path
        return Path.home() / ".noteminder" / "noteminder.db"


def get_settings() -> Settings:
    # read env on every call so tests can monkeypatch NOTEMINDER_* vars
    return Settings()
