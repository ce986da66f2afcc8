from __future__ import annotations
from contextlib import contextmanager
from typing import Optional, Protocol

from loguru import logger
from sqlmodel import SQLModel, Session, create_engine

from .config import get_settings
from .models import Blob

_ENGINE = None
_ENGINE_URL = None  # track current engine's URL so we can switch when env changes


def _compute_url() -> str:
    db_path = get_settings().resolved_db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{db_path}"


def get_engine():
    global _ENGINE, _ENGINE_URL
    url = _compute_url()
    if _ENGINE is None or _ENGINE_URL != url:
        # swap engine if URL changed (common in tests)
        if _ENGINE is not None:
            _ENGINE.dispose()
        _ENGINE = create_engine(
            url, echo=False, connect_args={"check_same_thread": False}
        )
        _ENGINE_URL = url
    return _ENGINE


def reset_engine():
    """For tests: drop the cached engine so a new NOTEMINDER_DB_PATH is picked up."""
    global _ENGINE, _ENGINE_URL
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None
    _ENGINE_URL = None


def init_db():
    engine = get_engine()
    SQLModel.metadata.create_all(engine)


def get_session():
    # keep objects alive after commit so returned models retain values
    return Session(get_engine(), expire_on_commit=False)


@contextmanager
def session_scope():
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


class BlobStore(Protocol):
    def load(self, key: str) -> Optional[str]: ...

    def save(self, key: str, blob: str) -> None: ...


class SqlBlobStore:
    """Key/value JSON blobs kept in the SQLite `blob` table."""

    def __init__(self) -> None:
        init_db()

    def load(self, key: str) -> Optional[str]:
        with session_scope() as s:
            row = s.get(Blob, key)
            return row.value if row else None

    def save(self, key: str, blob: str) -> None:
        with session_scope() as s:
            row = s.get(Blob, key)
            if row is None:
                row = Blob(key=key, value=blob)
            else:
                row.value = blob
            s.add(row)
        logger.debug(f"Saved blob {key} ({len(blob)} bytes)")


class MemoryBlobStore:
    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self.blobs: dict[str, str] = dict(initial or {})

    def load(self, key: str) -> Optional[str]:
        return self.blobs.get(key)

    def save(self, key: str, blob: str) -> None:
        self.blobs[key] = blob
