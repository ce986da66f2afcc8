import datetime as dt

import pytest

from noteminder.db import MemoryBlobStore
from noteminder.services import NoteStore

UTC = dt.timezone.utc


def utc_ms(*args) -> int:
    return int(dt.datetime(*args, tzinfo=UTC).timestamp() * 1000)


def local_ms(*args) -> int:
    return int(dt.datetime(*args).timestamp() * 1000)


class FakeClock:
    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    # Monday 2026-10-19 12:00 local
    return FakeClock(local_ms(2026, 10, 19, 12, 0))


@pytest.fixture
def blobs() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def store(blobs, clock) -> NoteStore:
    return NoteStore(blobs, clock=clock)
