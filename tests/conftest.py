from __future__ import annotations

import sys
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional

import pytest


def pytest_sessionstart(session):
    """Ensure src/ is on sys.path for local test runs."""
    repo_root = Path(__file__).resolve().parents[1]
    src_path = repo_root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


class MemoryByteStore:
    def __init__(self, data: Optional[bytes] = None) -> None:
        self.data = data
        self.fail_writes = False
        self.writes = 0

    def read_bytes(self) -> bytes:
        if self.data is None:
            raise FileNotFoundError("no cache record")
        return self.data

    def write_bytes(self, data: bytes) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.writes += 1
        self.data = data

    def delete(self) -> None:
        self.data = None


class FixedClock:
    def __init__(self, now: datetime, today: Optional[date] = None) -> None:
        self.current = now
        self._today = today

    def now(self) -> datetime:
        return self.current

    def today(self) -> date:
        return self._today or self.current.date()

    def now_ms(self) -> int:
        return int(self.current.timestamp() * 1000)


@pytest.fixture
def memory_store() -> MemoryByteStore:
    return MemoryByteStore()


@pytest.fixture
def fixed_clock() -> FixedClock:
    return FixedClock(datetime(2024, 6, 21, 20, 0, tzinfo=timezone.utc))
