from __future__ import annotations
import time
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

import rappel.clock as clock
from rappel.db import FileBackend
from rappel.repository import Repository

TZ = ZoneInfo("Europe/Paris")

# before the autouse fixture replaces it
SYSTEM_LOCAL_TZ = clock.local_tz


def local_ms(y, m, d, hh=0, mm=0, ss=0) -> int:
    return clock.to_ms(datetime(y, m, d, hh, mm, ss, tzinfo=TZ))


class FakeClock:
    def __init__(self, ms: int):
        self.ms = ms

    def now(self) -> int:
        return self.ms

    def advance(self, ms: int) -> None:
        self.ms += ms


class FakeNotifier:
    def __init__(self, ok: bool = True):
        self.ok = ok
        self.sent = []

    def deliver(self, title: str, body: str) -> bool:
        if not self.ok:
            return False
        self.sent.append((title, body))
        return True


class CountingBackend(FileBackend):
    def __init__(self, path: Path):
        super().__init__(path)
        self.writes = 0

    def write_all(self, data: bytes) -> None:
        super().write_all(data)
        self.writes += 1


@pytest.fixture(autouse=True)
def paris(monkeypatch):
    monkeypatch.setattr(clock, "local_tz", lambda: TZ)
    return TZ


@pytest.fixture()
def system_paris(monkeypatch):
    """No configured zone: the process TZ is Europe/Paris and the system rules apply."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available")
    monkeypatch.setattr(clock, "local_tz", SYSTEM_LOCAL_TZ)
    monkeypatch.setenv("TZ", "Europe/Paris")
    time.tzset()
    if "CET" not in time.tzname:
        monkeypatch.undo()
        time.tzset()
        pytest.skip("system zone database has no Europe/Paris")
    yield
    monkeypatch.undo()
    time.tzset()


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock(local_ms(2026, 2, 18, 9, 15))  # Wed


@pytest.fixture()
def backend(tmp_path: Path) -> CountingBackend:
    return CountingBackend(tmp_path / "tasks.json")


@pytest.fixture()
def repo(backend, fake_clock) -> Repository:
    return Repository(backend, clock=fake_clock)


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture(scope="session")
def qapp():
    from PySide6.QtCore import QCoreApplication
    return QCoreApplication.instance() or QCoreApplication([])
