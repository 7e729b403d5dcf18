"""Shared fixtures: a controllable clock and throwaway SQLite stores."""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from pathlib import Path
from typing import Any, Mapping

import pytest

from workday_timer.errors import PersistenceError
from workday_timer.persistence import SqlitePersistenceAdapter

TZ = timezone(timedelta(hours=2))
DAY = datetime(2024, 3, 11, tzinfo=TZ)


class FakeClock:
    """Clock whose current instant only moves when a test moves it."""

    def __init__(self, current: datetime) -> None:
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current

    def set_time(self, hour: int, minute: int = 0) -> datetime:
        self.current = datetime.combine(self.current.date(), time(hour, minute), tzinfo=TZ)
        return self.current


def at(hour: int, minute: int = 0, *, day: int = 0) -> datetime:
    return DAY + timedelta(days=day, hours=hour, minutes=minute)


class FlakyAdapter(SqlitePersistenceAdapter):
    """SQLite adapter that can be told to reject session/entry updates."""

    def __init__(self, db_path: Path) -> None:
        super().__init__(db_path)
        self.fail_updates = False

    async def update_session(
        self, session_id: str, fields: Mapping[str, Any], *, owner_id: str
    ) -> None:
        if self.fail_updates:
            raise PersistenceError("store unreachable")
        await super().update_session(session_id, fields, owner_id=owner_id)

    async def update_entry(
        self, entry_id: str, fields: Mapping[str, Any], *, owner_id: str
    ) -> None:
        if self.fail_updates:
            raise PersistenceError("store unreachable")
        await super().update_entry(entry_id, fields, owner_id=owner_id)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(at(8))


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "workday.sqlite3"


@pytest.fixture
def adapter(db_path: Path) -> SqlitePersistenceAdapter:
    return SqlitePersistenceAdapter(db_path)


@pytest.fixture
def flaky_adapter(db_path: Path) -> FlakyAdapter:
    return FlakyAdapter(db_path)
