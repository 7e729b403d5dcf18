"""Domain models for a workday session and its history entry."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Mapping, Optional

from .errors import ValidationError

MILLISECOND = timedelta(milliseconds=1)


class SessionState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


class EntryStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


def to_ms(value: timedelta) -> int:
    """Floor a duration to whole milliseconds, clamping negatives to zero."""
    return max(0, value // MILLISECOND)


def from_ms(value: int) -> timedelta:
    return timedelta(milliseconds=value)


@dataclass(frozen=True, slots=True)
class Session:
    """The live timer state of one owner's workday.

    Instances are immutable; every transition produces a new value with
    ``dataclasses.replace``.
    """

    id: str
    owner_id: str
    date: date
    arrival_time: time
    required_hours: int
    required_minutes: int
    is_active: bool = True
    is_running: bool = False
    is_paused: bool = False
    start_time: Optional[datetime] = None
    current_session_start: Optional[datetime] = None
    pause_start_time: Optional[datetime] = None
    total_worked_ms: int = 0
    total_paused_ms: int = 0

    @property
    def required_duration(self) -> timedelta:
        return timedelta(hours=self.required_hours, minutes=self.required_minutes)

    @property
    def total_worked(self) -> timedelta:
        return from_ms(self.total_worked_ms)

    @property
    def total_paused(self) -> timedelta:
        return from_ms(self.total_paused_ms)

    @property
    def state(self) -> SessionState:
        if not self.is_active:
            return SessionState.IDLE
        if self.is_running:
            return SessionState.RUNNING
        if self.is_paused:
            return SessionState.PAUSED
        return SessionState.IDLE

    def evolve(self, **changes: Any) -> "Session":
        return replace(self, **changes)

    def validate(self) -> "Session":
        """Check the run/pause anchor invariants; return ``self`` when they hold."""
        if self.is_running and self.is_paused:
            raise ValidationError(f"Session {self.id} is both running and paused")
        if self.is_running != (self.current_session_start is not None):
            raise ValidationError(
                f"Session {self.id}: is_running does not match current_session_start"
            )
        if self.is_paused != (self.pause_start_time is not None):
            raise ValidationError(
                f"Session {self.id}: is_paused does not match pause_start_time"
            )
        if self.total_worked_ms < 0 or self.total_paused_ms < 0:
            raise ValidationError(f"Session {self.id} has negative totals")
        if self.required_duration <= timedelta(0):
            raise ValidationError(f"Session {self.id} has no required duration")
        return self

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.owner_id,
            "date": self.date.isoformat(),
            "arrival_time": self.arrival_time.strftime("%H:%M"),
            "required_work_hours": self.required_hours,
            "required_work_minutes": self.required_minutes,
            "is_active": self.is_active,
            "is_running": self.is_running,
            "is_paused": self.is_paused,
            "start_time": _format_instant(self.start_time),
            "current_session_start": _format_instant(self.current_session_start),
            "pause_start_time": _format_instant(self.pause_start_time),
            "total_worked_ms": self.total_worked_ms,
            "total_paused_ms": self.total_paused_ms,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Session":
        try:
            session = cls(
                id=str(record["id"]),
                owner_id=str(record["user_id"]),
                date=_parse_date(record["date"]),
                arrival_time=_parse_time(record["arrival_time"]),
                required_hours=int(record["required_work_hours"]),
                required_minutes=int(record["required_work_minutes"]),
                is_active=bool(record["is_active"]),
                is_running=bool(record["is_running"]),
                is_paused=bool(record["is_paused"]),
                start_time=_parse_instant(record.get("start_time")),
                current_session_start=_parse_instant(record.get("current_session_start")),
                pause_start_time=_parse_instant(record.get("pause_start_time")),
                total_worked_ms=int(record["total_worked_ms"]),
                total_paused_ms=int(record["total_paused_ms"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(f"Malformed session record: {exc}") from exc
        return session.validate()


@dataclass(frozen=True, slots=True)
class Entry:
    """History record mirroring one session's lifecycle."""

    id: str
    owner_id: str
    session_id: str
    date: datetime
    check_in: datetime
    status: EntryStatus = EntryStatus.ACTIVE
    check_out: Optional[datetime] = None
    total_worked_ms: int = 0
    total_paused_ms: int = 0
    name: Optional[str] = None

    @property
    def total_worked(self) -> timedelta:
        return from_ms(self.total_worked_ms)

    @property
    def total_paused(self) -> timedelta:
        return from_ms(self.total_paused_ms)

    @property
    def is_open(self) -> bool:
        return self.status in (EntryStatus.ACTIVE, EntryStatus.PAUSED)

    def evolve(self, **changes: Any) -> "Entry":
        return replace(self, **changes)

    def validate(self) -> "Entry":
        """Check that ``check_out`` is set exactly when the entry is completed."""
        if (self.status is EntryStatus.COMPLETED) != (self.check_out is not None):
            raise ValidationError(
                f"Entry {self.id}: check_out must be set exactly when completed"
            )
        if self.total_worked_ms < 0 or self.total_paused_ms < 0:
            raise ValidationError(f"Entry {self.id} has negative totals")
        return self

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.owner_id,
            "session_id": self.session_id,
            "name": self.name,
            "date": _format_instant(self.date),
            "check_in": _format_instant(self.check_in),
            "check_out": _format_instant(self.check_out),
            "total_worked_ms": self.total_worked_ms,
            "total_paused_ms": self.total_paused_ms,
            "status": self.status.value,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Entry":
        try:
            entry = cls(
                id=str(record["id"]),
                owner_id=str(record["user_id"]),
                session_id=str(record["session_id"]),
                name=record.get("name"),
                date=_parse_instant(record["date"]),
                check_in=_parse_instant(record["check_in"]),
                check_out=_parse_instant(record.get("check_out")),
                total_worked_ms=int(record["total_worked_ms"]),
                total_paused_ms=int(record["total_paused_ms"]),
                status=EntryStatus(record["status"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(f"Malformed entry record: {exc}") from exc
        return entry.validate()


def _format_instant(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_instant(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _parse_time(value: Any) -> time:
    if isinstance(value, time):
        return value
    return time.fromisoformat(str(value))
