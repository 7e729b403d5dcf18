"""Derived, display-ready figures for a session at a given instant.

Everything here is a pure function of the session value and ``now``. The
figures are recomputed from the persisted anchors on every call, so the
refresh cadence of whoever calls :func:`project` has no effect on the
numbers it returns.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta

from .models import Session

ZERO = timedelta(0)


@dataclass(frozen=True, slots=True)
class SessionStats:
    worked: timedelta
    paused: timedelta
    remaining: timedelta
    required: timedelta
    arrival: datetime
    leave_time: datetime
    original_leave_time: datetime
    progress: float
    is_complete: bool


def resolve_arrival(arrival_time: time, reference: datetime) -> datetime:
    """Place a time of day on the calendar relative to ``reference``.

    The arrival lands on the reference's date; if that is still in the
    future it belongs to a shift that started the day before.
    """
    arrival = datetime.combine(reference.date(), arrival_time, tzinfo=reference.tzinfo)
    if arrival > reference:
        arrival -= timedelta(days=1)
    return arrival


def session_arrival(session: Session, now: datetime) -> datetime:
    return resolve_arrival(session.arrival_time, session.start_time or now)


def live_worked(session: Session, now: datetime) -> timedelta:
    worked = session.total_worked
    if session.is_running and session.current_session_start is not None:
        worked += max(ZERO, now - session.current_session_start)
    return worked


def live_paused(session: Session, now: datetime) -> timedelta:
    paused = session.total_paused
    if session.is_paused and session.pause_start_time is not None:
        paused += max(ZERO, now - session.pause_start_time)
    return paused


def project(session: Session, now: datetime) -> SessionStats:
    required = session.required_duration
    arrival = session_arrival(session, now)
    worked = live_worked(session, now)
    paused = live_paused(session, now)
    return SessionStats(
        worked=worked,
        paused=paused,
        remaining=max(ZERO, required - worked),
        required=required,
        arrival=arrival,
        leave_time=arrival + required + paused,
        original_leave_time=arrival + required,
        progress=min(100.0, 100.0 * (worked / required)),
        is_complete=worked >= required,
    )
