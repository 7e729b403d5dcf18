"""Lifecycle of the single active workday session."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from .clock import Clock, SystemClock
from .errors import InvalidStateTransition, ValidationError
from .models import Session, SessionState, to_ms
from .mutations import (
    ManualPauseAdded,
    SessionCompleted,
    SessionCreated,
    SessionPaused,
    SessionResumed,
)
from .normalization import (
    MAX_PAUSE_DURATION,
    ClockInput,
    NumberInput,
    parse_clock_time,
    parse_required_duration,
)
from .projector import project, resolve_arrival

logger = logging.getLogger(__name__)


def new_id() -> str:
    return str(uuid.uuid4())


class SessionStateMachine:
    """Owns the active session and applies Idle/Running/Paused transitions.

    Every interval boundary is recorded as an absolute instant taken from the
    clock; elapsed time is only ever folded into the totals as
    ``now - anchor``. Nothing here ticks.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        *,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self._clock = clock or SystemClock()
        self._id_factory = id_factory
        self._session: Optional[Session] = None
        self.last_completed: Optional[Session] = None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state if self._session else SessionState.IDLE

    def rehydrate(self, session: Session) -> None:
        """Adopt a persisted active session, e.g. after a restart."""
        if not session.is_active:
            raise InvalidStateTransition(f"Session {session.id} is no longer active")
        if self._session is not None and self._session.id != session.id:
            raise InvalidStateTransition("Another session is already active")
        self._session = _projectable(session.validate(), self._clock.now())
        logger.debug("Rehydrated session %s in state %s", session.id, session.state.value)

    def create(
        self,
        owner_id: str,
        arrival_time: ClockInput,
        required_hours: NumberInput,
        required_minutes: NumberInput = 0,
    ) -> SessionCreated:
        if self._session is not None:
            raise InvalidStateTransition("A session is already active; complete it first")
        if not owner_id:
            raise ValidationError("owner id is required")
        arrival_of_day = parse_clock_time(arrival_time)
        hours, minutes = parse_required_duration(required_hours, required_minutes)

        now = self._clock.now()
        arrival = resolve_arrival(arrival_of_day, now)
        session = Session(
            id=self._id_factory(),
            owner_id=owner_id,
            date=now.date(),
            arrival_time=arrival_of_day,
            required_hours=hours,
            required_minutes=minutes,
            is_active=True,
            is_running=True,
            is_paused=False,
            start_time=now,
            current_session_start=now,
            total_worked_ms=to_ms(now - arrival),
            total_paused_ms=0,
        )
        self._session = _projectable(session, now)
        logger.info(
            "Created session %s: arrival %s, required %dh%02dm",
            session.id,
            arrival.isoformat(),
            hours,
            minutes,
        )
        return SessionCreated(session=session, at=now)

    def pause(self) -> SessionPaused:
        session = self._require(SessionState.RUNNING, action="pause")
        now = self._clock.now()
        session = self._replace(
            session.evolve(
                is_running=False,
                is_paused=True,
                total_worked_ms=session.total_worked_ms
                + to_ms(now - session.current_session_start),
                current_session_start=None,
                pause_start_time=now,
            )
        )
        logger.info("Paused session %s", session.id)
        return SessionPaused(session=session, at=now)

    def resume(self) -> SessionResumed:
        session = self._require(SessionState.PAUSED, action="resume")
        now = self._clock.now()
        session = self._replace(
            session.evolve(
                is_running=True,
                is_paused=False,
                total_paused_ms=session.total_paused_ms
                + to_ms(now - session.pause_start_time),
                current_session_start=now,
                pause_start_time=None,
            )
        )
        logger.info("Resumed session %s", session.id)
        return SessionResumed(session=session, at=now)

    def add_manual_pause(self, duration: timedelta) -> ManualPauseAdded:
        """Credit break time that was taken without pausing the timer."""
        session = self._require(SessionState.RUNNING, SessionState.PAUSED, action="add pause time")
        if duration <= timedelta(0):
            raise ValidationError("manual pause duration must be positive")
        added_ms = to_ms(duration)
        if added_ms == 0:
            raise ValidationError("manual pause duration must be at least one millisecond")
        if duration > MAX_PAUSE_DURATION:
            raise ValidationError("manual pause duration must not exceed 24 hours")
        now = self._clock.now()
        candidate = session.evolve(total_paused_ms=session.total_paused_ms + added_ms)
        session = self._replace(_projectable(candidate, now))
        logger.info("Added %d ms of manual pause to session %s", added_ms, session.id)
        return ManualPauseAdded(session=session, at=now)

    def complete(self) -> SessionCompleted:
        session = self._require(SessionState.RUNNING, SessionState.PAUSED, action="complete")
        now = self._clock.now()
        worked_ms = session.total_worked_ms
        paused_ms = session.total_paused_ms
        if session.is_running:
            worked_ms += to_ms(now - session.current_session_start)
        if session.is_paused:
            paused_ms += to_ms(now - session.pause_start_time)
        finished = session.evolve(
            is_active=False,
            is_running=False,
            is_paused=False,
            total_worked_ms=worked_ms,
            total_paused_ms=paused_ms,
            current_session_start=None,
            pause_start_time=None,
        ).validate()
        self._session = None
        self.last_completed = finished
        logger.info(
            "Completed session %s: worked %d ms, paused %d ms",
            finished.id,
            worked_ms,
            paused_ms,
        )
        return SessionCompleted(session=finished, at=now)

    def _require(self, *allowed: SessionState, action: str) -> Session:
        current = self.state
        if self._session is None or current not in allowed:
            raise InvalidStateTransition(f"Cannot {action} while {current.value}")
        return self._session

    def _replace(self, session: Session) -> Session:
        self._session = session.validate()
        return self._session


def _projectable(session: Session, now: datetime) -> Session:
    """Return ``session`` if its figures, leave time included, can be computed."""
    try:
        project(session, now)
    except OverflowError as exc:
        raise ValidationError(
            f"Session {session.id} totals put the leave time out of range"
        ) from exc
    return session
