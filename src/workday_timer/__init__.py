"""Workday timer: track worked and paused time against a required duration."""

from .clock import Clock, SystemClock
from .errors import (
    InvalidStateTransition,
    NotFoundError,
    PersistenceError,
    ValidationError,
    WorkdayTimerError,
)
from .models import Entry, EntryStatus, Session, SessionState
from .projector import SessionStats, project
from .state_machine import SessionStateMachine
from .tracker import Notification, WorkdayTracker

__all__ = [
    "Clock",
    "Entry",
    "EntryStatus",
    "InvalidStateTransition",
    "NotFoundError",
    "Notification",
    "PersistenceError",
    "Session",
    "SessionState",
    "SessionStateMachine",
    "SessionStats",
    "SystemClock",
    "ValidationError",
    "WorkdayTimerError",
    "WorkdayTracker",
    "project",
]
