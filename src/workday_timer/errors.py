"""Exceptions raised by the session engine and its persistence layer."""

from __future__ import annotations


class WorkdayTimerError(Exception):
    """Base class for every error reported by the timer."""


class ValidationError(WorkdayTimerError, ValueError):
    """Input was missing or out of range; nothing was changed."""


class InvalidStateTransition(WorkdayTimerError):
    """The operation is not allowed from the session's current state."""


class PersistenceError(WorkdayTimerError):
    """The store could not be reached or rejected a write."""


class NotFoundError(WorkdayTimerError, LookupError):
    """A session or entry id did not match any record."""
