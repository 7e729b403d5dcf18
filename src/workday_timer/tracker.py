"""Facade used by presentation code: one owner's timer, history and notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

from .clock import Clock, SystemClock
from .config import TrackerSettings
from .ledger import EntryLedger
from .models import Entry, Session, SessionState
from .mutations import Mutation, SessionCreated
from .normalization import ClockInput, NumberInput, break_duration, parse_duration
from .persistence import PersistenceAdapter, PersistenceIntent, PersistenceQueue
from .projector import SessionStats, project
from .reporting import DailySummary, daily_summaries
from .state_machine import SessionStateMachine

logger = logging.getLogger(__name__)

NOTIFICATION_LIMIT = 20


@dataclass(frozen=True, slots=True)
class Notification:
    level: str
    title: str
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now().astimezone())


class WorkdayTracker:
    """Ties the state machine, the entry ledger and the store together.

    Each timer operation runs synchronously against in-memory state, mirrors
    the change into the session's entry in the same call and queues the store
    writes. Must be used from inside a running event loop.
    """

    def __init__(
        self,
        owner_id: str,
        adapter: PersistenceAdapter,
        *,
        clock: Optional[Clock] = None,
        settings: Optional[TrackerSettings] = None,
        on_notify: Optional[Callable[[Notification], None]] = None,
    ) -> None:
        self.owner_id = owner_id
        self.clock = clock or SystemClock()
        self.settings = settings or TrackerSettings()
        self.notifications: list[Notification] = []
        self._on_notify = on_notify
        self._adapter = adapter
        self._queue = PersistenceQueue(on_error=self._persistence_failed)
        self._machine = SessionStateMachine(self.clock)
        self._ledger = EntryLedger(owner_id, adapter, self._queue)
        self._entry_id: Optional[str] = None

    @property
    def session(self) -> Optional[Session]:
        return self._machine.session

    @property
    def state(self) -> SessionState:
        return self._machine.state

    @property
    def current_entry(self) -> Optional[Entry]:
        return self._ledger.get(self._entry_id) if self._entry_id else None

    async def load(self) -> Optional[SessionStats]:
        """Rehydrate today's active session and the owner's history from the store."""
        today = self.clock.now().date()
        session = await self._adapter.load_active_session(self.owner_id, today)
        await self._ledger.load()
        if session is not None:
            self._machine.rehydrate(session)
            entry = self._ledger.find_open_entry(session.id)
            self._entry_id = entry.id if entry else None
            if entry is None:
                logger.warning("Active session %s has no open entry", session.id)
        logger.info(
            "Loaded tracker for %s: state=%s, %d entries",
            self.owner_id,
            self.state.value,
            len(self._ledger.list()),
        )
        return self.stats()

    def stats(self) -> Optional[SessionStats]:
        session = self._machine.session
        return project(session, self.clock.now()) if session else None

    def setup(
        self,
        arrival_time: ClockInput,
        required_hours: NumberInput = None,
        required_minutes: NumberInput = None,
    ) -> Optional[SessionStats]:
        if required_hours is None:
            required_hours = self.settings.default_required_hours
            if required_minutes is None:
                required_minutes = self.settings.default_required_minutes
        mutation = self._machine.create(
            self.owner_id, arrival_time, required_hours, required_minutes or 0
        )
        return self._apply(mutation)

    def pause(self) -> Optional[SessionStats]:
        return self._apply(self._machine.pause())

    def resume(self) -> Optional[SessionStats]:
        return self._apply(self._machine.resume())

    def add_manual_pause(
        self,
        duration: Union[timedelta, None] = None,
        *,
        hours: NumberInput = 0,
        minutes: NumberInput = 0,
    ) -> Optional[SessionStats]:
        if duration is None:
            duration = parse_duration(hours, minutes)
        return self._apply(self._machine.add_manual_pause(duration))

    def add_break(self, start: ClockInput, end: ClockInput) -> Optional[SessionStats]:
        """Credit a forgotten break given as a clock range, e.g. 12:00 to 12:30."""
        return self.add_manual_pause(break_duration(start, end))

    def complete(self) -> Session:
        mutation = self._machine.complete()
        self._apply(mutation)
        self._entry_id = None
        return mutation.session

    def reset(self) -> Optional[Session]:
        """Finish the active session, if any, so a fresh one can be set up."""
        if self._machine.session is None:
            return None
        return self.complete()

    def entries(self) -> list[Entry]:
        return self._ledger.list(self.owner_id)

    def rename_entry(self, entry_id: str, name: Optional[str]) -> Entry:
        return self._ledger.rename(entry_id, name)

    def delete_entry(self, entry_id: str) -> None:
        self._ledger.delete(entry_id)
        if entry_id == self._entry_id:
            self._entry_id = None

    def summaries(self) -> list[DailySummary]:
        return daily_summaries(
            self.entries(), today=self.clock.now().date(), limit=self.settings.summary_days
        )

    async def flush(self) -> None:
        await self._queue.drain()

    async def close(self) -> None:
        await self._queue.close()

    def _apply(self, mutation: Mutation) -> Optional[SessionStats]:
        session = mutation.session
        if isinstance(mutation, SessionCreated):
            record = mutation.session_fields()
            self._queue.submit(
                f"session {session.id} creation",
                lambda: self._adapter.create_session(record),
            )
            entry = self._ledger.create_for_session(session)
            self._entry_id = entry.id
        else:
            fields = mutation.session_fields()
            self._queue.submit(
                f"session {session.id} {mutation.name}",
                lambda: self._adapter.update_session(session.id, fields, owner_id=self.owner_id),
            )
            self._mirror(mutation)
        return self.stats()

    def _mirror(self, mutation: Mutation) -> None:
        entry_fields = mutation.entry_fields()
        if not entry_fields:
            return
        if self._entry_id is None:
            logger.warning(
                "Session %s changed (%s) without an open entry to mirror into",
                mutation.session.id,
                mutation.name,
            )
            return
        self._ledger.update(self._entry_id, entry_fields)

    def _persistence_failed(self, intent: PersistenceIntent, exc: Exception) -> None:
        self._notify(
            "error",
            "Could not save changes",
            f"Saving {intent.description} failed: {exc}",
        )

    def _notify(self, level: str, title: str, message: str) -> None:
        notification = Notification(level=level, title=title, message=message)
        self.notifications.append(notification)
        del self.notifications[:-NOTIFICATION_LIMIT]
        if self._on_notify is not None:
            self._on_notify(notification)
