"""History entries mirroring each session, kept newest first."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

from .errors import InvalidStateTransition, NotFoundError, ValidationError
from .models import Entry, EntryStatus, Session
from .persistence import PersistenceAdapter, PersistenceQueue
from .projector import session_arrival
from .state_machine import new_id

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "date",
        "check_in",
        "check_out",
        "total_worked_ms",
        "total_paused_ms",
        "status",
    }
)


class EntryLedger:
    """In-memory view of one owner's entries, mirrored to the store in the background.

    Changes take effect here immediately; the matching store write is queued
    on the shared :class:`PersistenceQueue`.
    """

    def __init__(
        self,
        owner_id: str,
        adapter: PersistenceAdapter,
        queue: PersistenceQueue,
        *,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self.owner_id = owner_id
        self._adapter = adapter
        self._queue = queue
        self._id_factory = id_factory
        self._entries: list[Entry] = []

    async def load(self) -> list[Entry]:
        self._entries = list(await self._adapter.load_entries(self.owner_id))
        logger.debug("Loaded %d entries for %s", len(self._entries), self.owner_id)
        return self.list()

    def list(self, owner_id: Optional[str] = None) -> list[Entry]:
        owner = owner_id or self.owner_id
        return [entry for entry in self._entries if entry.owner_id == owner]

    def get(self, entry_id: str) -> Entry:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        raise NotFoundError(f"No entry found for id={entry_id}")

    def find_open_entry(self, session_id: str) -> Optional[Entry]:
        for entry in self._entries:
            if entry.session_id == session_id and entry.is_open:
                return entry
        return None

    def create_for_session(self, session: Session) -> Entry:
        if self.find_open_entry(session.id) is not None:
            raise InvalidStateTransition(f"Session {session.id} already has an open entry")
        arrival = session_arrival(session, session.start_time)
        entry = Entry(
            id=self._id_factory(),
            owner_id=session.owner_id,
            session_id=session.id,
            date=arrival,
            check_in=arrival,
            status=EntryStatus.ACTIVE,
            total_worked_ms=session.total_worked_ms,
            total_paused_ms=session.total_paused_ms,
        )
        self._entries.insert(0, entry)
        record = entry.to_record()
        self._queue.submit(
            f"entry {entry.id} creation",
            lambda: self._adapter.create_entry(record),
        )
        logger.info("Opened entry %s for session %s", entry.id, session.id)
        return entry

    def update(self, entry_id: str, fields: Mapping[str, Any]) -> Entry:
        """Apply a partial change; replaying the same change is a no-op."""
        current = self.get(entry_id)
        changes = self._coerce(fields)
        if "status" in changes and changes["status"] is not EntryStatus.COMPLETED:
            changes["check_out"] = None
        updated = current.evolve(**changes)
        if updated == current:
            return current
        if current.status is EntryStatus.COMPLETED and set(changes) - {"name"}:
            raise InvalidStateTransition(f"Entry {entry_id} is completed and cannot change")
        updated.validate()

        self._replace(updated)
        record = updated.to_record()
        persisted = {key: record[key] for key in changes}
        self._queue.submit(
            f"entry {entry_id} update ({', '.join(sorted(persisted))})",
            lambda: self._adapter.update_entry(entry_id, persisted, owner_id=self.owner_id),
        )
        logger.debug("Updated entry %s: %s", entry_id, sorted(persisted))
        return updated

    def rename(self, entry_id: str, name: Optional[str]) -> Entry:
        cleaned = name.strip() if name else ""
        return self.update(entry_id, {"name": cleaned or None})

    def delete(self, entry_id: str) -> None:
        entry = self.get(entry_id)
        self._entries.remove(entry)
        self._queue.submit(
            f"entry {entry_id} deletion",
            lambda: self._adapter.delete_entry(entry_id, owner_id=self.owner_id),
        )
        logger.info("Deleted entry %s", entry_id)

    def _replace(self, updated: Entry) -> None:
        self._entries = [updated if entry.id == updated.id else entry for entry in self._entries]

    @staticmethod
    def _coerce(fields: Mapping[str, Any]) -> dict[str, Any]:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown entry fields: {', '.join(sorted(unknown))}")
        changes = dict(fields)
        if "status" in changes:
            try:
                changes["status"] = EntryStatus(changes["status"])
            except ValueError as exc:
                raise ValidationError(f"Invalid entry status {changes['status']!r}") from exc
        for key in ("total_worked_ms", "total_paused_ms"):
            if key in changes and (not isinstance(changes[key], int) or changes[key] < 0):
                raise ValidationError(f"{key} must be a non-negative integer")
        return changes
