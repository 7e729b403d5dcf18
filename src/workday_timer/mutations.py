"""Named session transitions and the exact fields each one touches."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar, Optional

from .models import EntryStatus, Session


@dataclass(frozen=True, slots=True)
class Mutation:
    """A transition already applied in memory, waiting to be mirrored.

    ``session_fields`` is the partial record for the stored session;
    ``entry_fields`` is the change for the session's history entry.
    """

    session: Session
    at: datetime

    name: ClassVar[str] = "mutation"
    SESSION_FIELDS: ClassVar[tuple[str, ...]] = ()
    ENTRY_FIELDS: ClassVar[tuple[str, ...]] = ()
    ENTRY_STATUS: ClassVar[Optional[EntryStatus]] = None

    def session_fields(self) -> dict[str, Any]:
        record = self.session.to_record()
        return {key: record[key] for key in self.SESSION_FIELDS}

    def entry_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {key: getattr(self.session, key) for key in self.ENTRY_FIELDS}
        if self.ENTRY_STATUS is not None:
            fields["status"] = self.ENTRY_STATUS
        return fields


@dataclass(frozen=True, slots=True)
class SessionCreated(Mutation):
    name: ClassVar[str] = "created"

    def session_fields(self) -> dict[str, Any]:
        return self.session.to_record()

    def entry_fields(self) -> dict[str, Any]:
        # The entry is inserted whole by the ledger.
        return {}


@dataclass(frozen=True, slots=True)
class SessionPaused(Mutation):
    name: ClassVar[str] = "paused"
    SESSION_FIELDS: ClassVar[tuple[str, ...]] = (
        "is_running",
        "is_paused",
        "total_worked_ms",
        "current_session_start",
        "pause_start_time",
    )
    ENTRY_FIELDS: ClassVar[tuple[str, ...]] = ("total_worked_ms",)
    ENTRY_STATUS: ClassVar[Optional[EntryStatus]] = EntryStatus.PAUSED


@dataclass(frozen=True, slots=True)
class SessionResumed(Mutation):
    name: ClassVar[str] = "resumed"
    SESSION_FIELDS: ClassVar[tuple[str, ...]] = (
        "is_running",
        "is_paused",
        "total_paused_ms",
        "current_session_start",
        "pause_start_time",
    )
    ENTRY_FIELDS: ClassVar[tuple[str, ...]] = ("total_paused_ms",)
    ENTRY_STATUS: ClassVar[Optional[EntryStatus]] = EntryStatus.ACTIVE


@dataclass(frozen=True, slots=True)
class ManualPauseAdded(Mutation):
    name: ClassVar[str] = "manual_pause_added"
    SESSION_FIELDS: ClassVar[tuple[str, ...]] = ("total_paused_ms",)
    ENTRY_FIELDS: ClassVar[tuple[str, ...]] = ("total_paused_ms",)


@dataclass(frozen=True, slots=True)
class SessionCompleted(Mutation):
    name: ClassVar[str] = "completed"
    SESSION_FIELDS: ClassVar[tuple[str, ...]] = (
        "is_active",
        "is_running",
        "is_paused",
        "total_worked_ms",
        "total_paused_ms",
        "current_session_start",
        "pause_start_time",
    )
    ENTRY_FIELDS: ClassVar[tuple[str, ...]] = ("total_worked_ms", "total_paused_ms")
    ENTRY_STATUS: ClassVar[Optional[EntryStatus]] = EntryStatus.COMPLETED

    def entry_fields(self) -> dict[str, Any]:
        fields = Mutation.entry_fields(self)
        fields["check_out"] = self.at
        return fields
