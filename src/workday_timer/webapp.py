"""FastAPI application exposing the workday timer as a JSON API."""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterator, Optional

from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from .clock import Clock, SystemClock
from .config import DEFAULT_OWNER, TrackerSettings
from .errors import (
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from .models import Entry, Session, to_ms
from .paths import get_db_path
from .persistence import PersistenceAdapter, SqlitePersistenceAdapter
from .projector import SessionStats
from .reporting import DailySummary, total_worked_on
from .tracker import Notification, WorkdayTracker

logger = logging.getLogger(__name__)


class TrackerRegistry:
    """Keep loaded trackers for the most recently seen owners.

    When more than ``max_owners`` are loaded the least recently used tracker
    is closed, which drains its pending writes, and dropped; it is reloaded
    from the store on the next request for that owner.
    """

    def __init__(
        self,
        adapter: PersistenceAdapter,
        clock: Clock,
        settings: TrackerSettings,
        *,
        max_owners: int = 64,
    ) -> None:
        self._adapter = adapter
        self._clock = clock
        self._settings = settings
        self.max_owners = max_owners
        self._trackers: OrderedDict[str, WorkdayTracker] = OrderedDict()
        self._lock = asyncio.Lock()

    async def get(self, owner_id: str) -> WorkdayTracker:
        async with self._lock:
            tracker = self._trackers.get(owner_id)
            if tracker is None:
                tracker = WorkdayTracker(
                    owner_id,
                    self._adapter,
                    clock=self._clock,
                    settings=self._settings,
                )
                await tracker.load()
                self._trackers[owner_id] = tracker
            self._trackers.move_to_end(owner_id)
            while len(self._trackers) > self.max_owners:
                evicted_owner, evicted = self._trackers.popitem(last=False)
                await evicted.close()
                logger.debug("Unloaded tracker for %s", evicted_owner)
            return tracker

    def __len__(self) -> int:
        return len(self._trackers)

    async def close(self) -> None:
        async with self._lock:
            for tracker in self._trackers.values():
                await tracker.close()
            self._trackers.clear()


class SessionSetup(BaseModel):
    arrival_time: str
    required_hours: Optional[int] = None
    required_minutes: Optional[int] = None

    model_config = ConfigDict(extra="forbid")


class ManualPause(BaseModel):
    hours: int = 0
    minutes: int = 0

    model_config = ConfigDict(extra="forbid")


class BreakRange(BaseModel):
    start: str
    end: str

    model_config = ConfigDict(extra="forbid")


class EntryRename(BaseModel):
    name: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    adapter: Optional[PersistenceAdapter] = None,
    clock: Optional[Clock] = None,
    max_owners: int = 64,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = Path(db_path or get_db_path())
    resolved_settings = settings or TrackerSettings()
    registry = TrackerRegistry(
        adapter or SqlitePersistenceAdapter(resolved_db_path),
        clock or SystemClock(),
        resolved_settings,
        max_owners=max_owners,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        logger.info("Serving workday timer from %s", resolved_db_path)
        yield
        await registry.close()

    app = FastAPI(title="Workday Timer", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.registry = registry

    async def tracker_for(request: Request, owner_id: Optional[str]) -> WorkdayTracker:
        return await request.app.state.registry.get(owner_id or DEFAULT_OWNER)

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        return {
            "database_path": str(request.app.state.db_path),
            "refresh_seconds": resolved_settings.refresh_interval.total_seconds(),
            "default_required_hours": resolved_settings.default_required_hours,
            "default_required_minutes": resolved_settings.default_required_minutes,
        }

    @app.get("/api/session")
    async def get_session(
        request: Request, owner_id: Optional[str] = Header(default=None, alias="X-Owner-Id")
    ) -> Dict[str, Any]:
        tracker = await tracker_for(request, owner_id)
        return _session_payload(tracker)

    @app.post("/api/session")
    async def setup_session(
        payload: SessionSetup,
        request: Request,
        owner_id: Optional[str] = Header(default=None, alias="X-Owner-Id"),
    ) -> Dict[str, Any]:
        tracker = await tracker_for(request, owner_id)
        with _translate_errors():
            tracker.setup(payload.arrival_time, payload.required_hours, payload.required_minutes)
        return _session_payload(tracker)

    @app.post("/api/session/pause")
    async def pause_session(
        request: Request, owner_id: Optional[str] = Header(default=None, alias="X-Owner-Id")
    ) -> Dict[str, Any]:
        tracker = await tracker_for(request, owner_id)
        with _translate_errors():
            tracker.pause()
        return _session_payload(tracker)

    @app.post("/api/session/resume")
    async def resume_session(
        request: Request, owner_id: Optional[str] = Header(default=None, alias="X-Owner-Id")
    ) -> Dict[str, Any]:
        tracker = await tracker_for(request, owner_id)
        with _translate_errors():
            tracker.resume()
        return _session_payload(tracker)

    @app.post("/api/session/manual-pause")
    async def add_manual_pause(
        payload: ManualPause,
        request: Request,
        owner_id: Optional[str] = Header(default=None, alias="X-Owner-Id"),
    ) -> Dict[str, Any]:
        tracker = await tracker_for(request, owner_id)
        with _translate_errors():
            tracker.add_manual_pause(hours=payload.hours, minutes=payload.minutes)
        return _session_payload(tracker)

    @app.post("/api/session/break")
    async def add_break(
        payload: BreakRange,
        request: Request,
        owner_id: Optional[str] = Header(default=None, alias="X-Owner-Id"),
    ) -> Dict[str, Any]:
        tracker = await tracker_for(request, owner_id)
        with _translate_errors():
            tracker.add_break(payload.start, payload.end)
        return _session_payload(tracker)

    @app.post("/api/session/complete")
    async def complete_session(
        request: Request, owner_id: Optional[str] = Header(default=None, alias="X-Owner-Id")
    ) -> Dict[str, Any]:
        tracker = await tracker_for(request, owner_id)
        with _translate_errors():
            finished = tracker.complete()
        return {"completed": _session_to_payload(finished), **_session_payload(tracker)}

    @app.post("/api/session/reset")
    async def reset_session(
        request: Request, owner_id: Optional[str] = Header(default=None, alias="X-Owner-Id")
    ) -> Dict[str, Any]:
        tracker = await tracker_for(request, owner_id)
        finished = tracker.reset()
        return {
            "completed": _session_to_payload(finished) if finished else None,
            **_session_payload(tracker),
        }

    @app.get("/api/entries")
    async def list_entries(
        request: Request,
        limit: Optional[int] = Query(default=None, ge=1),
        owner_id: Optional[str] = Header(default=None, alias="X-Owner-Id"),
    ) -> Dict[str, Any]:
        tracker = await tracker_for(request, owner_id)
        entries = tracker.entries()
        today = tracker.clock.now().date()
        return {
            "entries": [_entry_to_payload(entry) for entry in entries[:limit]],
            "total": len(entries),
            "today_worked_ms": to_ms(total_worked_on(entries, today)),
        }

    @app.patch("/api/entries/{entry_id}")
    async def rename_entry(
        entry_id: str,
        payload: EntryRename,
        request: Request,
        owner_id: Optional[str] = Header(default=None, alias="X-Owner-Id"),
    ) -> Dict[str, Any]:
        tracker = await tracker_for(request, owner_id)
        with _translate_errors():
            entry = tracker.rename_entry(entry_id, payload.name)
        return _entry_to_payload(entry)

    @app.delete("/api/entries/{entry_id}")
    async def delete_entry(
        entry_id: str,
        request: Request,
        owner_id: Optional[str] = Header(default=None, alias="X-Owner-Id"),
    ) -> Dict[str, Any]:
        tracker = await tracker_for(request, owner_id)
        with _translate_errors():
            tracker.delete_entry(entry_id)
        return {"deleted": entry_id}

    @app.get("/api/summary")
    async def summary(
        request: Request, owner_id: Optional[str] = Header(default=None, alias="X-Owner-Id")
    ) -> Dict[str, Any]:
        tracker = await tracker_for(request, owner_id)
        return {"days": [_summary_to_payload(item) for item in tracker.summaries()]}

    return app


@contextmanager
def _translate_errors() -> Iterator[None]:
    """Map timer errors onto HTTP status codes."""
    try:
        yield
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidStateTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


def _session_payload(tracker: WorkdayTracker) -> Dict[str, Any]:
    session = tracker.session
    stats = tracker.stats()
    entry = tracker.current_entry
    return {
        "state": tracker.state.value,
        "session": _session_to_payload(session) if session else None,
        "stats": _stats_to_payload(stats) if stats else None,
        "entry": _entry_to_payload(entry) if entry else None,
        "notifications": [_notification_to_payload(item) for item in tracker.notifications[-5:]],
    }


def _session_to_payload(session: Session) -> Dict[str, Any]:
    return session.to_record()


def _entry_to_payload(entry: Entry) -> Dict[str, Any]:
    return entry.to_record()


def _stats_to_payload(stats: SessionStats) -> Dict[str, Any]:
    return {
        "worked_ms": to_ms(stats.worked),
        "paused_ms": to_ms(stats.paused),
        "remaining_ms": to_ms(stats.remaining),
        "required_ms": to_ms(stats.required),
        "arrival": stats.arrival.isoformat(),
        "leave_time": stats.leave_time.isoformat(),
        "original_leave_time": stats.original_leave_time.isoformat(),
        "progress": round(stats.progress, 2),
        "is_complete": stats.is_complete,
    }


def _summary_to_payload(summary: DailySummary) -> Dict[str, Any]:
    return {
        "date": summary.day.isoformat(),
        "label": summary.label,
        "worked_ms": to_ms(summary.worked),
        "paused_ms": to_ms(summary.paused),
        "sessions": summary.sessions,
    }


def _notification_to_payload(notification: Notification) -> Dict[str, Any]:
    return {
        "level": notification.level,
        "title": notification.title,
        "message": notification.message,
        "created_at": notification.created_at.isoformat(),
    }
