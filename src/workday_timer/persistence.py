"""Durable storage contract and the ordered, fire-and-forget writer in front of it."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, TypeVar

from . import db
from .errors import NotFoundError, PersistenceError
from .models import Entry, Session

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PersistenceAdapter(Protocol):
    """Owner-scoped store for sessions and entries. Every call is awaitable."""

    async def load_active_session(self, owner_id: str, day: date) -> Optional[Session]: ...

    async def create_session(self, record: Mapping[str, Any]) -> None: ...

    async def update_session(
        self, session_id: str, fields: Mapping[str, Any], *, owner_id: str
    ) -> None: ...

    async def load_entries(self, owner_id: str) -> list[Entry]: ...

    async def create_entry(self, record: Mapping[str, Any]) -> None: ...

    async def update_entry(
        self, entry_id: str, fields: Mapping[str, Any], *, owner_id: str
    ) -> None: ...

    async def delete_entry(self, entry_id: str, *, owner_id: str) -> None: ...


class SqlitePersistenceAdapter:
    """Runs the blocking ``sqlite3`` layer on a worker thread, one connection per call."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    async def load_active_session(self, owner_id: str, day: date) -> Optional[Session]:
        record = await self._run(db.fetch_active_session, owner_id, day)
        return Session.from_record(record) if record is not None else None

    async def create_session(self, record: Mapping[str, Any]) -> None:
        await self._run(db.insert_session, dict(record))

    async def update_session(
        self, session_id: str, fields: Mapping[str, Any], *, owner_id: str
    ) -> None:
        await self._run(db.update_session, session_id, owner_id, dict(fields))

    async def load_entries(self, owner_id: str) -> list[Entry]:
        records = await self._run(db.fetch_entries, owner_id)
        return [Entry.from_record(record) for record in records]

    async def create_entry(self, record: Mapping[str, Any]) -> None:
        await self._run(db.insert_entry, dict(record))

    async def update_entry(
        self, entry_id: str, fields: Mapping[str, Any], *, owner_id: str
    ) -> None:
        await self._run(db.update_entry, entry_id, owner_id, dict(fields))

    async def delete_entry(self, entry_id: str, *, owner_id: str) -> None:
        await self._run(db.delete_entry, entry_id, owner_id)

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        return await asyncio.to_thread(self._call, func, *args)

    def _call(self, func: Callable[..., T], *args: Any) -> T:
        try:
            with db.database_connection(self.db_path) as conn:
                return func(conn, *args)
        except LookupError as exc:
            raise NotFoundError(str(exc)) from exc
        except (sqlite3.Error, ValueError) as exc:
            raise PersistenceError(f"{func.__name__} failed on {self.db_path}: {exc}") from exc


@dataclass(frozen=True, slots=True)
class PersistenceIntent:
    description: str
    action: Callable[[], Awaitable[None]]


class PersistenceQueue:
    """Apply persistence intents one at a time, in the order they were submitted.

    ``submit`` never waits; a single background task on the running event loop
    performs the writes. A failed write is logged and reported through
    ``on_error`` and the queue moves on to the next intent.
    """

    def __init__(
        self, on_error: Optional[Callable[[PersistenceIntent, Exception], None]] = None
    ) -> None:
        self._on_error = on_error
        self._queue: Optional[asyncio.Queue[PersistenceIntent]] = None
        self._worker: Optional[asyncio.Task[None]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def submit(self, description: str, action: Callable[[], Awaitable[None]]) -> None:
        loop = asyncio.get_running_loop()
        if self._loop is not loop or self._worker is None or self._worker.done():
            self._loop = loop
            self._queue = asyncio.Queue()
            self._worker = loop.create_task(self._run())
        assert self._queue is not None
        self._queue.put_nowait(PersistenceIntent(description, action))
        logger.debug("Queued %s", description)

    async def drain(self) -> None:
        """Wait until every intent submitted so far has been attempted."""
        if self._queue is not None and self._loop is asyncio.get_running_loop():
            await self._queue.join()

    async def close(self) -> None:
        await self.drain()
        worker, self._worker = self._worker, None
        if worker is not None and not worker.done():
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass
        self._queue = None
        self._loop = None

    async def _run(self) -> None:
        queue = self._queue
        assert queue is not None
        while True:
            intent = await queue.get()
            try:
                await intent.action()
                logger.debug("Persisted %s", intent.description)
            except (PersistenceError, NotFoundError) as exc:
                logger.error("Failed to persist %s: %s", intent.description, exc)
                self._report(intent, exc)
            except Exception as exc:
                logger.exception("Unexpected error while persisting %s", intent.description)
                self._report(intent, PersistenceError(str(exc)))
            finally:
                queue.task_done()

    def _report(self, intent: PersistenceIntent, exc: Exception) -> None:
        if self._on_error is not None:
            self._on_error(intent, exc)
