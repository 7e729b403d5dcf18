"""SQLite database layer for work sessions and history entries."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional


SESSION_COLUMNS = (
    "id",
    "user_id",
    "date",
    "arrival_time",
    "required_work_hours",
    "required_work_minutes",
    "is_active",
    "is_running",
    "is_paused",
    "start_time",
    "current_session_start",
    "pause_start_time",
    "total_worked_ms",
    "total_paused_ms",
)

ENTRY_COLUMNS = (
    "id",
    "user_id",
    "session_id",
    "name",
    "date",
    "check_in",
    "check_out",
    "total_worked_ms",
    "total_paused_ms",
    "status",
)

_BOOLEAN_COLUMNS = frozenset({"is_active", "is_running", "is_paused"})
_IMMUTABLE_COLUMNS = frozenset({"id", "user_id"})


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    enable_foreign_keys(conn)
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


def enable_foreign_keys(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA foreign_keys = ON;")


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS work_sessions (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            date TEXT NOT NULL,
            arrival_time TEXT NOT NULL,
            required_work_hours INTEGER NOT NULL DEFAULT 8,
            required_work_minutes INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 0,
            is_running INTEGER NOT NULL DEFAULT 0,
            is_paused INTEGER NOT NULL DEFAULT 0,
            start_time TEXT,
            current_session_start TEXT,
            pause_start_time TEXT,
            total_worked_ms INTEGER NOT NULL DEFAULT 0 CHECK (total_worked_ms >= 0),
            total_paused_ms INTEGER NOT NULL DEFAULT 0 CHECK (total_paused_ms >= 0),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS work_entries (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            session_id TEXT NOT NULL
                REFERENCES work_sessions(id) ON DELETE CASCADE,
            name TEXT,
            date TEXT NOT NULL,
            check_in TEXT NOT NULL,
            check_out TEXT,
            total_worked_ms INTEGER NOT NULL DEFAULT 0 CHECK (total_worked_ms >= 0),
            total_paused_ms INTEGER NOT NULL DEFAULT 0 CHECK (total_paused_ms >= 0),
            status TEXT NOT NULL CHECK (status IN ('active', 'paused', 'completed')),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_work_sessions_user_date
            ON work_sessions(user_id, date, is_active);
        CREATE INDEX IF NOT EXISTS idx_work_entries_user_id
            ON work_entries(user_id);
        CREATE INDEX IF NOT EXISTS idx_work_entries_session_id
            ON work_entries(session_id);
        """
    )


def insert_session(conn: sqlite3.Connection, record: Mapping[str, Any]) -> None:
    _insert(conn, "work_sessions", SESSION_COLUMNS, record)


def insert_entry(conn: sqlite3.Connection, record: Mapping[str, Any]) -> None:
    _insert(conn, "work_entries", ENTRY_COLUMNS, record)


def fetch_active_session(
    conn: sqlite3.Connection, user_id: str, day: date
) -> Optional[dict[str, Any]]:
    """Return the newest active session for the owner on ``day``, if any."""
    row = conn.execute(
        f"""
        SELECT {', '.join(SESSION_COLUMNS)}
        FROM work_sessions
        WHERE user_id = ? AND date = ? AND is_active = 1
        ORDER BY created_at DESC
        LIMIT 1;
        """,
        (user_id, day.isoformat()),
    ).fetchone()
    return _session_row(row) if row is not None else None


def fetch_entries(conn: sqlite3.Connection, user_id: str) -> list[dict[str, Any]]:
    """Return every entry of the owner, newest first."""
    rows = conn.execute(
        f"""
        SELECT {', '.join(ENTRY_COLUMNS)}
        FROM work_entries
        WHERE user_id = ?
        ORDER BY created_at DESC, rowid DESC;
        """,
        (user_id,),
    )
    return [dict(row) for row in rows]


def update_session(
    conn: sqlite3.Connection,
    session_id: str,
    user_id: str,
    fields: Mapping[str, Any],
) -> None:
    """Update a single session record; raises ``LookupError`` for unknown ids."""
    _update(conn, "work_sessions", SESSION_COLUMNS, session_id, user_id, fields)


def update_entry(
    conn: sqlite3.Connection,
    entry_id: str,
    user_id: str,
    fields: Mapping[str, Any],
) -> None:
    """Update a single entry record; raises ``LookupError`` for unknown ids."""
    _update(conn, "work_entries", ENTRY_COLUMNS, entry_id, user_id, fields)


def delete_entry(conn: sqlite3.Connection, entry_id: str, user_id: str) -> None:
    cur = conn.execute(
        "DELETE FROM work_entries WHERE id = ? AND user_id = ?",
        (entry_id, user_id),
    )
    if cur.rowcount == 0:
        raise LookupError(f"No entry found for id={entry_id}")


def _insert(
    conn: sqlite3.Connection,
    table: str,
    columns: tuple[str, ...],
    record: Mapping[str, Any],
) -> None:
    stamp = _timestamp()
    names = [*columns, "created_at", "updated_at"]
    params = [_to_sql(column, record.get(column)) for column in columns]
    params.extend([stamp, stamp])
    conn.execute(
        f"INSERT INTO {table} ({', '.join(names)}) VALUES ({', '.join('?' for _ in names)})",
        params,
    )


def _update(
    conn: sqlite3.Connection,
    table: str,
    columns: tuple[str, ...],
    record_id: str,
    user_id: str,
    fields: Mapping[str, Any],
) -> None:
    assignments: list[str] = []
    params: list[object] = []
    for column, value in fields.items():
        if column not in columns or column in _IMMUTABLE_COLUMNS:
            raise ValueError(f"Column {column!r} cannot be updated on {table}")
        assignments.append(f"{column} = ?")
        params.append(_to_sql(column, value))

    if not assignments:
        return

    assignments.append("updated_at = ?")
    params.append(_timestamp())
    params.extend([record_id, user_id])
    cur = conn.execute(
        f"UPDATE {table} SET {', '.join(assignments)} WHERE id = ? AND user_id = ?",
        params,
    )
    if cur.rowcount == 0:
        raise LookupError(f"No {table} row found for id={record_id}")


def _session_row(row: sqlite3.Row) -> dict[str, Any]:
    record = dict(row)
    for column in _BOOLEAN_COLUMNS:
        record[column] = bool(record[column])
    return record


def _to_sql(column: str, value: Any) -> Any:
    if column in _BOOLEAN_COLUMNS:
        return 1 if value else 0
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _timestamp() -> str:
    return datetime.now().astimezone().isoformat()
