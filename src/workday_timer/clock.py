"""Wall-clock time sources."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current instant as a timezone-aware datetime."""
        ...


class SystemClock:
    """Local wall clock with the machine's current UTC offset."""

    def now(self) -> datetime:
        return datetime.now().astimezone()
