"""Configuration models and helpers for the workday timer."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

DEFAULT_OWNER = "local"
OWNER_ENV_VAR = "WORKDAY_TIMER_OWNER"


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for the tracker and its presentation layers."""

    refresh_interval: timedelta = timedelta(seconds=1)
    default_required_hours: int = 8
    default_required_minutes: int = 0
    history_limit: int = 10
    summary_days: int = 7

    @classmethod
    def from_values(
        cls,
        refresh_seconds: float = 1.0,
        required_hours: int | None = None,
        required_minutes: int | None = None,
        history_limit: int | None = None,
        summary_days: int | None = None,
    ) -> "TrackerSettings":
        defaults = cls()
        return cls(
            refresh_interval=timedelta(seconds=max(refresh_seconds, 0.1)),
            default_required_hours=(
                required_hours if required_hours is not None else defaults.default_required_hours
            ),
            default_required_minutes=(
                required_minutes
                if required_minutes is not None
                else defaults.default_required_minutes
            ),
            history_limit=history_limit if history_limit is not None else defaults.history_limit,
            summary_days=summary_days if summary_days is not None else defaults.summary_days,
        )
