"""Utilities to normalize user-entered clock times and durations."""

from __future__ import annotations

import re
from datetime import datetime, time, timedelta
from typing import Optional, Union

from .errors import ValidationError

ClockInput = Union[time, str, None]
NumberInput = Union[int, str, None]

_CLOCK_PATTERN = re.compile(r"^\s*(\d{1,2})\s*[:.hH]\s*(\d{1,2})\s*$")

MAX_REQUIRED_DURATION = timedelta(hours=24)
MAX_PAUSE_DURATION = timedelta(hours=24)


def parse_clock_time(value: ClockInput, *, field: str = "arrival_time") -> time:
    """Parse ``H:MM`` / ``HH:MM`` (or a ``time``) into a whole-minute time of day."""
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)

    match = _CLOCK_PATTERN.match(str(value))
    if not match:
        raise ValidationError(f"{field} must look like HH:MM, got {value!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if not 0 <= hours <= 23:
        raise ValidationError(f"{field} hours must be between 0 and 23")
    if not 0 <= minutes <= 59:
        raise ValidationError(f"{field} minutes must be between 0 and 59")
    return time(hours, minutes)


def parse_required_duration(hours: NumberInput, minutes: NumberInput = 0) -> tuple[int, int]:
    """Validate a required work duration and return it as ``(hours, minutes)``."""
    parsed_hours = _parse_count(hours, field="required hours")
    if parsed_hours is None:
        raise ValidationError("required hours are required")
    parsed_minutes = _parse_count(minutes, field="required minutes") or 0
    if parsed_minutes > 59:
        raise ValidationError("required minutes must be between 0 and 59")
    total_minutes = parsed_hours * 60 + parsed_minutes
    if total_minutes <= 0:
        raise ValidationError("required work duration must be positive")
    if total_minutes > MAX_REQUIRED_DURATION // timedelta(minutes=1):
        raise ValidationError("required work duration must not exceed 24 hours")
    return parsed_hours, parsed_minutes


def parse_duration(hours: NumberInput = 0, minutes: NumberInput = 0) -> timedelta:
    """Build a duration from loose hour/minute inputs; blanks count as zero."""
    parsed_hours = _parse_count(hours, field="hours") or 0
    parsed_minutes = _parse_count(minutes, field="minutes") or 0
    total_minutes = parsed_hours * 60 + parsed_minutes
    if total_minutes > MAX_PAUSE_DURATION // timedelta(minutes=1):
        raise ValidationError("pause duration must not exceed 24 hours")
    return timedelta(minutes=total_minutes)


def break_duration(start: ClockInput, end: ClockInput) -> timedelta:
    """Length of a break given as a clock range on the same day, e.g. 12:00-12:45."""
    start_time = parse_clock_time(start, field="break start")
    end_time = parse_clock_time(end, field="break end")
    anchor = datetime(2000, 1, 1)
    delta = datetime.combine(anchor, end_time) - datetime.combine(anchor, start_time)
    if delta <= timedelta(0):
        raise ValidationError("break end must be after break start")
    return delta


def _parse_count(value: NumberInput, *, field: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a whole number")
    if isinstance(value, int):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        if not text.isdigit():
            raise ValidationError(f"{field} must be a whole number, got {value!r}")
        parsed = int(text)
    if parsed < 0:
        raise ValidationError(f"{field} must not be negative")
    return parsed
