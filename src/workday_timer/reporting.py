"""Summaries of the work history and console rendering helpers."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from .models import Entry, Session
from .projector import SessionStats


@dataclass(frozen=True, slots=True)
class DailySummary:
    day: date
    worked: timedelta
    paused: timedelta
    sessions: int
    label: str


def daily_summaries(
    entries: Iterable[Entry], *, today: date, limit: Optional[int] = 7
) -> list[DailySummary]:
    """Group entries by the local day they started on, newest day first."""
    worked: defaultdict[date, timedelta] = defaultdict(timedelta)
    paused: defaultdict[date, timedelta] = defaultdict(timedelta)
    sessions: defaultdict[date, int] = defaultdict(int)
    for entry in entries:
        day = entry.date.date()
        worked[day] += entry.total_worked
        paused[day] += entry.total_paused
        sessions[day] += 1

    days = sorted(sessions, reverse=True)
    if limit is not None:
        days = days[:limit]
    return [
        DailySummary(
            day=day,
            worked=worked[day],
            paused=paused[day],
            sessions=sessions[day],
            label=day_label(day, today),
        )
        for day in days
    ]


def total_worked_on(entries: Iterable[Entry], day: date) -> timedelta:
    return sum(
        (entry.total_worked for entry in entries if entry.date.date() == day),
        timedelta(0),
    )


def day_label(day: date, today: date) -> str:
    if day == today:
        return "Today"
    if day == today - timedelta(days=1):
        return "Yesterday"
    return f"{day:%A}, {day:%B} {day.day}, {day.year}"


def format_duration(value: timedelta, style: str = "clock") -> str:
    """Render whole minutes as ``H:MM`` (clock) or ``Hh Mm`` (words)."""
    total_minutes = max(0, int(value.total_seconds() // 60))
    hours, minutes = divmod(total_minutes, 60)
    if style == "words":
        return f"{hours}h {minutes}m"
    return f"{hours}:{minutes:02d}"


def format_clock_time(value: datetime) -> str:
    return value.strftime("%H:%M")


class SummaryPrinter:
    """Render human-readable timer figures and history in the console."""

    def __init__(self, history_limit: int = 10) -> None:
        self.history_limit = history_limit

    def print_status(self, session: Optional[Session], stats: Optional[SessionStats]) -> None:
        if session is None or stats is None:
            print("No active workday. Start one with `workday-timer start HH:MM`.")
            return

        state = session.state.value
        print(f"Workday {session.date.isoformat()} ({state})")
        print("-" * 40)
        print(f"Arrived:     {format_clock_time(stats.arrival)}")
        print(f"Worked:      {format_duration(stats.worked)} / {format_duration(stats.required)}")
        print(f"Paused:      {format_duration(stats.paused)}")
        print(f"Remaining:   {format_duration(stats.remaining)}")
        print(f"Progress:    {stats.progress:5.1f}%")
        print(f"Leave at:    {format_clock_time(stats.leave_time)}", end="")
        if stats.leave_time != stats.original_leave_time:
            print(f" (originally {format_clock_time(stats.original_leave_time)})")
        else:
            print()
        if stats.is_complete:
            print("Required time reached. You can leave.")

    def print_history(self, entries: list[Entry]) -> None:
        if not entries:
            print("No work sessions recorded yet.")
            return

        shown = entries[: self.history_limit]
        print(f"{'Date':<12} {'In':<6} {'Out':<6} {'Worked':>7} {'Status':<10} Name / id")
        for entry in shown:
            check_out = format_clock_time(entry.check_out) if entry.check_out else "-"
            print(
                f"{entry.date:%a %b %d}  {format_clock_time(entry.check_in):<6} {check_out:<6} "
                f"{format_duration(entry.total_worked):>7} {entry.status.value:<10} "
                f"{entry.name or entry.id}"
            )
        if len(entries) > len(shown):
            print(f"Showing last {len(shown)} entries")

    def print_summaries(self, summaries: list[DailySummary]) -> None:
        if not summaries:
            print("No work sessions recorded yet.")
            return

        for summary in summaries:
            line = f"{summary.label} - You worked for {format_duration(summary.worked, 'words')}"
            if summary.paused > timedelta(0):
                line += f" with {format_duration(summary.paused, 'words')} of break time"
            if summary.sessions > 1:
                line += f" across {summary.sessions} sessions"
            print(line + ".")
