"""Command-line interface for the workday timer."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

import typer

from .config import DEFAULT_OWNER, OWNER_ENV_VAR, TrackerSettings
from .errors import WorkdayTimerError
from .paths import get_log_path, resolve_db_path
from .persistence import SqlitePersistenceAdapter
from .reporting import SummaryPrinter, format_duration
from .tracker import Notification, WorkdayTracker

app = typer.Typer(help="Track your workday against the hours you owe.")


@dataclass(slots=True)
class CliContext:
    owner: str
    db_path: Path
    settings: TrackerSettings


@app.callback(no_args_is_help=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs."),
    owner: str = typer.Option(
        DEFAULT_OWNER,
        "--owner",
        envvar=OWNER_ENV_VAR,
        help="Owner id the sessions and history belong to.",
    ),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the workday SQLite database.",
    ),
    refresh: float = typer.Option(
        1.0, "--refresh", min=0.1, help="Seconds between live status refreshes."
    ),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        filename=str(get_log_path()),
    )
    ctx.obj = CliContext(
        owner=owner,
        db_path=resolve_db_path(db_path),
        settings=TrackerSettings.from_values(refresh_seconds=refresh),
    )


@app.command()
def start(
    ctx: typer.Context,
    arrival: str = typer.Argument(..., help="Arrival time of day, HH:MM."),
    hours: Optional[int] = typer.Option(None, "--hours", min=0, help="Required work hours."),
    minutes: Optional[int] = typer.Option(
        None, "--minutes", min=0, max=59, help="Required extra minutes."
    ),
) -> None:
    """Set up today's workday and start the timer from the arrival time."""
    _run_and_show(ctx, lambda tracker: tracker.setup(arrival, hours, minutes))
    typer.secho("Timer started.", fg=typer.colors.GREEN)


@app.command()
def pause(ctx: typer.Context) -> None:
    """Pause the running timer."""
    _run_and_show(ctx, lambda tracker: tracker.pause())


@app.command()
def resume(ctx: typer.Context) -> None:
    """Resume a paused timer."""
    _run_and_show(ctx, lambda tracker: tracker.resume())


@app.command("add-pause")
def add_pause(
    ctx: typer.Context,
    hours: int = typer.Option(0, "--hours", min=0, help="Hours of break to credit."),
    minutes: int = typer.Option(0, "--minutes", min=0, max=59, help="Minutes of break to credit."),
) -> None:
    """Credit break time you forgot to pause for."""
    _run_and_show(ctx, lambda tracker: tracker.add_manual_pause(hours=hours, minutes=minutes))


@app.command("add-break")
def add_break(
    ctx: typer.Context,
    start_at: str = typer.Argument(..., metavar="START", help="Break start, HH:MM."),
    end_at: str = typer.Argument(..., metavar="END", help="Break end, HH:MM."),
) -> None:
    """Credit a break given as a clock range, e.g. 12:00 12:45."""
    _run_and_show(ctx, lambda tracker: tracker.add_break(start_at, end_at))


@app.command()
def complete(ctx: typer.Context) -> None:
    """Finish today's workday and file it in the history."""
    session = _run(ctx, lambda tracker: tracker.complete())
    typer.secho(
        f"Workday complete: worked {format_duration(session.total_worked)}, "
        f"paused {format_duration(session.total_paused)}.",
        fg=typer.colors.GREEN,
    )


@app.command()
def reset(ctx: typer.Context) -> None:
    """Complete any active workday so a fresh one can be started."""
    session = _run(ctx, lambda tracker: tracker.reset())
    if session is None:
        typer.echo("Nothing to reset.")
    else:
        typer.echo("Reset complete. You can start a fresh workday.")


@app.command()
def status(ctx: typer.Context) -> None:
    """Show worked, remaining and paused time and the projected leave time."""
    _run_and_show(ctx, lambda tracker: None)


@app.command()
def watch(
    ctx: typer.Context,
    interval: Optional[float] = typer.Option(
        None, "--interval", min=0.1, help="Seconds between screen refreshes."
    ),
) -> None:
    """Keep re-projecting the live figures until interrupted."""
    obj: CliContext = ctx.obj
    delay = interval or obj.settings.refresh_interval.total_seconds()
    printer = SummaryPrinter(history_limit=obj.settings.history_limit)

    async def _loop(tracker: WorkdayTracker) -> None:
        while True:
            typer.clear()
            printer.print_status(tracker.session, tracker.stats())
            await asyncio.sleep(delay)

    try:
        _run(ctx, _loop)
    except KeyboardInterrupt:
        typer.echo("")


@app.command()
def history(
    ctx: typer.Context,
    limit: int = typer.Option(10, "--limit", min=1, help="Number of entries to show."),
) -> None:
    """List recorded work sessions, newest first."""
    entries = _run(ctx, lambda tracker: tracker.entries())
    SummaryPrinter(history_limit=limit).print_history(entries)


@app.command()
def rename(
    ctx: typer.Context,
    entry_id: str = typer.Argument(..., help="Id of the history entry."),
    name: str = typer.Argument(..., help="New display name; empty to clear."),
) -> None:
    """Give a history entry a display name."""
    _run(ctx, lambda tracker: tracker.rename_entry(entry_id, name))
    typer.echo("Entry renamed.")


@app.command()
def delete(
    ctx: typer.Context,
    entry_id: str = typer.Argument(..., help="Id of the history entry."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Remove an entry from the history."""
    if not yes:
        typer.confirm(f"Delete entry {entry_id}?", abort=True)
    _run(ctx, lambda tracker: tracker.delete_entry(entry_id))
    typer.echo("Entry deleted.")


@app.command()
def summary(
    ctx: typer.Context,
    days: int = typer.Option(7, "--days", min=1, help="Number of days to summarize."),
) -> None:
    """Print worked and break time per day."""
    obj: CliContext = ctx.obj
    obj.settings.summary_days = days
    summaries = _run(ctx, lambda tracker: tracker.summaries())
    SummaryPrinter().print_summaries(summaries)


@app.command()
def web(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(8765, "--port", min=1, max=65535, help="TCP port for the API."),
) -> None:
    """Serve the JSON API for a browser or desktop front end."""
    from .server_runner import run_server

    obj: CliContext = ctx.obj
    run_server(host=host, port=port, db_path=obj.db_path, settings=obj.settings)


def _run(ctx: typer.Context, operation: Callable[[WorkdayTracker], Any]) -> Any:
    """Load the owner's tracker, run ``operation`` on it and wait for the writes."""
    obj: CliContext = ctx.obj

    async def _main() -> Any:
        tracker = WorkdayTracker(
            obj.owner,
            SqlitePersistenceAdapter(obj.db_path),
            settings=obj.settings,
            on_notify=_echo_notification,
        )
        try:
            await tracker.load()
            result = operation(tracker)
            if inspect.isawaitable(result):
                result = await result
            return result
        finally:
            await tracker.close()

    try:
        return asyncio.run(_main())
    except WorkdayTimerError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc


def _run_and_show(ctx: typer.Context, operation: Callable[[WorkdayTracker], Any]) -> None:
    obj: CliContext = ctx.obj
    printer = SummaryPrinter(history_limit=obj.settings.history_limit)

    def _show(tracker: WorkdayTracker) -> None:
        operation(tracker)
        printer.print_status(tracker.session, tracker.stats())

    _run(ctx, _show)


def _echo_notification(notification: Notification) -> None:
    typer.secho(f"{notification.title}: {notification.message}", fg=typer.colors.RED, err=True)
