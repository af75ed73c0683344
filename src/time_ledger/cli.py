"""Command-line interface for time accounting."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer

from .clock import SystemClock
from .config import DayBoundaryConfig, TrackerSettings
from .day_boundary import day_window, logical_today, to_local
from .paths import get_db_path, get_log_path, get_state_path

app = typer.Typer(help="Trustworthy time accounting for tasks and activities.")


@app.callback(no_args_is_help=True)
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs."),
    log_to_file: bool = typer.Option(
        False, "--log-file", help="Also write logs to the application data directory."
    ),
) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_to_file:
        handlers.append(logging.FileHandler(get_log_path(), encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=handlers,
    )


def _boundary(start_hour: int, end_hour: int) -> DayBoundaryConfig:
    return DayBoundaryConfig.from_timeline_hours(start_hour, end_hour)


@app.command()
def summary(
    date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Logical day (YYYY-MM-DD) to summarize. Defaults to the logical today.",
    ),
    start_hour: int = typer.Option(0, "--start-hour", help="Hour the logical day starts."),
    end_hour: int = typer.Option(
        24, "--end-hour", help="Hour the logical day ends; 27 means 3 AM the next day."
    ),
    tz: int = typer.Option(0, "--tz", help="Minutes added to local time to reach UTC."),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the time-record SQLite database.",
    ),
) -> None:
    """Print focus and idle figures for one logical day."""
    from .db import SQLiteRecordStore
    from .reporting import SummaryPrinter

    config = _boundary(start_hour, end_hour)
    now = SystemClock().now()
    target = (
        datetime.strptime(date, "%Y-%m-%d").date() if date else logical_today(now, config, tz)
    )
    store = SQLiteRecordStore(db_path or get_db_path())
    try:
        SummaryPrinter(store, tz).print_daily_summary(target, config, now)
    finally:
        store.close()


@app.command()
def window(
    date: str = typer.Argument(..., help="Calendar date (YYYY-MM-DD)."),
    start_hour: int = typer.Option(0, "--start-hour", help="Hour the logical day starts."),
    end_hour: int = typer.Option(
        24, "--end-hour", help="Hour the logical day ends; 27 means 3 AM the next day."
    ),
    tz: int = typer.Option(0, "--tz", help="Minutes added to local time to reach UTC."),
) -> None:
    """Print the UTC and local window of a logical day."""
    day = datetime.strptime(date, "%Y-%m-%d").date()
    result = day_window(day, _boundary(start_hour, end_hour), tz)
    typer.echo(f"UTC:   {result.start.isoformat()} -> {result.end.isoformat()}")
    typer.echo(
        f"Local: {to_local(result.start, tz):%Y-%m-%d %H:%M} -> "
        f"{to_local(result.end, tz):%Y-%m-%d %H:%M}"
    )


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the time-record SQLite database."
    ),
    state_path: Optional[Path] = typer.Option(
        None, "--state", path_type=Path, help="Location of the saved timer state file."
    ),
    idle_minutes: float = typer.Option(
        5.0,
        "--idle-threshold",
        min=0.1,
        help="Minutes of inactivity before the user counts as idle.",
    ),
    start_hour: int = typer.Option(0, "--start-hour", help="Default hour the logical day starts."),
    end_hour: int = typer.Option(
        24, "--end-hour", help="Default hour the logical day ends; 27 means 3 AM the next day."
    ),
    tz: int = typer.Option(0, "--tz", help="Default minutes added to local time to reach UTC."),
    open_browser: bool = typer.Option(
        False,
        "--open-browser/--no-open-browser",
        help="Open the interactive API docs in your default browser.",
    ),
) -> None:
    """Serve the time-ledger API with idle detection running."""
    from .server_runner import run_server

    settings = TrackerSettings.from_intervals(idle_minutes=idle_minutes)
    run_server(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        state_path=state_path or get_state_path(),
        settings=settings,
        day_config=_boundary(start_hour, end_hour),
        tz_offset_minutes=tz,
        open_browser=open_browser,
    )


if __name__ == "__main__":
    app()
