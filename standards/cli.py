"""Minimum Standards CLI -- period progress for recurring standards."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

import typer
from pydantic import ValidationError
from rich.logging import RichHandler
from rich.markup import escape

from standards import config as cfg
from standards import display
from standards.models import (
    Cadence,
    CadenceUnit,
    DashboardInput,
    PeriodStartPreference,
    SchedulerState,
    TimestampMs,
)
from standards.periods import InvalidTimeInput, calculate_period_window
from standards.progress import build_dashboard_progress_map
from standards.scheduler import AsyncioTimers, BoundaryScheduler, SystemClock

app = typer.Typer(
    name="standards",
    help="Track minimum standards against their current period.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Track minimum standards against their current period."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=display.console, show_path=False)],
    )


def _timezone(override: Optional[str]) -> str:
    """Resolve the timezone or exit with a warning."""
    try:
        return cfg.resolve_timezone(override)
    except InvalidTimeInput as exc:
        display.print_warning(str(exc))
        raise typer.Exit(1)


def _parse_instant(value: Optional[str], timezone: str) -> TimestampMs:
    """ISO-8601 to epoch ms; naive values are read in ``timezone``."""
    if value is None:
        return SystemClock().now_ms()
    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        display.print_warning(f"Not an ISO-8601 date/time: {value}")
        raise typer.Exit(1)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=ZoneInfo(timezone))
    return round(moment.timestamp() * 1000)


def _load_input(path: Optional[Path]) -> DashboardInput:
    """Read standards and logs from a JSON file."""
    if path is None:
        saved = cfg.load_config().data_path
        if saved is None:
            display.print_warning("No input file given and no default set (config --data).")
            raise typer.Exit(1)
        path = Path(saved)
    try:
        return DashboardInput.model_validate_json(path.read_text())
    except OSError as exc:
        display.print_warning(f"Could not read {path}: {exc.strerror or exc}")
        raise typer.Exit(1)
    except ValidationError as exc:
        display.print_warning(f"Invalid input in {path}:\n{escape(str(exc))}")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


@app.command()
def status(
    path: Optional[Path] = typer.Argument(None, help="JSON file with standards and logs"),
    at: Optional[str] = typer.Option(None, "--at", help="Judge status at this time (ISO-8601)"),
    reference: Optional[str] = typer.Option(
        None, "--reference", help="Show the period containing this time (ISO-8601)"
    ),
    tz: Optional[str] = typer.Option(None, "--tz", help="IANA timezone"),
) -> None:
    """Show progress for each standard in its current period."""
    timezone = _timezone(tz)
    data = _load_input(path)
    now_ms = _parse_instant(at, timezone)
    reference_ms = _parse_instant(reference, timezone) if reference else None

    progress = build_dashboard_progress_map(
        data.standards,
        data.logs,
        timezone,
        now_ms=now_ms,
        window_reference_ms=reference_ms,
    )
    display.print_progress(progress)


@app.command()
def window(
    interval: int = typer.Option(1, "--interval", "-i", min=1, help="Cadence interval"),
    unit: CadenceUnit = typer.Option(CadenceUnit.WEEK, "--unit", "-u", help="Cadence unit"),
    week_start: Optional[int] = typer.Option(
        None, "--week-start", min=1, max=7, help="Weekly periods start on this weekday (Monday=1)"
    ),
    at: Optional[str] = typer.Option(None, "--at", help="Instant to look up (ISO-8601)"),
    tz: Optional[str] = typer.Option(None, "--tz", help="IANA timezone"),
) -> None:
    """Show the period window containing an instant."""
    timezone = _timezone(tz)
    timestamp_ms = _parse_instant(at, timezone)
    preference = PeriodStartPreference.week_day(week_start) if week_start else None

    result = calculate_period_window(
        timestamp_ms,
        Cadence(interval=interval, unit=unit),
        timezone,
        period_start_preference=preference,
    )
    display.print_window(result, timezone)


@app.command()
def watch(
    path: Optional[Path] = typer.Argument(None, help="JSON file with standards and logs"),
    tz: Optional[str] = typer.Option(None, "--tz", help="IANA timezone"),
    duration: Optional[float] = typer.Option(
        None, "--duration", "-d", help="Stop after this many seconds"
    ),
) -> None:
    """Keep the dashboard open and roll periods over at each boundary."""
    timezone = _timezone(tz)
    data = _load_input(path)

    async def _run() -> None:
        def _render(state: SchedulerState) -> None:
            display.print_progress(scheduler.progress(data.logs))

        scheduler = BoundaryScheduler(timezone, timers=AsyncioTimers(), on_change=_render)
        scheduler.start(data.standards)
        display.print_progress(scheduler.progress(data.logs))
        boundary = scheduler.next_boundary_ms()
        if boundary is not None:
            display.print_info(f"Next period boundary: {display.format_instant(boundary, timezone)}")
        try:
            if duration is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(duration)
        finally:
            scheduler.stop()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        display.print_info("Stopped watching.")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@app.command()
def config(
    tz: Optional[str] = typer.Option(None, "--tz", help="Save a default IANA timezone"),
    data: Optional[str] = typer.Option(None, "--data", help="Save a default input file"),
    reset: bool = typer.Option(False, "--reset", help="Forget the saved timezone"),
    show: bool = typer.Option(False, "--show", help="Show current config"),
) -> None:
    """Configure the default timezone and input file."""
    if tz:
        try:
            result = cfg.set_timezone(tz)
        except InvalidTimeInput as exc:
            display.print_warning(str(exc))
            raise typer.Exit(1)
        display.print_success(f"Timezone set to: {result.timezone}")
    elif data:
        result = cfg.set_data_path(data)
        display.print_success(f"Default input set to: {result.data_path}")
    elif reset:
        cfg.reset_timezone()
        display.print_success("Reset to the environment timezone.")
    elif show:
        current = cfg.load_config()
        resolved = _timezone(None)
        if current.timezone:
            display.print_info(f"Timezone: {current.timezone}")
        else:
            display.print_info(f"Timezone: {resolved} (default)")
        display.print_info(f"Input: {current.data_path or 'not set'}")
    else:
        display.print_info("Use --tz, --data, --reset, or --show.")
