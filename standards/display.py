"""Rich terminal formatting helpers."""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from standards.models import PeriodStatus, PeriodWindow, ProgressSnapshot, TimestampMs

console = Console()

_STATUS_STYLE: dict[PeriodStatus, str] = {
    PeriodStatus.MET: "green",
    PeriodStatus.IN_PROGRESS: "bold cyan",
    PeriodStatus.MISSED: "red",
}

_STATUS_ICON: dict[PeriodStatus, str] = {
    PeriodStatus.MET: "✓",
    PeriodStatus.IN_PROGRESS: "·",
    PeriodStatus.MISSED: "✗",
}


def format_instant(timestamp_ms: TimestampMs, timezone: str) -> str:
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=ZoneInfo(timezone))
    return moment.isoformat(timespec="minutes")


def print_progress(progress: dict[str, ProgressSnapshot], title: str = "Standards") -> None:
    """Print the progress map as a table."""
    if not progress:
        console.print(Panel("No active standards.", title=title, border_style="dim"))
        return

    table = Table(show_header=True, box=None, pad_edge=False)
    table.add_column("", width=1, no_wrap=True)
    table.add_column("standard", overflow="fold")
    table.add_column("period", no_wrap=True)
    table.add_column("total", no_wrap=True)
    table.add_column("sessions", no_wrap=True)
    table.add_column("status", no_wrap=True)

    for snapshot in progress.values():
        style = _STATUS_STYLE[snapshot.status]
        table.add_row(
            _STATUS_ICON[snapshot.status],
            f"{snapshot.standard_id}\n[dim]{snapshot.target_summary}[/dim]",
            snapshot.period_label,
            f"{snapshot.current_total_formatted} ({snapshot.progress_percent:g}%)",
            f"{snapshot.current_sessions}/{snapshot.target_sessions}",
            snapshot.status.value,
            style=style,
        )

    console.print(Panel(table, title=title, border_style="blue"))


def print_window(window: PeriodWindow, timezone: str) -> None:
    """Print a single period window."""
    lines = [
        f"Period: {window.label}",
        f"Key: {window.period_key}",
        f"Starts: {format_instant(window.start_ms, timezone)}",
        f"Ends: {format_instant(window.end_ms, timezone)} (exclusive)",
    ]
    console.print(Panel("\n".join(lines), title=f"Window ({timezone})", border_style="green"))


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{message}[/green]")


def print_info(message: str) -> None:
    """Print an informational message."""
    console.print(f"[blue]{message}[/blue]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]{message}[/yellow]")
