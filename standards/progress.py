"""Aggregate log entries into per-standard progress for the current period."""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import inflect

from standards.models import (
    Cadence,
    LogSlice,
    ProgressSnapshot,
    SessionConfig,
    Standard,
    TimestampMs,
)
from standards.periods import calculate_period_window, derive_period_status

_MAX_UNIT_LENGTH = 40
_ONE_PLACE = Decimal("0.1")

_inflect = inflect.engine()


def _format_number(value: float) -> str:
    """Render a number the way a person would type it (``100`` not ``100.0``)."""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def format_total(value: float) -> str:
    """Thousands separators and at most one fractional digit, halves rounded up."""
    rounded = Decimal(str(value)).quantize(_ONE_PLACE, rounding=ROUND_HALF_UP)
    text = f"{rounded:,f}"
    if text.endswith(".0"):
        text = text[:-2]
    return "0" if text == "-0" else text


def normalize_unit_to_plural(unit: str) -> str:
    """Trim a unit and pluralise it unless it is already plural.

    Raises ValueError for a blank unit or one longer than 40 characters.
    """
    unit = unit.strip()
    if not unit:
        raise ValueError("Unit cannot be blank")
    if len(unit) > _MAX_UNIT_LENGTH:
        raise ValueError(f"Unit cannot exceed {_MAX_UNIT_LENGTH} characters")
    if _inflect.singular_noun(unit):
        return unit
    return _inflect.plural(unit)


def format_standard_summary(
    minimum: float,
    unit: str,
    cadence: Cadence,
    session_config: Optional[SessionConfig] = None,
) -> str:
    """Summarise a standard, e.g. ``"1000 calls / week"``.

    With more than one session per cadence the breakdown is shown:
    ``"5 sessions × 15 minutes = 75 minutes / week"``.
    """
    unit = normalize_unit_to_plural(unit)

    cadence_unit = cadence.unit.value
    if cadence.interval == 1:
        cadence_text = cadence_unit
    else:
        cadence_text = f"{cadence.interval} {cadence_unit}s"

    if session_config is not None and session_config.sessions_per_cadence > 1:
        return (
            f"{session_config.sessions_per_cadence} {session_config.session_label}s"
            f" × {_format_number(session_config.volume_per_session)} {unit}"
            f" = {_format_number(minimum)} {unit} / {cadence_text}"
        )
    return f"{_format_number(minimum)} {unit} / {cadence_text}"


def compute_earliest_start(
    standards: Sequence[Standard], timezone: str, now_ms: TimestampMs
) -> TimestampMs:
    """Earliest current-period start across ``standards`` (``now_ms`` if none)."""
    earliest = now_ms
    for standard in standards:
        window = calculate_period_window(
            now_ms,
            standard.cadence,
            timezone,
            period_start_preference=standard.period_start_preference,
        )
        earliest = min(earliest, window.start_ms)
    return earliest


def build_dashboard_progress_map(
    standards: Sequence[Standard],
    logs: Iterable[LogSlice],
    timezone: str,
    now_ms: Optional[TimestampMs] = None,
    window_reference_ms: Optional[TimestampMs] = None,
) -> dict[str, ProgressSnapshot]:
    """Build a progress snapshot for every standard.

    Windows are computed at ``window_reference_ms`` (falling back to
    ``now_ms``) so every standard shows the same as-of period. Status is
    always judged against the real ``now_ms``.
    """
    if not standards:
        return {}

    if now_ms is None:
        now_ms = round(time.time() * 1000)
    reference_ms = window_reference_ms if window_reference_ms is not None else now_ms

    logs_by_standard: dict[str, list[LogSlice]] = {}
    for log_entry in logs:
        logs_by_standard.setdefault(log_entry.standard_id, []).append(log_entry)

    progress_map: dict[str, ProgressSnapshot] = {}
    for standard in standards:
        window = calculate_period_window(
            reference_ms,
            standard.cadence,
            timezone,
            period_start_preference=standard.period_start_preference,
        )
        window_logs = [
            entry
            for entry in logs_by_standard.get(standard.id, [])
            if window.contains(entry.occurred_at_ms)
        ]

        current_total = sum(entry.value for entry in window_logs)
        safe_minimum = max(standard.minimum, 0)
        if safe_minimum == 0:
            ratio = 1.0
        else:
            ratio = min(max(current_total / safe_minimum, 0.0), 1.0)

        progress_map[standard.id] = ProgressSnapshot(
            standard_id=standard.id,
            period_label=window.label,
            current_total=current_total,
            current_total_formatted=format_total(current_total),
            target_value=safe_minimum,
            target_summary=format_standard_summary(
                standard.minimum,
                standard.unit,
                standard.cadence,
                standard.session_config,
            ),
            progress_percent=round(ratio * 100, 2),
            status=derive_period_status(
                current_total, standard.minimum, now_ms, window.end_ms
            ),
            current_sessions=len(window_logs),
            target_sessions=standard.session_config.sessions_per_cadence,
            period_start_ms=window.start_ms,
            period_end_ms=window.end_ms,
        )

    return progress_map
