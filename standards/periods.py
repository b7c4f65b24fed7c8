"""Period windows and completion status for recurring cadences."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from standards import zones
from standards.models import (
    Cadence,
    CadenceUnit,
    PeriodStartMode,
    PeriodStartPreference,
    PeriodStatus,
    PeriodWindow,
    TimestampMs,
)
from standards.zones import InvalidTimeInput

__all__ = [
    "InvalidTimeInput",
    "UnsupportedCadenceUnit",
    "calculate_period_window",
    "derive_period_status",
]

_KEY_FORMAT: dict[CadenceUnit, str] = {
    CadenceUnit.DAY: "%Y-%m-%d",
    CadenceUnit.WEEK: "%Y-%m-%d",
    CadenceUnit.MONTH: "%Y-%m",
}

_LABEL_FORMAT: dict[CadenceUnit, str] = {
    CadenceUnit.DAY: "%m/%d/%Y",
    CadenceUnit.WEEK: "%m/%d/%Y",
    CadenceUnit.MONTH: "%m/%Y",
}

_DEFAULT_PREFERENCE = PeriodStartPreference()


class UnsupportedCadenceUnit(ValueError):
    """Raised for a cadence unit other than day, week or month."""


def _coerce_unit(unit: object) -> CadenceUnit:
    try:
        return CadenceUnit(unit)
    except ValueError as exc:
        raise UnsupportedCadenceUnit(f"Unsupported cadence unit: {unit!r}") from exc


def _period_start_day(
    today: date, unit: CadenceUnit, preference: PeriodStartPreference
) -> date:
    """First local day of the period containing ``today``."""
    if unit == CadenceUnit.DAY:
        return today
    if unit == CadenceUnit.WEEK:
        week_start = 1  # Monday
        if preference.mode == PeriodStartMode.WEEK_DAY and preference.week_start_day:
            week_start = preference.week_start_day
        offset = (today.isoweekday() - week_start + 7) % 7
        return today - timedelta(days=offset)
    return today.replace(day=1)


def _build_window(
    start_day: date, unit: CadenceUnit, interval: int, zone: ZoneInfo
) -> PeriodWindow:
    start = zones.local_day_start(start_day, zone)
    end = zones.add_units(start, unit, interval)
    inclusive_end = end.date() - timedelta(days=1)

    label_format = _LABEL_FORMAT[unit]
    label = start.strftime(label_format)
    # Weekly labels always show the range so the start weekday is visible.
    if interval != 1 or unit == CadenceUnit.WEEK:
        label = f"{label} - {inclusive_end.strftime(label_format)}"

    return PeriodWindow(
        start_ms=zones.to_ms(start),
        end_ms=zones.to_ms(end),
        period_key=start.strftime(_KEY_FORMAT[unit]),
        label=label,
    )


def calculate_period_window(
    timestamp_ms: TimestampMs,
    cadence: Cadence,
    timezone: str,
    *,
    period_start_preference: Optional[PeriodStartPreference] = None,
) -> PeriodWindow:
    """Return the period window of ``cadence`` that contains ``timestamp_ms``.

    The instant is read in the IANA ``timezone``. Windows start at local
    midnight of the current day, of the Monday (or preferred weekday) on or
    before it, or of the 1st of the month, and end ``cadence.interval``
    calendar units later.

    Raises:
        InvalidTimeInput: unknown timezone or unrepresentable timestamp.
        UnsupportedCadenceUnit: cadence unit outside day/week/month.
    """
    unit = _coerce_unit(cadence.unit)
    zone = zones.get_zone(timezone)
    local = zones.to_local(timestamp_ms, zone)
    preference = period_start_preference or _DEFAULT_PREFERENCE

    start_day = _period_start_day(local.date(), unit, preference)
    return _build_window(start_day, unit, cadence.interval, zone)


def derive_period_status(
    period_total: float,
    minimum: float,
    now_ms: TimestampMs,
    period_end_ms: TimestampMs,
) -> PeriodStatus:
    """Met once the minimum is reached, Missed if the period ended short."""
    if minimum <= 0 or period_total >= minimum:
        return PeriodStatus.MET
    if now_ms >= period_end_ms:
        return PeriodStatus.MISSED
    return PeriodStatus.IN_PROGRESS
