"""Timezone-aware calendar arithmetic.

Thin layer over :mod:`zoneinfo` and :mod:`dateutil.relativedelta` so the
period calculator only deals in local dates and wall-clock additions.
Additions keep the wall-clock time and let the zone pick the UTC offset,
so a day across a DST change is 23 or 25 hours long and a month is as
long as the calendar says.
"""

from __future__ import annotations

from datetime import date, datetime, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.relativedelta import relativedelta

from standards.models import CadenceUnit, TimestampMs

_UNIT_FIELD: dict[CadenceUnit, str] = {
    CadenceUnit.DAY: "days",
    CadenceUnit.WEEK: "weeks",
    CadenceUnit.MONTH: "months",
}


class InvalidTimeInput(ValueError):
    """Raised when a timezone or timestamp cannot be interpreted."""


def get_zone(timezone: str) -> ZoneInfo:
    """Resolve an IANA timezone name."""
    if not isinstance(timezone, str) or not timezone.strip():
        raise InvalidTimeInput(f"Invalid timezone: {timezone!r}")
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidTimeInput(f"Unknown timezone: {timezone!r}") from exc


def to_local(timestamp_ms: TimestampMs, zone: ZoneInfo) -> datetime:
    """Interpret an epoch-millisecond timestamp in ``zone``."""
    try:
        return datetime.fromtimestamp(timestamp_ms / 1000, tz=zone)
    except (OverflowError, OSError, ValueError, TypeError) as exc:
        raise InvalidTimeInput(f"Timestamp cannot be represented: {timestamp_ms!r}") from exc


def local_day_start(day: date, zone: ZoneInfo) -> datetime:
    """Local midnight of ``day`` in ``zone``."""
    return datetime.combine(day, time(0), tzinfo=zone)


def add_units(start: datetime, unit: CadenceUnit, amount: int) -> datetime:
    """Add calendar units to a zone-aware datetime."""
    return start + relativedelta(**{_UNIT_FIELD[unit]: amount})


def to_ms(moment: datetime) -> TimestampMs:
    """Epoch milliseconds of a zone-aware datetime."""
    return round(moment.timestamp() * 1000)
