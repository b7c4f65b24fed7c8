"""Pydantic models -- single source of truth for all data types."""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

TimestampMs = int


class CadenceUnit(str, enum.Enum):
    """Calendar unit a cadence repeats on."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class Cadence(BaseModel):
    """Recurrence rule: every ``interval`` units."""

    model_config = ConfigDict(frozen=True)

    interval: int = Field(default=1, ge=1)
    unit: CadenceUnit


class PeriodStartMode(str, enum.Enum):
    """How the start of a period is aligned."""

    DEFAULT = "default"  # weeks start Monday, months on the 1st
    WEEK_DAY = "weekDay"  # weekly cadences start on a chosen weekday


class PeriodStartPreference(BaseModel):
    """Per-standard override for where a weekly period begins."""

    model_config = ConfigDict(frozen=True)

    mode: PeriodStartMode = PeriodStartMode.DEFAULT
    week_start_day: Optional[int] = Field(default=None, ge=1, le=7)  # Monday = 1

    @model_validator(mode="after")
    def _check_week_start_day(self) -> PeriodStartPreference:
        if self.mode == PeriodStartMode.WEEK_DAY and self.week_start_day is None:
            raise ValueError("week_start_day is required when mode is 'weekDay'")
        return self

    @classmethod
    def week_day(cls, day: int) -> PeriodStartPreference:
        return cls(mode=PeriodStartMode.WEEK_DAY, week_start_day=day)


class PeriodWindow(BaseModel):
    """Half-open ``[start_ms, end_ms)`` interval for one instance of a cadence."""

    model_config = ConfigDict(frozen=True)

    start_ms: TimestampMs
    end_ms: TimestampMs
    period_key: str
    label: str

    def contains(self, timestamp_ms: TimestampMs) -> bool:
        return self.start_ms <= timestamp_ms < self.end_ms


class SessionConfig(BaseModel):
    """How a standard's minimum breaks down into sessions."""

    session_label: str = "session"
    sessions_per_cadence: int = Field(default=1, ge=1)
    volume_per_session: float = Field(default=0, ge=0)


class Standard(BaseModel):
    """The subset of a standard the progress engine reads."""

    id: str = Field(min_length=1)
    cadence: Cadence
    minimum: float = Field(ge=0)
    unit: str = Field(min_length=1, max_length=40)
    session_config: SessionConfig = Field(default_factory=SessionConfig)
    period_start_preference: Optional[PeriodStartPreference] = None


class LogSlice(BaseModel):
    """Read-only projection of a log entry."""

    id: str
    standard_id: str
    value: float
    occurred_at_ms: TimestampMs = Field(ge=0)


class PeriodStatus(str, enum.Enum):
    """Completion state of a standard within one period."""

    MET = "Met"
    IN_PROGRESS = "In Progress"
    MISSED = "Missed"


class ProgressSnapshot(BaseModel):
    """Dashboard progress for a single standard in its current period."""

    standard_id: str
    period_label: str
    current_total: float
    current_total_formatted: str
    target_value: float
    target_summary: str
    progress_percent: float = Field(ge=0, le=100)
    status: PeriodStatus
    current_sessions: int = Field(ge=0)
    target_sessions: int = Field(ge=0)
    period_start_ms: TimestampMs
    period_end_ms: TimestampMs


class SchedulerState(BaseModel):
    """Reference time and armed boundary owned by the boundary scheduler."""

    model_config = ConfigDict(frozen=True)

    window_reference_ms: TimestampMs
    armed_timeout_target_ms: Optional[TimestampMs] = None


class DashboardInput(BaseModel):
    """Standards and logs supplied by the host, e.g. from a JSON file."""

    standards: list[Standard] = Field(default_factory=list)
    logs: list[LogSlice] = Field(default_factory=list)


class AppConfig(BaseModel):
    """Application configuration (persisted to ~/.config/minimum-standards/config.json)."""

    timezone: Optional[str] = None  # None = $TZ, else UTC
    data_path: Optional[str] = None
