"""Keep the dashboard's "current period" in step with the clock.

The scheduler owns one reference time that every standard's window is
computed against, and one pending timer for the nearest period boundary.
When the timer fires, or the host resumes from the background, the
reference jumps to the real current time so all standards roll over to
their new periods together.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Sequence
from typing import Optional, Protocol

from standards import zones
from standards.models import LogSlice, ProgressSnapshot, SchedulerState, Standard, TimestampMs
from standards.periods import calculate_period_window
from standards.progress import build_dashboard_progress_map

log = logging.getLogger(__name__)


class Clock(Protocol):
    def now_ms(self) -> TimestampMs: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerService(Protocol):
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle: ...


class SystemClock:
    """Wall-clock time in epoch milliseconds."""

    def now_ms(self) -> TimestampMs:
        return round(time.time() * 1000)


class AsyncioTimers:
    """One-shot timers on the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(delay_ms, 0) / 1000, callback)


class BoundaryScheduler:
    """Advance a shared reference time at the nearest period boundary.

    Parameters
    ----------
    timezone:
        IANA zone the period windows are computed in.
    timers:
        One-shot timer factory. Use ``AsyncioTimers()`` when started from
        inside a running event loop, or ``AsyncioTimers(loop)`` otherwise.
        Tests inject fakes to drive virtual time.
    clock:
        Time source, wall clock by default.
    on_change:
        Called with the new state whenever the reference time advances.
    """

    def __init__(
        self,
        timezone: str,
        *,
        timers: TimerService,
        clock: Optional[Clock] = None,
        on_change: Optional[Callable[[SchedulerState], None]] = None,
    ) -> None:
        zones.get_zone(timezone)
        self.timezone = timezone
        self._clock = clock or SystemClock()
        self._timers = timers
        self._on_change = on_change
        self._standards: list[Standard] = []
        self._handle: Optional[TimerHandle] = None
        self._running = False
        self._state = SchedulerState(window_reference_ms=self._clock.now_ms())

    # -- public API -------------------------------------------------------

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def window_reference_ms(self) -> TimestampMs:
        return self._state.window_reference_ms

    @property
    def running(self) -> bool:
        return self._running

    def start(self, standards: Iterable[Standard] = ()) -> None:
        """Begin tracking ``standards`` and arm the first boundary."""
        self._standards = list(standards)
        self._running = True
        log.debug("Scheduler started with %d standard(s)", len(self._standards))
        self._recompute()

    def stop(self) -> None:
        """Cancel any pending timer. Safe to call more than once."""
        self._running = False
        self._cancel_timer()
        self._state = self._state.model_copy(update={"armed_timeout_target_ms": None})
        log.debug("Scheduler stopped")

    def set_standards(self, standards: Iterable[Standard]) -> None:
        """Replace the active standards and re-check the nearest boundary."""
        self._standards = list(standards)
        if self._running:
            self._recompute()

    def resume(self) -> None:
        """Host came back from the background: catch up to the real time."""
        if not self._running:
            return
        now_ms = self._clock.now_ms()
        log.info("Resumed; moving reference time to %d", now_ms)
        self._set_reference(now_ms)
        self._recompute()
        self._notify()

    def next_boundary_ms(self) -> Optional[TimestampMs]:
        """Earliest window end across the standards at the current reference."""
        return self._next_boundary(self._state.window_reference_ms)

    def progress(
        self, logs: Iterable[LogSlice], now_ms: Optional[TimestampMs] = None
    ) -> dict[str, ProgressSnapshot]:
        """Progress map for the tracked standards as of the reference time."""
        return build_dashboard_progress_map(
            self._standards,
            logs,
            self.timezone,
            now_ms=self._clock.now_ms() if now_ms is None else now_ms,
            window_reference_ms=self._state.window_reference_ms,
        )

    # -- transitions ------------------------------------------------------

    def _next_boundary(self, reference_ms: TimestampMs) -> Optional[TimestampMs]:
        return _earliest_end(self._standards, self.timezone, reference_ms)

    def _recompute(self) -> None:
        boundary = self._next_boundary(self._state.window_reference_ms)
        if boundary is None:
            self._cancel_timer()
            self._state = self._state.model_copy(update={"armed_timeout_target_ms": None})
            return

        now_ms = self._clock.now_ms()
        if boundary <= now_ms:
            # Slept through the boundary; jump straight to the current period.
            log.info("Boundary %d already passed; snapping reference to %d", boundary, now_ms)
            self._set_reference(now_ms)
            boundary = self._next_boundary(now_ms)
            self._notify()
            if boundary is None:
                return

        if self._handle is not None and self._state.armed_timeout_target_ms == boundary:
            return

        self._cancel_timer()
        delay_ms = boundary - now_ms
        self._handle = self._timers.call_later(delay_ms, self._on_timer)
        self._state = self._state.model_copy(update={"armed_timeout_target_ms": boundary})
        log.debug("Armed boundary timer for %d (in %d ms)", boundary, delay_ms)

    def _on_timer(self) -> None:
        self._handle = None
        if not self._running:
            return
        now_ms = self._clock.now_ms()
        log.debug("Boundary timer fired at %d", now_ms)
        self._set_reference(now_ms)
        self._state = self._state.model_copy(update={"armed_timeout_target_ms": None})
        self._recompute()
        self._notify()

    def _set_reference(self, reference_ms: TimestampMs) -> None:
        self._state = self._state.model_copy(update={"window_reference_ms": reference_ms})

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self._state)


def _earliest_end(
    standards: Sequence[Standard], timezone: str, reference_ms: TimestampMs
) -> Optional[TimestampMs]:
    ends = [
        calculate_period_window(
            reference_ms,
            standard.cadence,
            timezone,
            period_start_preference=standard.period_start_preference,
        ).end_ms
        for standard in standards
    ]
    return min(ends) if ends else None
