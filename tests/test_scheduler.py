"""Tests for the boundary scheduler."""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeClock, FakeTimers, ms
from standards.models import Cadence, CadenceUnit, LogSlice, PeriodStatus, SchedulerState, Standard
from standards.periods import InvalidTimeInput
from standards.scheduler import AsyncioTimers, BoundaryScheduler, SystemClock


def _standard(standard_id: str, unit: CadenceUnit, minimum: float = 100) -> Standard:
    return Standard(
        id=standard_id,
        cadence=Cadence(interval=1, unit=unit),
        minimum=minimum,
        unit="calls",
    )


DAILY = _standard("daily", CadenceUnit.DAY)
WEEKLY = _standard("weekly", CadenceUnit.WEEK)
MONTHLY = _standard("monthly", CadenceUnit.MONTH)


def _scheduler(clock: FakeClock, timers: FakeTimers, **kwargs) -> BoundaryScheduler:
    return BoundaryScheduler("UTC", clock=clock, timers=timers, **kwargs)


class TestArming:
    def test_arms_earliest_boundary(self, clock: FakeClock, timers: FakeTimers) -> None:
        scheduler = _scheduler(clock, timers)
        scheduler.start([MONTHLY, WEEKLY, DAILY])
        assert scheduler.state.armed_timeout_target_ms == ms("2025-12-11T00:00:00+00:00")
        assert len(timers.pending) == 1
        assert timers.pending[0].due_ms == ms("2025-12-11T00:00:00+00:00")

    def test_no_standards_is_idle(self, clock: FakeClock, timers: FakeTimers) -> None:
        scheduler = _scheduler(clock, timers)
        scheduler.start([])
        assert scheduler.state.armed_timeout_target_ms is None
        assert scheduler.next_boundary_ms() is None
        assert timers.handles == []

    def test_redundant_recompute_does_not_rearm(self, clock: FakeClock, timers: FakeTimers) -> None:
        scheduler = _scheduler(clock, timers)
        scheduler.start([DAILY])
        scheduler.set_standards([DAILY])
        scheduler.set_standards([DAILY])
        assert len(timers.handles) == 1

    def test_earlier_boundary_replaces_timer(self, clock: FakeClock, timers: FakeTimers) -> None:
        scheduler = _scheduler(clock, timers)
        scheduler.start([WEEKLY])
        first = timers.handles[0]
        assert first.due_ms == ms("2025-12-15T00:00:00+00:00")

        scheduler.set_standards([WEEKLY, DAILY])
        assert first.cancelled
        assert len(timers.pending) == 1
        assert scheduler.state.armed_timeout_target_ms == ms("2025-12-11T00:00:00+00:00")

    def test_removing_all_standards_cancels_timer(self, clock: FakeClock, timers: FakeTimers) -> None:
        scheduler = _scheduler(clock, timers)
        scheduler.start([DAILY])
        scheduler.set_standards([])
        assert timers.pending == []
        assert scheduler.state.armed_timeout_target_ms is None

    def test_invalid_timezone(self, clock: FakeClock, timers: FakeTimers) -> None:
        with pytest.raises(InvalidTimeInput):
            BoundaryScheduler("Not/AZone", clock=clock, timers=timers)


class TestBoundaryAdvance:
    def test_label_advances_when_timer_fires(self) -> None:
        clock = FakeClock(ms("2025-12-10T23:58:00+00:00"))
        timers = FakeTimers(clock)
        scheduler = _scheduler(clock, timers)
        scheduler.start([DAILY])
        logs = [LogSlice(id="a", standard_id="daily", value=10, occurred_at_ms=clock.now)]

        before = scheduler.progress(logs)["daily"]
        assert before.period_label == "12/10/2025"
        assert before.status == PeriodStatus.IN_PROGRESS

        # Wall clock passes midnight before the timer gets to run.
        clock.set(ms("2025-12-11T00:01:00+00:00"))
        held = scheduler.progress(logs)["daily"]
        assert held.period_label == "12/10/2025"
        assert held.status == PeriodStatus.MISSED

        timers.advance_to(clock.now)
        after = scheduler.progress(logs)["daily"]
        assert after.period_label == "12/11/2025"
        assert after.current_total == 0
        assert after.status == PeriodStatus.IN_PROGRESS
        assert scheduler.window_reference_ms == ms("2025-12-11T00:01:00+00:00")
        assert scheduler.state.armed_timeout_target_ms == ms("2025-12-12T00:00:00+00:00")

    def test_fire_rearms_following_boundary(self, clock: FakeClock, timers: FakeTimers) -> None:
        scheduler = _scheduler(clock, timers)
        scheduler.start([DAILY])
        timers.advance_to(ms("2025-12-11T00:00:00+00:00"))
        assert scheduler.window_reference_ms == ms("2025-12-11T00:00:00+00:00")
        assert scheduler.state.armed_timeout_target_ms == ms("2025-12-12T00:00:00+00:00")
        assert len(timers.pending) == 1

    def test_all_standards_flip_together(self) -> None:
        clock = FakeClock(ms("2025-12-14T12:00:00+00:00"))  # Sunday
        timers = FakeTimers(clock)
        scheduler = _scheduler(clock, timers)
        scheduler.start([WEEKLY, DAILY])
        assert scheduler.state.armed_timeout_target_ms == ms("2025-12-15T00:00:00+00:00")

        timers.advance_to(ms("2025-12-15T00:00:05+00:00"))
        progress = scheduler.progress([])
        assert progress["daily"].period_label == "12/15/2025"
        assert progress["weekly"].period_label == "12/15/2025 - 12/21/2025"

    def test_on_change_receives_new_state(self, clock: FakeClock, timers: FakeTimers) -> None:
        seen: list[SchedulerState] = []
        scheduler = _scheduler(clock, timers, on_change=seen.append)
        scheduler.start([DAILY])
        assert seen == []

        timers.advance_to(ms("2025-12-11T00:00:00+00:00"))
        assert len(seen) == 1
        assert seen[0].window_reference_ms == ms("2025-12-11T00:00:00+00:00")


class TestCatchUp:
    def test_resume_snaps_to_now(self, clock: FakeClock, timers: FakeTimers) -> None:
        scheduler = _scheduler(clock, timers)
        scheduler.start([DAILY])
        stale = timers.handles[0]

        # Suspended for two days; the timer never ran.
        clock.set(ms("2025-12-12T12:00:00+00:00"))
        scheduler.resume()

        assert scheduler.window_reference_ms == clock.now
        assert stale.cancelled
        assert scheduler.state.armed_timeout_target_ms == ms("2025-12-13T00:00:00+00:00")
        assert scheduler.progress([])["daily"].period_label == "12/12/2025"

    def test_resume_without_boundary_change(self, clock: FakeClock, timers: FakeTimers) -> None:
        seen: list[SchedulerState] = []
        scheduler = _scheduler(clock, timers, on_change=seen.append)
        scheduler.start([DAILY])
        clock.set(clock.now + 60_000)
        scheduler.resume()
        assert scheduler.window_reference_ms == clock.now
        assert len(timers.pending) == 1
        assert len(seen) == 1

    def test_passed_boundary_snaps_on_standards_change(
        self, clock: FakeClock, timers: FakeTimers
    ) -> None:
        seen: list[SchedulerState] = []
        scheduler = _scheduler(clock, timers, on_change=seen.append)
        scheduler.start([WEEKLY])
        clock.set(ms("2025-12-16T09:00:00+00:00"))

        scheduler.set_standards([WEEKLY, DAILY])
        assert scheduler.window_reference_ms == clock.now
        assert scheduler.state.armed_timeout_target_ms == ms("2025-12-17T00:00:00+00:00")
        assert len(seen) == 1
        assert scheduler.progress([])["weekly"].period_label == "12/15/2025 - 12/21/2025"


class TestLifecycle:
    def test_stop_cancels_timer(self, clock: FakeClock, timers: FakeTimers) -> None:
        scheduler = _scheduler(clock, timers)
        scheduler.start([DAILY])
        scheduler.stop()
        assert timers.pending == []
        assert scheduler.state.armed_timeout_target_ms is None
        assert not scheduler.running

    def test_stale_fire_after_stop_is_ignored(self, clock: FakeClock, timers: FakeTimers) -> None:
        scheduler = _scheduler(clock, timers)
        scheduler.start([DAILY])
        handle = timers.handles[0]
        reference = scheduler.window_reference_ms
        scheduler.stop()

        clock.set(ms("2025-12-11T00:00:00+00:00"))
        handle.callback()
        assert scheduler.window_reference_ms == reference

    def test_resume_when_stopped_does_nothing(self, clock: FakeClock, timers: FakeTimers) -> None:
        scheduler = _scheduler(clock, timers)
        reference = scheduler.window_reference_ms
        clock.set(clock.now + 1000)
        scheduler.resume()
        assert scheduler.window_reference_ms == reference
        assert timers.handles == []


class TestRealTimers:
    def test_system_clock_is_epoch_ms(self) -> None:
        assert SystemClock().now_ms() > ms("2025-01-01T00:00:00+00:00")

    def test_asyncio_timer_fires_and_cancels(self) -> None:
        fired: list[str] = []

        async def _run() -> None:
            timers = AsyncioTimers()
            timers.call_later(5, lambda: fired.append("kept"))
            cancelled = timers.call_later(5, lambda: fired.append("cancelled"))
            cancelled.cancel()
            await asyncio.sleep(0.05)

        asyncio.run(_run())
        assert fired == ["kept"]

    def test_explicit_loop_arms_outside_running_loop(self, clock: FakeClock) -> None:
        loop = asyncio.new_event_loop()
        try:
            scheduler = BoundaryScheduler("UTC", clock=clock, timers=AsyncioTimers(loop))
            scheduler.start([DAILY])
            assert scheduler.state.armed_timeout_target_ms == ms("2025-12-11T00:00:00+00:00")
            scheduler.stop()
        finally:
            loop.close()

    def test_timers_are_required(self, clock: FakeClock) -> None:
        with pytest.raises(TypeError):
            BoundaryScheduler("UTC", clock=clock)  # type: ignore[call-arg]
