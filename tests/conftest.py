"""Shared fixtures: a virtual clock and timer service for the scheduler."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest


def ms(iso: str) -> int:
    """Epoch milliseconds for an ISO-8601 string with an offset."""
    return round(datetime.fromisoformat(iso).timestamp() * 1000)


class FakeClock:
    def __init__(self, now_ms: int) -> None:
        self.now = now_ms

    def now_ms(self) -> int:
        return self.now

    def set(self, now_ms: int) -> None:
        """Jump the clock without firing timers (process was suspended)."""
        self.now = now_ms


class FakeHandle:
    def __init__(self, due_ms: int, callback: Callable[[], None]) -> None:
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTimers:
    """Timers that only fire when the test advances the clock."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.handles: list[FakeHandle] = []

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(self.clock.now + delay_ms, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> list[FakeHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def advance_to(self, target_ms: int) -> None:
        """Move the clock forward, firing due timers in order."""
        while True:
            due = [h for h in self.pending if h.due_ms <= target_ms]
            if not due:
                break
            handle = min(due, key=lambda h: h.due_ms)
            self.clock.now = max(self.clock.now, handle.due_ms)
            handle.fired = True
            handle.callback()
        self.clock.now = max(self.clock.now, target_ms)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(ms("2025-12-10T12:00:00+00:00"))


@pytest.fixture()
def timers(clock: FakeClock) -> FakeTimers:
    return FakeTimers(clock)


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep every test away from the real ~/.config directory."""
    cfg_dir = tmp_path / "config"
    monkeypatch.delenv("TZ", raising=False)
    with (
        patch("standards.config._CONFIG_DIR", cfg_dir),
        patch("standards.config._CONFIG_FILE", cfg_dir / "config.json"),
    ):
        yield
