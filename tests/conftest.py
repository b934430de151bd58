from __future__ import annotations

from typing import Callable

import pytest


class FakeClock:
    def __init__(self, start_ms: int = 0) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now


class FakeTimer:
    def __init__(self, due_ms: int, callback: Callable[[], None]) -> None:
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual scheduler driven by ``advance``; shares time with a FakeClock."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.timers: list[FakeTimer] = []

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.clock.now + delay_ms, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, ms: int) -> None:
        target = self.clock.now + ms
        while True:
            due = sorted(
                (t for t in self.pending if t.due_ms <= target),
                key=lambda t: t.due_ms,
            )
            if not due:
                break
            timer = due[0]
            timer.cancelled = True
            self.clock.now = max(self.clock.now, timer.due_ms)
            timer.callback()
        self.clock.now = target


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(start_ms=1_000_000)


@pytest.fixture
def scheduler(clock: FakeClock) -> FakeScheduler:
    return FakeScheduler(clock)
