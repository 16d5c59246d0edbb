"""Tests for the rate limiter and debouncer."""

import asyncio
import sys
import time
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from throttle import Debouncer, RateLimiter


class ManualClock:
    """Clock whose sleep just moves time forward."""

    def __init__(self):
        self.now = 100.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.mark.asyncio
async def test_first_request_is_not_delayed():
    clock = ManualClock()
    limiter = RateLimiter(1.0, clock=clock, sleep=clock.sleep)
    await limiter.acquire()
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_back_to_back_requests_are_spaced():
    clock = ManualClock()
    limiter = RateLimiter(1.0, clock=clock, sleep=clock.sleep)
    await limiter.acquire()
    clock.now += 0.25
    await limiter.acquire()
    assert clock.sleeps == [pytest.approx(0.75)]


@pytest.mark.asyncio
async def test_no_wait_after_interval_elapsed():
    clock = ManualClock()
    limiter = RateLimiter(1.0, clock=clock, sleep=clock.sleep)
    await limiter.acquire()
    clock.now += 1.5
    await limiter.acquire()
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_concurrent_callers_queue_in_turn():
    clock = ManualClock()
    limiter = RateLimiter(1.0, clock=clock, sleep=clock.sleep)
    await asyncio.gather(*(limiter.acquire() for _ in range(3)))
    assert clock.sleeps == [pytest.approx(1.0), pytest.approx(1.0)]
    assert clock.now == pytest.approx(102.0)


@pytest.mark.asyncio
async def test_reset_forgets_last_request():
    clock = ManualClock()
    limiter = RateLimiter(1.0, clock=clock, sleep=clock.sleep)
    await limiter.acquire()
    limiter.reset()
    await limiter.acquire()
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_real_clock_spacing():
    limiter = RateLimiter(0.2)
    start = time.monotonic()
    await limiter.acquire()
    await limiter.acquire()
    assert time.monotonic() - start >= 0.19


@pytest.mark.asyncio
async def test_debouncer_runs_only_the_last_action():
    calls = []
    debouncer = Debouncer(0.02)

    async def action(value):
        calls.append(value)

    debouncer.schedule(lambda: action("B"))
    debouncer.schedule(lambda: action("Be"))
    task = debouncer.schedule(lambda: action("Ber"))
    await task
    assert calls == ["Ber"]


@pytest.mark.asyncio
async def test_debouncer_cancel():
    calls = []
    debouncer = Debouncer(0.02)

    async def action():
        calls.append(1)

    task = debouncer.schedule(action)
    debouncer.cancel()
    await asyncio.sleep(0.05)
    assert task.cancelled()
    assert calls == []
    assert debouncer.pending is None
