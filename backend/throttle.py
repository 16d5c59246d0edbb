"""Request spacing and input debouncing for the search path."""

import asyncio
import logging
import time
from typing import Awaitable, Callable

import config

logger = logging.getLogger(__name__)


class RateLimiter:
    """Minimum spacing between consecutive outbound requests.

    Callers queue on the lock and are delayed, never rejected. One instance is
    shared by every client talking to the same provider.
    """

    def __init__(
        self,
        min_interval_s: float = config.SEARCH_MIN_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval_s = min_interval_s
        self._clock = clock
        self._sleep = sleep
        self._last_request_ts: float | None = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            if self._last_request_ts is not None:
                wait = self.min_interval_s - (self._clock() - self._last_request_ts)
                if wait > 0:
                    logger.debug("Rate limited, waiting %.3fs", wait)
                    await self._sleep(wait)
            self._last_request_ts = self._clock()

    def reset(self) -> None:
        self._last_request_ts = None


class Debouncer:
    """Runs the latest scheduled coroutine once input has been quiet for delay_s."""

    def __init__(self, delay_s: float = config.SEARCH_DEBOUNCE_S):
        self.delay_s = delay_s
        self._task: asyncio.Task | None = None

    def schedule(self, factory: Callable[[], Awaitable[None]]) -> asyncio.Task:
        self.cancel()
        self._task = asyncio.create_task(self._run(factory))
        return self._task

    async def _run(self, factory: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(self.delay_s)
        await factory()

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    @property
    def pending(self) -> asyncio.Task | None:
        return self._task
