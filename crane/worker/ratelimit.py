# crane/worker/ratelimit.py
from __future__ import annotations
import asyncio
import time
from collections.abc import Awaitable, Callable

__all__ = ["RateLimiter"]



class RateLimiter:
    """
    Spaces successive acquisitions at least `minInterval` seconds apart.

    The first wait() returns immediately. Not shared between tasks: the
    registry lookups that use it are sequential.
    """
    def __init__(
        self,
        minInterval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if minInterval < 0:
            raise ValueError("minInterval must be >= 0")
        self.minInterval = float(minInterval)
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None

    @classmethod
    def fromMs(cls, intervalMs: int, **kwargs) -> RateLimiter:
        return cls(max(0, intervalMs) / 1000.0, **kwargs)

    async def wait(self) -> None:
        now = self._clock()
        if self._last is not None:
            # Loop because the event loop may wake a timer marginally early
            while (delay := self._last + self.minInterval - now) > 0:
                await self._sleep(delay)
                now = self._clock()
        self._last = now

    def reset(self) -> None:
        self._last = None
