"""
MTG AU Marketplace — Outbound Request Pacing

One RateGovernor paces every upstream call routed through it: acquire()
returns only after at least `min_interval` seconds have passed since the
previous grant, across all callers. Pacing is global, not per provider.

Waiters queue on an asyncio.Lock, so grants are roughly FIFO. acquire()
never raises; the worst case is added latency.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)


class RateGovernor:
    """
    Global minimum-interval throttle for outbound requests.

    Usage:
        governor = RateGovernor(min_interval=0.1)
        await governor.acquire()
        response = await client.get(...)
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if min_interval < 0:
            raise ValueError(f"min_interval must be non-negative, got {min_interval}")
        self._min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_grant: float | None = None

    @property
    def min_interval(self) -> float:
        return self._min_interval

    async def acquire(self) -> None:
        """Wait until the next request slot is available, then claim it."""
        async with self._lock:
            if self._last_grant is not None:
                wait_seconds = self._min_interval - (self._clock() - self._last_grant)
                if wait_seconds > 0:
                    logger.debug(
                        "rate_governor_wait",
                        wait_seconds=round(wait_seconds, 4),
                        source="rate_governor",
                    )
                    await self._sleep(wait_seconds)
            self._last_grant = self._clock()

    def reset(self) -> None:
        """Forget the last grant (next acquire() is immediate)."""
        self._last_grant = None
