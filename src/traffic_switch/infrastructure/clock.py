"""Time source used for every retry sleep and deadline.

The orchestrator never calls ``asyncio.sleep`` or ``time.monotonic``
directly; it goes through a ``Clock`` so tests can substitute
``traffic_switch.testing.FakeClock`` and assert on the exact sleeps.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod


class Clock(ABC):
    """Monotonic time plus an awaitable sleep."""

    @abstractmethod
    def monotonic(self) -> float:
        """Seconds on a monotonic scale."""

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend the caller for *seconds*."""


class SystemClock(Clock):
    """The real clock."""

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
