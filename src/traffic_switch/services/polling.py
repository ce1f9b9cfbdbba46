"""Retry and polling primitives shared by the switch phases.

``SwitchContext`` is created once per switch.  It carries the cancellation
flag and the optional deadline, and every suspension point of the protocol
(probe calls, router calls, retry sleeps, the stabilisation delay) goes
through it so a stuck switch can be aborted.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from traffic_switch.domain.enums import Environment, SwitchPhase
from traffic_switch.domain.exceptions import SwitchCancelled
from traffic_switch.domain.values import HealthCheckResult
from traffic_switch.infrastructure.clock import Clock

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProbeCall = Callable[[Environment], Awaitable[HealthCheckResult]]


class SwitchContext:
    """Cancellation and deadline state for one switch.

    Parameters
    ----------
    clock:
        Time source for sleeps and the deadline.
    environment:
        The switch target, used when reporting a cancellation.
    deadline_s:
        Overall budget measured from construction.  ``None`` means none.
    """

    def __init__(
        self,
        clock: Clock,
        environment: Environment,
        deadline_s: float | None = None,
    ) -> None:
        self._clock = clock
        self._environment = environment
        self._cancelled = asyncio.Event()
        self._started = clock.monotonic()
        self._deadline = None if deadline_s is None else self._started + deadline_s
        self._reason = ""

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def elapsed_s(self) -> float:
        return self._clock.monotonic() - self._started

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self, reason: str = "cancelled by operator") -> None:
        self._reason = reason
        self._cancelled.set()

    def check(self, phase: SwitchPhase) -> None:
        """Raise ``SwitchCancelled`` if cancelled or past the deadline."""
        if self._cancelled.is_set():
            raise SwitchCancelled(
                f"Switch to {self._environment.value} {self._reason} during {phase.value}",
                environment=self._environment,
                phase=phase,
            )
        if self._deadline is not None and self._clock.monotonic() >= self._deadline:
            raise SwitchCancelled(
                f"Switch to {self._environment.value} exceeded its deadline "
                f"during {phase.value}",
                environment=self._environment,
                phase=phase,
                details={"elapsed_s": self.elapsed_s},
            )

    @property
    def remaining_s(self) -> float | None:
        """Seconds left before the deadline, or ``None`` without one."""
        if self._deadline is None:
            return None
        return max(self._deadline - self._clock.monotonic(), 0.0)

    async def sleep(self, seconds: float, phase: SwitchPhase) -> None:
        """Sleep unless cancelled first; re-checks before and after.

        The sleep never runs past the deadline.
        """
        self.check(phase)
        remaining = self.remaining_s
        if remaining is not None:
            seconds = min(seconds, remaining)
        if seconds > 0:
            sleeper = asyncio.ensure_future(self._clock.sleep(seconds))
            waiter = asyncio.ensure_future(self._cancelled.wait())
            try:
                await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for task in (sleeper, waiter):
                    if not task.done():
                        task.cancel()
        self.check(phase)

    async def interruptible(self, call: Awaitable[T], phase: SwitchPhase) -> T:
        """Await *call* unless the switch is cancelled first.

        A cancellation abandons *call* and raises ``SwitchCancelled``.  Only
        for calls that change nothing, such as probes; router updates run to
        completion so the caller always knows which route was applied.
        """
        task = asyncio.ensure_future(call)
        waiter = asyncio.ensure_future(self._cancelled.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
        if task.cancelled():
            self.check(phase)
        return task.result()


async def bounded(call: Awaitable[T], timeout_s: float) -> T:
    """Await *call* for at most *timeout_s* seconds."""
    return await asyncio.wait_for(call, timeout=timeout_s)


async def probe_once(
    probe_call: ProbeCall,
    environment: Environment,
    timeout_s: float,
    attempt: int = 1,
    context: SwitchContext | None = None,
    phase: SwitchPhase = SwitchPhase.PRE_CHECKING,
) -> HealthCheckResult:
    """One bounded probe call; timeouts and stray errors count as unhealthy.

    With a *context*, a cancellation interrupts the call and raises
    ``SwitchCancelled``.
    """
    call = bounded(probe_call(environment), timeout_s)
    try:
        if context is not None:
            result = await context.interruptible(call, phase)
        else:
            result = await call
    except SwitchCancelled:
        raise
    except asyncio.TimeoutError:
        return HealthCheckResult.unhealthy(
            environment, f"Health check timed out after {timeout_s}s", attempt=attempt
        )
    except Exception as exc:  # noqa: BLE001 - the probe contract forbids raising
        logger.warning(
            "Health probe raised for %s (treated as unhealthy): %s",
            environment.value,
            exc,
        )
        return HealthCheckResult.unhealthy(
            environment, f"{type(exc).__name__}: {exc}", attempt=attempt
        )
    return result.with_attempt(attempt)


async def poll_until_healthy(
    probe_call: ProbeCall,
    environment: Environment,
    retries: int,
    interval_s: float,
    context: SwitchContext,
    phase: SwitchPhase,
    timeout_s: float = 10.0,
) -> HealthCheckResult:
    """Probe up to *retries* times, sleeping *interval_s* between attempts.

    Stops at the first healthy result.  When every attempt fails the last
    result is returned with ``attempt == retries`` and a reason naming the
    exhausted budget.
    """
    last: HealthCheckResult | None = None
    for attempt in range(1, retries + 1):
        context.check(phase)
        last = await probe_once(
            probe_call, environment, timeout_s, attempt, context=context, phase=phase
        )
        if last.healthy:
            logger.debug(
                "%s: %s healthy on attempt %d/%d",
                phase.value, environment.value, attempt, retries,
            )
            return last
        logger.info(
            "%s: health check attempt %d/%d for %s failed: %s",
            phase.value, attempt, retries, environment.value, last.reason or "unhealthy",
        )
        if attempt < retries:
            await context.sleep(interval_s, phase)

    assert last is not None
    return HealthCheckResult.unhealthy(
        environment,
        f"Health check failed after {retries} attempt(s): {last.reason or 'unhealthy'}",
        attempt=retries,
        detail=last.detail,
    )
