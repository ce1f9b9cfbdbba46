"""Scripted collaborators for tests and examples.

Provides a fake clock that records every sleep instead of waiting, a health
probe that replays a per-environment script, and routers that fail or hang
on demand.  None of them touch the network or a real cluster.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from typing import Union

from traffic_switch.domain.enums import Environment
from traffic_switch.domain.exceptions import RouterError
from traffic_switch.domain.values import HealthCheckResult
from traffic_switch.infrastructure.clock import Clock
from traffic_switch.services.health import HealthProbe
from traffic_switch.services.router import InMemoryRouter

Step = Union[bool, HealthCheckResult, BaseException]


class FakeClock(Clock):
    """Clock whose sleeps return at once and advance virtual time.

    Every requested duration is appended to ``sleeps``.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self._now += seconds
        # Still yield so concurrent callers interleave as they would for real.
        await asyncio.sleep(0)


class ScriptedHealthProbe(HealthProbe):
    """Health probe replaying a script per environment.

    Each step is ``True``/``False``, a ready-made ``HealthCheckResult``, or an
    exception to raise.  The last step repeats once the script is exhausted;
    an environment without a script is always healthy.

    Parameters
    ----------
    checks:
        Scripts for ``check()``, keyed by environment.
    validations:
        Scripts for ``validate()``.  Environments without one are valid.
    gate:
        When set, every ``check()`` waits on this event first, so a test can
        hold a switch inside its pre-check.
    """

    def __init__(
        self,
        checks: Mapping[Environment, Iterable[Step]] | None = None,
        validations: Mapping[Environment, Iterable[Step]] | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self._checks = {Environment.parse(e): list(s) for e, s in (checks or {}).items()}
        self._validations = {
            Environment.parse(e): list(s) for e, s in (validations or {}).items()
        }
        self.gate = gate
        self.check_calls: dict[Environment, int] = {e: 0 for e in Environment}
        self.validate_calls: dict[Environment, int] = {e: 0 for e in Environment}

    def script(self, environment: Environment, *steps: Step) -> None:
        """Replace the ``check()`` script of *environment*."""
        self._checks[environment] = list(steps)

    async def check(self, environment: Environment) -> HealthCheckResult:
        if self.gate is not None:
            await self.gate.wait()
        index = self.check_calls[environment]
        self.check_calls[environment] += 1
        return _play(self._checks.get(environment), index, environment)

    async def validate(self, environment: Environment) -> HealthCheckResult:
        index = self.validate_calls[environment]
        self.validate_calls[environment] += 1
        return _play(self._validations.get(environment), index, environment)

    async def detailed(self, environment: Environment) -> HealthCheckResult:
        return await self.check(environment)


def _play(steps: list[Step] | None, index: int, environment: Environment) -> HealthCheckResult:
    if not steps:
        return HealthCheckResult(healthy=True, environment=environment)
    step = steps[min(index, len(steps) - 1)]
    if isinstance(step, BaseException):
        raise step
    if isinstance(step, HealthCheckResult):
        return step
    if step:
        return HealthCheckResult(healthy=True, environment=environment)
    return HealthCheckResult.unhealthy(environment, "scripted failure")


class FailingRouter(InMemoryRouter):
    """In-memory router that raises ``RouterError`` on chosen operations.

    Parameters
    ----------
    active:
        Environment initially receiving traffic.
    fail:
        Operation name -> number of calls that succeed before every further
        call fails.  ``{"set_full_traffic": 1}`` lets the cutover through and
        fails the rollback.
    """

    def __init__(
        self,
        active: Environment = Environment.BLUE,
        fail: Mapping[str, int] | None = None,
    ) -> None:
        super().__init__(active)
        self._fail = dict(fail or {})
        self._counts: dict[str, int] = {}

    def _maybe_fail(self, operation: str) -> None:
        if operation not in self._fail:
            return
        count = self._counts.get(operation, 0)
        self._counts[operation] = count + 1
        if count >= self._fail[operation]:
            self.calls.append((operation, "failed"))
            raise RouterError(f"{operation} refused by test router", operation=operation)

    async def set_full_traffic(self, environment: Environment) -> None:
        self._maybe_fail("set_full_traffic")
        await super().set_full_traffic(environment)

    async def set_canary_weight(self, environment: Environment, percent: int) -> None:
        self._maybe_fail("set_canary_weight")
        await super().set_canary_weight(environment, percent)

    async def get_active_environment(self) -> Environment:
        self._maybe_fail("get_active_environment")
        return await super().get_active_environment()


class HangingRouter(InMemoryRouter):
    """In-memory router whose chosen operations never return.

    Parameters
    ----------
    active:
        Environment initially receiving traffic.
    hang:
        Operation name -> number of calls that succeed before every further
        call blocks until cancelled.
    """

    def __init__(
        self,
        active: Environment = Environment.BLUE,
        hang: Mapping[str, int] | None = None,
    ) -> None:
        super().__init__(active)
        self._hang = dict(hang or {})
        self._counts: dict[str, int] = {}
        self.abandoned: list[str] = []

    async def _maybe_hang(self, operation: str) -> None:
        if operation not in self._hang:
            return
        count = self._counts.get(operation, 0)
        self._counts[operation] = count + 1
        if count >= self._hang[operation]:
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                self.abandoned.append(operation)
                raise

    async def set_full_traffic(self, environment: Environment) -> None:
        await self._maybe_hang("set_full_traffic")
        await super().set_full_traffic(environment)

    async def set_canary_weight(self, environment: Environment, percent: int) -> None:
        await self._maybe_hang("set_canary_weight")
        await super().set_canary_weight(environment, percent)

    async def get_active_environment(self) -> Environment:
        await self._maybe_hang("get_active_environment")
        return await super().get_active_environment()
