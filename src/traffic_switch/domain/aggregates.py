"""Aggregate root for the traffic-switch orchestrator.

``SwitchState`` is the orchestrator's mutable record.  External code should
only change it through its methods: the guard is taken with
``try_acquire()``, released with ``release()``, and the committed environment
changes only through ``commit()``.
"""

from __future__ import annotations

import threading

from .enums import Environment, SwitchPhase


class SwitchState:
    """Current/target environments plus the single-flight guard.

    ``target`` is derived from ``current`` so the two can never be equal.
    The guard is a non-blocking test-and-set: a second caller is refused
    rather than queued.
    """

    def __init__(self, current: Environment = Environment.BLUE) -> None:
        self._current = Environment.parse(current)
        self._phase = SwitchPhase.IDLE
        self._guard = threading.Lock()
        self._holder = ""

    # -- properties -----------------------------------------------------------

    @property
    def current(self) -> Environment:
        """The environment presently receiving production traffic."""
        return self._current

    @property
    def target(self) -> Environment:
        """The inactive environment."""
        return self._current.other

    @property
    def phase(self) -> SwitchPhase:
        return self._phase

    @property
    def switch_in_progress(self) -> bool:
        return self._guard.locked()

    @property
    def holder(self) -> str:
        """Name of the operation holding the guard, or ``""``."""
        return self._holder

    # -- guard ----------------------------------------------------------------

    def try_acquire(self, operation: str) -> bool:
        """Take the guard for *operation*; ``False`` if already held."""
        if not self._guard.acquire(blocking=False):
            return False
        self._holder = operation
        return True

    def release(self) -> None:
        self._holder = ""
        self._phase = SwitchPhase.IDLE
        self._guard.release()

    # -- mutations ------------------------------------------------------------

    def enter(self, phase: SwitchPhase) -> None:
        if not self._guard.locked():
            raise RuntimeError(f"cannot enter {phase.value} without holding the guard")
        self._phase = phase

    def commit(self, environment: Environment) -> None:
        """Make *environment* current; its complement becomes the target."""
        if not self._guard.locked():
            raise RuntimeError("cannot commit without holding the guard")
        self._current = Environment.parse(environment)

    def __repr__(self) -> str:
        return (
            f"SwitchState(current={self._current.value}, target={self.target.value}, "
            f"switch_in_progress={self.switch_in_progress}, phase={self._phase.value})"
        )
