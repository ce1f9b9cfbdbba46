"""Domain events for the traffic-switch orchestrator.

Every event is a frozen dataclass inheriting from ``DomainEvent``.  The
orchestrator emits events as a switch moves through its phases; listeners
(history, alerting, dashboards) react without the orchestrator knowing them.

All events carry a ``timestamp`` and a ``source_id`` identifying the
originating orchestrator.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from .enums import Environment, SwitchPhase
from .values import HealthCheckResult, RollbackResult, SwitchOutcome

# ---------------------------------------------------------------------------
# Base event
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    timestamp: float = field(default_factory=time.time)
    source_id: str = ""


# ---------------------------------------------------------------------------
# Switch lifecycle events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SwitchStarted(DomainEvent):
    """A switch acquired the guard and is about to pre-check."""

    switch_id: str = ""
    previous_environment: Environment | None = None
    target_environment: Environment | None = None
    canary: bool = False


@dataclass(frozen=True)
class PhaseEntered(DomainEvent):
    """The switch moved into a new phase of its state machine."""

    switch_id: str = ""
    phase: SwitchPhase = SwitchPhase.IDLE
    environment: Environment | None = None


@dataclass(frozen=True)
class CanaryPollCompleted(DomainEvent):
    """One health poll of the canary window finished."""

    switch_id: str = ""
    poll: int = 0
    total_polls: int = 0
    weight_percent: int = 0
    result: HealthCheckResult | None = None


@dataclass(frozen=True)
class SwitchCommitted(DomainEvent):
    """A switch finished successfully and the new state was committed."""

    outcome: SwitchOutcome | None = None


@dataclass(frozen=True)
class SwitchFailed(DomainEvent):
    """A switch ended with an error."""

    outcome: SwitchOutcome | None = None
    error_kind: str = ""


@dataclass(frozen=True)
class RollbackCompleted(DomainEvent):
    """Traffic was routed back, automatically or by an operator."""

    result: RollbackResult | None = None


@dataclass(frozen=True)
class SwitchAlert(DomainEvent):
    """Live traffic may be in an undefined place; someone must look."""

    error_kind: str = ""
    message: str = ""
    environment: Environment | None = None
