"""Domain exceptions for the traffic-switch orchestrator.

All orchestrator errors inherit from ``TrafficSwitchError`` so callers can
catch the full family with a single ``except`` clause.  Errors raised after a
switch has acquired the single-flight guard derive from ``SwitchAborted`` and
carry the failed ``SwitchOutcome`` in ``outcome``.

``critical`` marks the kinds that may leave live traffic in an undefined
place; the orchestrator logs those at CRITICAL level and publishes an alert.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .enums import Environment, SwitchPhase
    from .values import HealthCheckResult, RollbackResult, SwitchOutcome


class TrafficSwitchError(Exception):
    """Base exception for all traffic-switch errors."""

    critical: bool = False

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}

    @property
    def kind(self) -> str:
        return type(self).__name__


class RouterError(TrafficSwitchError):
    """Raised by a ``RouterUpdater`` when a routing operation fails.

    This is the collaborator-level error; the orchestrator converts it into
    ``RouterUpdateFailed`` or ``RollbackFailed`` depending on the phase.
    """

    def __init__(
        self,
        message: str = "Router operation failed",
        operation: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.operation = operation


class SwitchInProgress(TrafficSwitchError):
    """Another switch holds the single-flight guard.  No state changed."""

    def __init__(
        self,
        message: str = "Traffic switch already in progress",
        operation: str = "switch",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.operation = operation


class SwitchAborted(TrafficSwitchError):
    """Base for every failure of a switch that had started."""

    def __init__(
        self,
        message: str = "Traffic switch aborted",
        environment: Environment | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.environment = environment
        self.outcome: SwitchOutcome | None = None


class TargetUnhealthy(SwitchAborted):
    """The pre-check never saw the target healthy.  No state changed."""

    def __init__(
        self,
        message: str = "Target environment is not healthy",
        environment: Environment | None = None,
        attempts: int = 0,
        health_check: HealthCheckResult | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, environment, details)
        self.attempts = attempts
        self.health_check = health_check


class CanaryFailed(SwitchAborted):
    """A canary poll saw the target unhealthy.  No cutover was committed."""

    def __init__(
        self,
        message: str = "Canary monitoring failed",
        environment: Environment | None = None,
        percentage: int = 0,
        polls_completed: int = 0,
        health_check: HealthCheckResult | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, environment, details)
        self.percentage = percentage
        self.polls_completed = polls_completed
        self.health_check = health_check


class RouterUpdateFailed(SwitchAborted):
    """The cutover call itself failed.

    Routing may be in an undefined split state; this is not rolled back
    automatically because nothing had been committed yet.
    """

    critical = True

    def __init__(
        self,
        message: str = "Router update failed",
        environment: Environment | None = None,
        operation: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, environment, details)
        self.operation = operation


class PostSwitchValidationFailed(SwitchAborted):
    """Cutover succeeded but validation failed; a rollback was performed."""

    def __init__(
        self,
        message: str = "Post-switch validation failed",
        environment: Environment | None = None,
        health_check: HealthCheckResult | None = None,
        rollback: RollbackResult | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, environment, details)
        self.health_check = health_check
        self.rollback = rollback


class SwitchCancelled(SwitchAborted):
    """The switch was cancelled or ran past its deadline."""

    def __init__(
        self,
        message: str = "Traffic switch cancelled",
        environment: Environment | None = None,
        phase: SwitchPhase | None = None,
        rollback: RollbackResult | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, environment, details)
        self.phase = phase
        self.rollback = rollback


class RollbackFailed(SwitchAborted):
    """Routing traffic back failed.  Fatal; nothing further is attempted."""

    critical = True

    def __init__(
        self,
        message: str = "Rollback failed",
        environment: Environment | None = None,
        rolled_back_to: Environment | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, environment, details)
        self.rolled_back_to = rolled_back_to
