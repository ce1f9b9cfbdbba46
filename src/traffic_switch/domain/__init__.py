"""Domain layer for the traffic-switch orchestrator.

Re-exports all public domain types so that consumers can write::

    from traffic_switch.domain import Environment, SwitchOutcome, TargetUnhealthy
"""

# -- Enumerations -------------------------------------------------------------
from .enums import Environment, Recommendation, SwitchPhase

# -- Value Objects ------------------------------------------------------------
from .values import (
    CanaryPlan,
    EnvironmentComparison,
    HealthCheckResult,
    RollbackResult,
    SwitchOutcome,
    SwitchStatus,
)

# -- Aggregates ---------------------------------------------------------------
from .aggregates import SwitchState

# -- Domain Events ------------------------------------------------------------
from .events import (
    CanaryPollCompleted,
    DomainEvent,
    PhaseEntered,
    RollbackCompleted,
    SwitchAlert,
    SwitchCommitted,
    SwitchFailed,
    SwitchStarted,
)

# -- Exceptions ---------------------------------------------------------------
from .exceptions import (
    CanaryFailed,
    PostSwitchValidationFailed,
    RollbackFailed,
    RouterError,
    RouterUpdateFailed,
    SwitchAborted,
    SwitchCancelled,
    SwitchInProgress,
    TargetUnhealthy,
    TrafficSwitchError,
)

__all__ = [
    # Enums
    "Environment",
    "Recommendation",
    "SwitchPhase",
    # Values
    "CanaryPlan",
    "EnvironmentComparison",
    "HealthCheckResult",
    "RollbackResult",
    "SwitchOutcome",
    "SwitchStatus",
    # Aggregates
    "SwitchState",
    # Events
    "CanaryPollCompleted",
    "DomainEvent",
    "PhaseEntered",
    "RollbackCompleted",
    "SwitchAlert",
    "SwitchCommitted",
    "SwitchFailed",
    "SwitchStarted",
    # Exceptions
    "CanaryFailed",
    "PostSwitchValidationFailed",
    "RollbackFailed",
    "RouterError",
    "RouterUpdateFailed",
    "SwitchAborted",
    "SwitchCancelled",
    "SwitchInProgress",
    "TargetUnhealthy",
    "TrafficSwitchError",
]
