"""Value objects for the traffic-switch orchestrator.

All types here are frozen dataclasses -- immutable, compared by value.
They are produced fresh by probes and by the orchestrator and handed to the
caller, who owns them from then on.
"""

from __future__ import annotations

import math
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from .enums import Environment, Recommendation, SwitchPhase

# ---------------------------------------------------------------------------
# HealthCheckResult
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HealthCheckResult:
    """Outcome of probing one environment.

    ``attempt`` is the 1-based attempt number on which the result was
    obtained (or the number of attempts made, for an exhausted budget).
    """

    healthy: bool
    environment: Environment
    attempt: int = 1
    detail: Mapping[str, Any] = field(default_factory=dict)
    reason: str = ""

    def __post_init__(self) -> None:
        if self.attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {self.attempt}")

    @classmethod
    def unhealthy(
        cls,
        environment: Environment,
        reason: str,
        attempt: int = 1,
        detail: Mapping[str, Any] | None = None,
    ) -> HealthCheckResult:
        return cls(
            healthy=False,
            environment=environment,
            attempt=attempt,
            detail=detail or {},
            reason=reason,
        )

    def with_attempt(self, attempt: int) -> HealthCheckResult:
        """Return a copy stamped with a different attempt number."""
        return replace(self, attempt=attempt)


# ---------------------------------------------------------------------------
# CanaryPlan
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CanaryPlan:
    """Input for a ramped cutover; lives only for the duration of one switch."""

    target_environment: Environment
    weight_percent: int
    monitor_duration_s: float = 30.0
    poll_interval_s: float = 5.0

    def __post_init__(self) -> None:
        if not 0 <= self.weight_percent <= 100:
            raise ValueError(
                f"weight_percent must be in [0, 100], got {self.weight_percent}"
            )
        if self.monitor_duration_s <= 0:
            raise ValueError(
                f"monitor_duration_s must be > 0, got {self.monitor_duration_s}"
            )
        if self.poll_interval_s <= 0:
            raise ValueError(
                f"poll_interval_s must be > 0, got {self.poll_interval_s}"
            )

    @property
    def poll_count(self) -> int:
        """Number of health polls that fit in the monitoring window."""
        return max(1, math.ceil(self.monitor_duration_s / self.poll_interval_s))


# ---------------------------------------------------------------------------
# RollbackResult
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RollbackResult:
    """Result of routing all traffic back to a previous environment."""

    success: bool
    rolled_back_to: Environment
    timestamp: float = field(default_factory=time.time)
    reason: str = ""
    automatic: bool = False


# ---------------------------------------------------------------------------
# SwitchOutcome
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SwitchOutcome:
    """Terminal record of one switch attempt.

    On failure ``current_environment`` is the environment left receiving
    traffic (the pre-switch one whenever a rollback succeeded) and ``error``
    holds the reason.
    """

    success: bool
    previous_environment: Environment
    current_environment: Environment
    requested_environment: Environment
    timestamp: float = field(default_factory=time.time)
    health_check: HealthCheckResult | None = None
    post_switch_health: HealthCheckResult | None = None
    canary_checks: tuple[HealthCheckResult, ...] = ()
    rollback: RollbackResult | None = None
    error: str = ""
    error_kind: str = ""
    duration_s: float = 0.0
    switch_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    @property
    def rolled_back(self) -> bool:
        return self.rollback is not None and self.rollback.success


# ---------------------------------------------------------------------------
# SwitchStatus
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SwitchStatus:
    """Read-only snapshot for dashboards and CLIs.

    ``current_environment`` is the router's ground truth; it is ``None`` when
    the router could not be read, in which case ``error`` explains why.
    ``committed_environment`` is the orchestrator's own record.
    """

    current_environment: Environment | None
    switch_in_progress: bool
    committed_environment: Environment
    phase: SwitchPhase = SwitchPhase.IDLE
    error: str = ""

    @property
    def in_sync(self) -> bool:
        """True when the router agrees with the committed environment."""
        return self.current_environment is self.committed_environment


# ---------------------------------------------------------------------------
# EnvironmentComparison
# ---------------------------------------------------------------------------

_RECOMMENDATION_TEXT = {
    Recommendation.SWITCH_TO_FIRST: "Switch to {first}",
    Recommendation.SWITCH_TO_SECOND: "Switch to {second}",
    Recommendation.SAFE_TO_SWITCH: "Both environments healthy - safe to switch",
    Recommendation.DO_NOT_SWITCH: "Both environments unhealthy - do not switch",
}


@dataclass(frozen=True)
class EnvironmentComparison:
    """Side-by-side health of two environments plus a recommendation."""

    first: HealthCheckResult
    second: HealthCheckResult
    recommendation: Recommendation
    timestamp: float = field(default_factory=time.time)

    @property
    def message(self) -> str:
        return _RECOMMENDATION_TEXT[self.recommendation].format(
            first=self.first.environment.value,
            second=self.second.environment.value,
        )
