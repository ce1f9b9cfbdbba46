"""Operator-facing request schemas.

Pydantic models validating the JSON bodies an operator surface accepts
before they reach the orchestrator.  Field aliases follow the wire format
(``canaryPercentage``, ``healthCheckInterval`` in milliseconds).
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from traffic_switch.domain.enums import Environment
from traffic_switch.infrastructure.config import SwitchOptions


class SwitchRequest(BaseModel):
    """Body of a switch request."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    environment: Literal["blue", "green"] = Field(
        description="Environment that should receive all traffic."
    )
    canary: bool = Field(default=False, description="Ramp through a canary first.")
    canary_percentage: int = Field(
        default=0,
        ge=0,
        le=100,
        alias="canaryPercentage",
        description="Share of traffic routed to the target during the canary.",
    )
    health_check_retries: int | None = Field(
        default=None, ge=1, alias="healthCheckRetries"
    )
    health_check_interval_ms: int | None = Field(
        default=None, ge=0, alias="healthCheckInterval"
    )

    @property
    def target(self) -> Environment:
        return Environment(self.environment)

    def to_options(self, defaults: SwitchOptions | None = None) -> SwitchOptions:
        """Merge this request over *defaults* into validated ``SwitchOptions``."""
        base = (defaults or SwitchOptions()).to_dict()
        base["enable_canary"] = self.canary
        base["canary_percentage"] = self.canary_percentage
        if self.health_check_retries is not None:
            base["health_check_retries"] = self.health_check_retries
        if self.health_check_interval_ms is not None:
            base["health_check_interval_s"] = self.health_check_interval_ms / 1000.0
        return SwitchOptions.from_dict(base)
