"""LangGraph state definition for one switch attempt.

Defines ``SwitchGraphState``, a ``TypedDict`` that flows through the switch
``StateGraph``.  Nodes never raise domain errors; they record them in
``failure`` and the conditional edges route on it.

Note: We intentionally do NOT use ``from __future__ import annotations`` because
LangGraph needs to resolve type hints at runtime via ``get_type_hints()``.
"""

from typing import Optional, TypedDict

from traffic_switch.domain.enums import Environment
from traffic_switch.domain.exceptions import TrafficSwitchError
from traffic_switch.domain.values import HealthCheckResult, RollbackResult
from traffic_switch.infrastructure.config import SwitchOptions
from traffic_switch.services.polling import SwitchContext


class SwitchGraphState(TypedDict, total=False):
    """State carried between the phases of a single switch."""

    # -- Request
    switch_id: str
    previous: Environment
    target: Environment
    options: SwitchOptions
    context: SwitchContext

    # -- Phase results
    health_check: HealthCheckResult
    canary_checks: list
    canary_applied: bool
    cut_over: bool
    post_switch_health: HealthCheckResult
    rollback: Optional[RollbackResult]
    committed: bool

    # -- Failure routing
    failure: Optional[TrafficSwitchError]
