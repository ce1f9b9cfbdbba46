"""traffic-switch.

Blue/green traffic switching for a two-environment deployment: health-gated
cutover, optional canary ramp, post-switch validation and automatic rollback,
with the switch protocol expressed as a LangGraph state graph.
"""

__version__ = "0.1.0"

from traffic_switch.domain import (
    Environment,
    SwitchOutcome,
    SwitchStatus,
    TrafficSwitchError,
)
from traffic_switch.infrastructure.config import OrchestratorConfig, SwitchOptions
from traffic_switch.services.orchestrator import SwitchOrchestrator

__all__ = [
    "Environment",
    "OrchestratorConfig",
    "SwitchOptions",
    "SwitchOrchestrator",
    "SwitchOutcome",
    "SwitchStatus",
    "TrafficSwitchError",
]
