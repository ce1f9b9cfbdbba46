"""Infrastructure layer for the traffic-switch orchestrator.

Re-exports configuration, event bus, clock, and serialization helpers::

    from traffic_switch.infrastructure import OrchestratorConfig, AsyncEventBus
"""

from traffic_switch.infrastructure.clock import Clock, SystemClock
from traffic_switch.infrastructure.config import (
    CanaryConfig,
    OrchestratorConfig,
    PostSwitchConfig,
    ProbeConfig,
    RouterConfig,
    SwitchOptions,
    load_config_file,
    load_config_from_json,
)
from traffic_switch.infrastructure.event_bus import AsyncEventBus, EventStore
from traffic_switch.infrastructure.serialization import (
    health_check_to_dict,
    outcome_to_dict,
    rollback_to_dict,
    status_to_dict,
    to_json,
)

__all__ = [
    # Clock
    "Clock",
    "SystemClock",
    # Config
    "CanaryConfig",
    "OrchestratorConfig",
    "PostSwitchConfig",
    "ProbeConfig",
    "RouterConfig",
    "SwitchOptions",
    "load_config_file",
    "load_config_from_json",
    # Event bus
    "AsyncEventBus",
    "EventStore",
    # Serialization
    "health_check_to_dict",
    "outcome_to_dict",
    "rollback_to_dict",
    "status_to_dict",
    "to_json",
]
