"""Service layer for the traffic-switch orchestrator.

Re-exports public service types for convenient top-level access::

    from traffic_switch.services import (
        HealthProbe, HttpHealthProbe, compare_environments,
        RouterUpdater, InMemoryRouter, KubectlIngressRouter, build_router,
        SwitchContext, SwitchHistory, SwitchRequest, SwitchOrchestrator,
    )
"""

from traffic_switch.services.health import (
    HealthProbe,
    HttpHealthProbe,
    compare_environments,
    recommend,
)
from traffic_switch.services.history import SwitchHistory
from traffic_switch.services.polling import (
    SwitchContext,
    bounded,
    poll_until_healthy,
    probe_once,
)
from traffic_switch.services.requests import SwitchRequest
from traffic_switch.services.router import (
    InMemoryRouter,
    KubectlIngressRouter,
    RouterUpdater,
    build_router,
)
from traffic_switch.services.orchestrator import SwitchOrchestrator  # noqa: I001

__all__ = [
    "HealthProbe",
    "HttpHealthProbe",
    "InMemoryRouter",
    "KubectlIngressRouter",
    "RouterUpdater",
    "SwitchContext",
    "SwitchHistory",
    "SwitchOrchestrator",
    "SwitchRequest",
    "bounded",
    "build_router",
    "compare_environments",
    "poll_until_healthy",
    "probe_once",
    "recommend",
]
