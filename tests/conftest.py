"""Shared fixtures for the traffic-switch test suite."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from traffic_switch.domain.enums import Environment
from traffic_switch.infrastructure.config import OrchestratorConfig, SwitchOptions
from traffic_switch.infrastructure.event_bus import AsyncEventBus, EventStore
from traffic_switch.services.health import HealthProbe
from traffic_switch.services.orchestrator import SwitchOrchestrator
from traffic_switch.services.router import InMemoryRouter, RouterUpdater
from traffic_switch.testing import FakeClock, ScriptedHealthProbe

# ---------------------------------------------------------------------------
# Collaborator fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def probe() -> ScriptedHealthProbe:
    """Probe reporting both environments healthy until scripted otherwise."""
    return ScriptedHealthProbe()


@pytest.fixture
def router() -> InMemoryRouter:
    """Routing table with blue live."""
    return InMemoryRouter(Environment.BLUE)


@pytest.fixture
def event_bus() -> AsyncEventBus:
    return AsyncEventBus()


@pytest.fixture
def event_store(event_bus: AsyncEventBus) -> EventStore:
    """Store recording every event published on ``event_bus``."""
    store = EventStore()
    event_bus.subscribe_all(store.append)
    return store


# ---------------------------------------------------------------------------
# Orchestrator fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_orchestrator(
    clock: FakeClock, event_bus: AsyncEventBus
) -> Callable[..., SwitchOrchestrator]:
    """Factory building an orchestrator on the fake clock and shared bus."""

    def _make(
        probe: HealthProbe,
        router: RouterUpdater,
        config: OrchestratorConfig | None = None,
        default_options: SwitchOptions | None = None,
    ) -> SwitchOrchestrator:
        return SwitchOrchestrator(
            probe,
            router,
            config,
            event_bus=event_bus,
            clock=clock,
            default_options=default_options,
        )

    return _make


@pytest.fixture
def orchestrator(
    make_orchestrator: Callable[..., SwitchOrchestrator],
    probe: ScriptedHealthProbe,
    router: InMemoryRouter,
) -> SwitchOrchestrator:
    """Orchestrator with blue live, default config and default options."""
    return make_orchestrator(probe, router)
