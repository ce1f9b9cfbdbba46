#!/usr/bin/env python3
"""Example 01: Health-gated switch against an in-memory router.

Demonstrates:
- Building a ``SwitchOrchestrator`` with scripted collaborators
- A target that fails its first readiness check and recovers
- Recording lifecycle events with an ``EventStore``
- Rendering the outcome with ``StatusReporter``

Run:
    PYTHONPATH=src python examples/01_dry_run_switch.py
"""

from __future__ import annotations

import asyncio

from traffic_switch.domain.enums import Environment
from traffic_switch.domain.events import PhaseEntered
from traffic_switch.infrastructure.config import OrchestratorConfig, PostSwitchConfig
from traffic_switch.infrastructure.event_bus import AsyncEventBus, EventStore
from traffic_switch.presentation import StatusReporter
from traffic_switch.services import InMemoryRouter, SwitchOrchestrator
from traffic_switch.testing import FakeClock, ScriptedHealthProbe


async def main() -> None:
    bus = AsyncEventBus()
    store = EventStore()
    bus.subscribe_all(store.append)

    probe = ScriptedHealthProbe(checks={Environment.GREEN: [False, True]})
    router = InMemoryRouter(Environment.BLUE)
    orchestrator = SwitchOrchestrator(
        probe,
        router,
        OrchestratorConfig(post_switch=PostSwitchConfig(stabilization_delay_s=5.0)),
        event_bus=bus,
        clock=FakeClock(),
    )

    print("=== Dry-run switch blue -> green ===")
    outcome = await orchestrator.switch_traffic(Environment.GREEN)

    reporter = StatusReporter()
    reporter.print_outcome(outcome)
    reporter.print_status(await orchestrator.get_status())

    print("Phases:")
    for event in store.query(event_type=PhaseEntered):
        print(f"  {event.phase.value}")


if __name__ == "__main__":
    asyncio.run(main())
