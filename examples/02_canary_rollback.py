#!/usr/bin/env python3
"""Example 02: Canary ramp that fails and withdraws its traffic.

Demonstrates:
- Enabling a 10% canary through a ``SwitchRequest`` body
- A target that degrades during canary monitoring
- Catching ``CanaryFailed`` and inspecting the attached outcome
- The switch history after a failed attempt

Run:
    PYTHONPATH=src python examples/02_canary_rollback.py
"""

from __future__ import annotations

import asyncio

from traffic_switch.domain.enums import Environment
from traffic_switch.domain.exceptions import CanaryFailed
from traffic_switch.presentation import StatusReporter
from traffic_switch.services import InMemoryRouter, SwitchOrchestrator, SwitchRequest
from traffic_switch.testing import FakeClock, ScriptedHealthProbe


async def main() -> None:
    # Pre-check and the first two canary polls pass, the third fails.
    probe = ScriptedHealthProbe(checks={Environment.GREEN: [True, True, True, False]})
    router = InMemoryRouter(Environment.BLUE)
    orchestrator = SwitchOrchestrator(probe, router, clock=FakeClock())

    request = SwitchRequest.model_validate(
        {"environment": "green", "canary": True, "canaryPercentage": 10}
    )

    print("=== Canary switch blue -> green (10%) ===")
    reporter = StatusReporter()
    try:
        await orchestrator.switch_traffic(request.target, request.to_options())
    except CanaryFailed as exc:
        print(f"Canary failed after {exc.polls_completed} poll(s): {exc.message}")
        if exc.outcome is not None:
            reporter.print_outcome(exc.outcome)

    print(f"Router still serving: {router.active.value}, canary: {router.canary}")
    reporter.print_history(orchestrator.history.outcomes)


if __name__ == "__main__":
    asyncio.run(main())
