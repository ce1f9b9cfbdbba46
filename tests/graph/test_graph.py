"""Tests for the compiled switch graph, driven directly."""

from __future__ import annotations

from typing import Any

import pytest

from traffic_switch.domain.aggregates import SwitchState
from traffic_switch.domain.enums import Environment, SwitchPhase
from traffic_switch.domain.exceptions import TargetUnhealthy
from traffic_switch.graph import SwitchDeps, SwitchGraphState, build_switch_graph
from traffic_switch.infrastructure.config import OrchestratorConfig, SwitchOptions
from traffic_switch.infrastructure.event_bus import AsyncEventBus
from traffic_switch.services.polling import SwitchContext
from traffic_switch.services.router import InMemoryRouter
from traffic_switch.testing import FakeClock, ScriptedHealthProbe

BLUE = Environment.BLUE
GREEN = Environment.GREEN


@pytest.fixture
def switch_state() -> SwitchState:
    state = SwitchState(BLUE)
    assert state.try_acquire("switch")
    return state


def _deps(probe: ScriptedHealthProbe, router: InMemoryRouter, state: SwitchState) -> SwitchDeps:
    return SwitchDeps(
        probe=probe,
        router=router,
        config=OrchestratorConfig(),
        switch_state=state,
        event_bus=AsyncEventBus(),
    )


def _initial(clock: FakeClock, options: SwitchOptions | None = None) -> dict[str, Any]:
    return {
        "switch_id": "test",
        "previous": BLUE,
        "target": GREEN,
        "options": options or SwitchOptions(),
        "context": SwitchContext(clock, GREEN),
        "canary_checks": [],
        "canary_applied": False,
        "cut_over": False,
        "rollback": None,
        "committed": False,
        "failure": None,
    }


class TestSwitchGraph:

    def test_state_schema_keys(self) -> None:
        keys = set(SwitchGraphState.__annotations__)
        assert {"previous", "target", "failure", "rollback", "canary_checks"} <= keys

    def test_compiles_with_all_nodes(
        self, probe: ScriptedHealthProbe, router: InMemoryRouter, switch_state: SwitchState
    ) -> None:
        app = build_switch_graph(_deps(probe, router, switch_state))
        nodes = set(app.get_graph().nodes)
        assert {
            "pre_check", "canary", "abort_canary", "cutover",
            "post_check", "rollback", "commit",
        } <= nodes

    @pytest.mark.asyncio
    async def test_happy_path_commits(
        self,
        probe: ScriptedHealthProbe,
        router: InMemoryRouter,
        switch_state: SwitchState,
        clock: FakeClock,
    ) -> None:
        app = build_switch_graph(_deps(probe, router, switch_state))
        final = await app.ainvoke(_initial(clock))

        assert final["failure"] is None
        assert final["committed"]
        assert final["cut_over"]
        assert switch_state.current is GREEN
        assert switch_state.phase is SwitchPhase.COMMITTED

    @pytest.mark.asyncio
    async def test_unhealthy_target_stops_after_pre_check(
        self,
        router: InMemoryRouter,
        switch_state: SwitchState,
        clock: FakeClock,
    ) -> None:
        probe = ScriptedHealthProbe(checks={GREEN: [False]})
        app = build_switch_graph(_deps(probe, router, switch_state))
        final = await app.ainvoke(_initial(clock, SwitchOptions(health_check_retries=2)))

        assert isinstance(final["failure"], TargetUnhealthy)
        assert not final["cut_over"]
        assert not final["committed"]
        assert router.calls == []
        assert switch_state.current is BLUE
        assert switch_state.phase is SwitchPhase.PRE_CHECKING
