"""Tests for the canary phase of a switch."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from traffic_switch.domain.enums import Environment, SwitchPhase
from traffic_switch.domain.events import CanaryPollCompleted, PhaseEntered
from traffic_switch.domain.exceptions import (
    CanaryFailed,
    RollbackFailed,
    RouterUpdateFailed,
    SwitchCancelled,
)
from traffic_switch.infrastructure.config import CanaryConfig, OrchestratorConfig, SwitchOptions
from traffic_switch.infrastructure.event_bus import AsyncEventBus, EventStore
from traffic_switch.services.orchestrator import SwitchOrchestrator
from traffic_switch.services.router import InMemoryRouter
from traffic_switch.testing import FailingRouter, FakeClock, ScriptedHealthProbe

BLUE = Environment.BLUE
GREEN = Environment.GREEN

CANARY_10 = SwitchOptions(enable_canary=True, canary_percentage=10)


class TestCanaryMonitoring:

    @pytest.mark.asyncio
    async def test_default_window_polls_six_times(
        self,
        orchestrator: SwitchOrchestrator,
        probe: ScriptedHealthProbe,
        router: InMemoryRouter,
        clock: FakeClock,
        event_store: EventStore,
    ) -> None:
        outcome = await orchestrator.switch_traffic(GREEN, CANARY_10)

        assert outcome.success
        assert len(outcome.canary_checks) == 6
        assert [c.attempt for c in outcome.canary_checks] == [1, 2, 3, 4, 5, 6]
        polls = event_store.query(event_type=CanaryPollCompleted)
        assert [p.poll for p in polls] == [1, 2, 3, 4, 5, 6]
        assert all(p.total_polls == 6 and p.weight_percent == 10 for p in polls)
        # Pre-check (1) + canary polls (6) + post-check (1).
        assert probe.check_calls[GREEN] == 8
        # Six 5 s poll intervals, then the 5 s stabilisation delay.
        assert clock.sleeps == [5.0] * 7
        assert router.calls[0] == ("set_canary_weight", (GREEN, 10))
        assert router.calls[1] == ("set_full_traffic", GREEN)
        assert router.canary is None
        phases = [e.phase for e in event_store.query(event_type=PhaseEntered)]
        assert phases[:3] == [
            SwitchPhase.PRE_CHECKING,
            SwitchPhase.CANARYING,
            SwitchPhase.CUTTING_OVER,
        ]

    @pytest.mark.asyncio
    async def test_custom_window(
        self,
        make_orchestrator: Callable[..., SwitchOrchestrator],
        probe: ScriptedHealthProbe,
        router: InMemoryRouter,
    ) -> None:
        config = OrchestratorConfig(
            canary=CanaryConfig(monitor_duration_s=10.0, poll_interval_s=2.5)
        )
        orchestrator = make_orchestrator(probe, router, config)
        outcome = await orchestrator.switch_traffic(GREEN, CANARY_10)
        assert len(outcome.canary_checks) == 4

    @pytest.mark.asyncio
    async def test_canary_disabled_skips_phase(
        self, orchestrator: SwitchOrchestrator, router: InMemoryRouter
    ) -> None:
        outcome = await orchestrator.switch_traffic(
            GREEN, SwitchOptions(enable_canary=False, canary_percentage=50)
        )
        assert outcome.canary_checks == ()
        assert all(call[0] != "set_canary_weight" for call in router.calls)


class TestCanaryFailure:

    @pytest.mark.asyncio
    async def test_unhealthy_poll_withdraws_weight(
        self,
        orchestrator: SwitchOrchestrator,
        probe: ScriptedHealthProbe,
        router: InMemoryRouter,
    ) -> None:
        # Pre-check passes, first canary poll passes, second fails.
        probe.script(GREEN, True, True, False)

        with pytest.raises(CanaryFailed) as info:
            await orchestrator.switch_traffic(GREEN, CANARY_10)

        exc = info.value
        assert exc.polls_completed == 2
        assert exc.percentage == 10
        outcome = exc.outcome
        assert outcome is not None
        assert len(outcome.canary_checks) == 2
        assert outcome.current_environment is BLUE
        assert outcome.rolled_back
        assert router.calls == [
            ("set_canary_weight", (GREEN, 10)),
            ("set_canary_weight", (GREEN, 0)),
        ]
        assert router.canary is None
        assert router.active is BLUE
        assert orchestrator.state.current is BLUE
        assert not orchestrator.state.switch_in_progress

    @pytest.mark.asyncio
    async def test_withdrawal_failure_is_rollback_failed(
        self,
        make_orchestrator: Callable[..., SwitchOrchestrator],
        probe: ScriptedHealthProbe,
    ) -> None:
        probe.script(GREEN, True, False)
        router = FailingRouter(BLUE, fail={"set_canary_weight": 1})
        orchestrator = make_orchestrator(probe, router)

        with pytest.raises(RollbackFailed) as info:
            await orchestrator.switch_traffic(GREEN, CANARY_10)

        assert info.value.outcome is not None
        assert not info.value.outcome.rollback.success
        assert router.canary == (GREEN, 10)
        assert router.active is BLUE

    @pytest.mark.asyncio
    async def test_canary_weight_refused(
        self,
        make_orchestrator: Callable[..., SwitchOrchestrator],
        probe: ScriptedHealthProbe,
    ) -> None:
        router = FailingRouter(BLUE, fail={"set_canary_weight": 0})
        orchestrator = make_orchestrator(probe, router)

        with pytest.raises(RouterUpdateFailed) as info:
            await orchestrator.switch_traffic(GREEN, CANARY_10)

        assert info.value.operation == "set_canary_weight"
        assert router.active is BLUE
        assert probe.check_calls[GREEN] == 1

    @pytest.mark.asyncio
    async def test_cancel_during_canary_exposes_withdrawal(
        self,
        orchestrator: SwitchOrchestrator,
        event_bus: AsyncEventBus,
        router: InMemoryRouter,
    ) -> None:
        def cancel_after_first_poll(event: CanaryPollCompleted) -> None:
            if event.poll == 1:
                orchestrator.cancel("operator abort")

        event_bus.subscribe(CanaryPollCompleted, cancel_after_first_poll)

        with pytest.raises(SwitchCancelled) as info:
            await orchestrator.switch_traffic(GREEN, CANARY_10)

        exc = info.value
        assert exc.phase is SwitchPhase.CANARYING
        assert exc.rollback is not None
        assert exc.rollback.success
        assert exc.rollback.reason == "canary traffic withdrawn"
        assert exc.outcome.rollback is exc.rollback
        assert router.canary is None
        assert router.active is BLUE
