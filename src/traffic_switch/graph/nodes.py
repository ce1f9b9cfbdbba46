"""LangGraph node functions for the switch protocol.

Each ``make_*_node`` factory closes over a ``SwitchDeps`` bundle (probe,
router, config, state aggregate, event bus) and returns an async node that
takes ``SwitchGraphState`` and returns a partial update dict.  The nodes
delegate to the polling primitives and the collaborators rather than
reimplementing any logic.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from traffic_switch.domain.aggregates import SwitchState
from traffic_switch.domain.enums import SwitchPhase
from traffic_switch.domain.events import (
    CanaryPollCompleted,
    DomainEvent,
    PhaseEntered,
    RollbackCompleted,
)
from traffic_switch.domain.exceptions import (
    CanaryFailed,
    PostSwitchValidationFailed,
    RollbackFailed,
    RouterError,
    RouterUpdateFailed,
    SwitchCancelled,
    TargetUnhealthy,
)
from traffic_switch.domain.values import CanaryPlan, HealthCheckResult, RollbackResult
from traffic_switch.infrastructure.config import OrchestratorConfig
from traffic_switch.infrastructure.event_bus import AsyncEventBus
from traffic_switch.services.health import HealthProbe
from traffic_switch.services.polling import bounded, poll_until_healthy, probe_once
from traffic_switch.services.router import RouterUpdater

logger = logging.getLogger(__name__)

Node = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]

# Router failures the protocol converts into domain errors.
ROUTER_FAILURES = (RouterError, asyncio.TimeoutError, OSError)


def error_reason(exc: BaseException) -> str:
    """Message of *exc*, or its type name when the message is empty."""
    return str(exc) or type(exc).__name__


@dataclass
class SwitchDeps:
    """Collaborators shared by every node of one orchestrator's graph."""

    probe: HealthProbe
    router: RouterUpdater
    config: OrchestratorConfig
    switch_state: SwitchState
    event_bus: AsyncEventBus
    source_id: str = "traffic-switch"

    async def enter(self, phase: SwitchPhase, state: dict[str, Any]) -> None:
        self.switch_state.enter(phase)
        logger.info(
            "Switch %s: %s (%s -> %s)",
            state.get("switch_id", "?"),
            phase.value,
            state["previous"].value,
            state["target"].value,
        )
        await self.publish(PhaseEntered(
            source_id=self.source_id,
            switch_id=state.get("switch_id", ""),
            phase=phase,
            environment=state["target"],
        ))

    async def publish(self, event: DomainEvent) -> None:
        await self.event_bus.publish(event)


# ---------------------------------------------------------------------------
# Pre-check
# ---------------------------------------------------------------------------

def make_pre_check_node(deps: SwitchDeps) -> Node:
    """Poll the target until healthy or the retry budget is spent.

    Writes ``health_check``; on exhaustion writes ``failure=TargetUnhealthy``.
    """

    async def pre_check_node(state: dict[str, Any]) -> dict[str, Any]:
        await deps.enter(SwitchPhase.PRE_CHECKING, state)
        target = state["target"]
        options = state["options"]
        try:
            result = await poll_until_healthy(
                deps.probe.check,
                target,
                retries=options.health_check_retries,
                interval_s=options.health_check_interval_s,
                context=state["context"],
                phase=SwitchPhase.PRE_CHECKING,
                timeout_s=deps.config.probe_timeout_s,
            )
        except SwitchCancelled as exc:
            return {"failure": exc}

        if result.healthy:
            return {"health_check": result}
        return {
            "health_check": result,
            "failure": TargetUnhealthy(
                f"Target environment {target.value} is not healthy: {result.reason}",
                environment=target,
                attempts=result.attempt,
                health_check=result,
            ),
        }

    return pre_check_node


# ---------------------------------------------------------------------------
# Canary
# ---------------------------------------------------------------------------

def make_canary_node(deps: SwitchDeps) -> Node:
    """Route a share of traffic to the target and watch it for a window.

    Writes ``canary_checks`` and ``canary_applied``.  Any unhealthy poll
    writes ``failure=CanaryFailed``; withdrawing the canary weight is left to
    the ``abort_canary`` node.
    """

    async def canary_node(state: dict[str, Any]) -> dict[str, Any]:
        await deps.enter(SwitchPhase.CANARYING, state)
        target = state["target"]
        context = state["context"]
        plan = CanaryPlan(
            target_environment=target,
            weight_percent=state["options"].canary_percentage,
            monitor_duration_s=deps.config.canary.monitor_duration_s,
            poll_interval_s=deps.config.canary.poll_interval_s,
        )

        try:
            context.check(SwitchPhase.CANARYING)
            await bounded(
                deps.router.set_canary_weight(target, plan.weight_percent),
                deps.config.router_timeout_s,
            )
        except SwitchCancelled as exc:
            return {"failure": exc, "canary_applied": False}
        except ROUTER_FAILURES as exc:
            return {
                "canary_applied": False,
                "failure": RouterUpdateFailed(
                    f"Failed to update canary routing for {target.value}: "
                    f"{error_reason(exc)}",
                    environment=target,
                    operation="set_canary_weight",
                ),
            }

        logger.info(
            "Canary: %d%% of traffic to %s, %d poll(s) every %.1fs",
            plan.weight_percent, target.value, plan.poll_count, plan.poll_interval_s,
        )
        checks: list[HealthCheckResult] = []
        try:
            for poll in range(1, plan.poll_count + 1):
                context.check(SwitchPhase.CANARYING)
                result = await probe_once(
                    deps.probe.check,
                    target,
                    deps.config.probe_timeout_s,
                    attempt=poll,
                    context=context,
                    phase=SwitchPhase.CANARYING,
                )
                checks.append(result)
                await deps.publish(CanaryPollCompleted(
                    source_id=deps.source_id,
                    switch_id=state.get("switch_id", ""),
                    poll=poll,
                    total_polls=plan.poll_count,
                    weight_percent=plan.weight_percent,
                    result=result,
                ))
                if not result.healthy:
                    return {
                        "canary_checks": checks,
                        "canary_applied": True,
                        "failure": CanaryFailed(
                            f"Canary monitoring failed: {result.reason or 'unhealthy'}",
                            environment=target,
                            percentage=plan.weight_percent,
                            polls_completed=poll,
                            health_check=result,
                        ),
                    }
                logger.info(
                    "Canary monitoring: %d%% traffic to %s - OK (%d/%d)",
                    plan.weight_percent, target.value, poll, plan.poll_count,
                )
                await context.sleep(plan.poll_interval_s, SwitchPhase.CANARYING)
        except SwitchCancelled as exc:
            return {"canary_checks": checks, "canary_applied": True, "failure": exc}

        return {"canary_checks": checks, "canary_applied": True}

    return canary_node


def make_abort_canary_node(deps: SwitchDeps) -> Node:
    """Withdraw the canary weight after a failed canary.

    Writes ``rollback`` and attaches it to a ``SwitchCancelled`` failure; if
    the router refuses, replaces ``failure`` with ``RollbackFailed``.
    """

    async def abort_canary_node(state: dict[str, Any]) -> dict[str, Any]:
        target = state["target"]
        previous = state["previous"]
        try:
            await bounded(
                deps.router.set_canary_weight(target, 0), deps.config.router_timeout_s
            )
        except ROUTER_FAILURES as exc:
            return {
                "rollback": RollbackResult(
                    success=False,
                    rolled_back_to=previous,
                    reason=error_reason(exc),
                    automatic=True,
                ),
                "failure": RollbackFailed(
                    f"Failed to withdraw canary traffic from {target.value}: "
                    f"{error_reason(exc)}",
                    environment=target,
                    rolled_back_to=previous,
                ),
            }

        result = RollbackResult(
            success=True,
            rolled_back_to=previous,
            reason="canary traffic withdrawn",
            automatic=True,
        )
        failure = state.get("failure")
        if isinstance(failure, SwitchCancelled):
            failure.rollback = result
        await deps.publish(RollbackCompleted(source_id=deps.source_id, result=result))
        return {"rollback": result}

    return abort_canary_node


# ---------------------------------------------------------------------------
# Cutover
# ---------------------------------------------------------------------------

def make_cutover_node(deps: SwitchDeps) -> Node:
    """Route all traffic to the target.

    Writes ``cut_over``; a router failure writes ``RouterUpdateFailed``.
    """

    async def cutover_node(state: dict[str, Any]) -> dict[str, Any]:
        await deps.enter(SwitchPhase.CUTTING_OVER, state)
        target = state["target"]
        try:
            state["context"].check(SwitchPhase.CUTTING_OVER)
            await bounded(
                deps.router.set_full_traffic(target), deps.config.router_timeout_s
            )
        except SwitchCancelled as exc:
            return {"cut_over": False, "failure": exc}
        except ROUTER_FAILURES as exc:
            return {
                "cut_over": False,
                "failure": RouterUpdateFailed(
                    f"Failed to route traffic to {target.value}: {error_reason(exc)}",
                    environment=target,
                    operation="set_full_traffic",
                ),
            }
        return {"cut_over": True}

    return cutover_node


# ---------------------------------------------------------------------------
# Post-check
# ---------------------------------------------------------------------------

def make_post_check_node(deps: SwitchDeps) -> Node:
    """Let traffic settle, re-probe the target, then run one validation call.

    Writes ``post_switch_health``; any failure (including cancellation)
    writes ``failure`` so the ``rollback`` node runs next.
    """

    async def post_check_node(state: dict[str, Any]) -> dict[str, Any]:
        await deps.enter(SwitchPhase.POST_VALIDATING, state)
        target = state["target"]
        context = state["context"]
        post = deps.config.post_switch
        try:
            await context.sleep(post.stabilization_delay_s, SwitchPhase.POST_VALIDATING)
            result = await poll_until_healthy(
                deps.probe.check,
                target,
                retries=post.retries,
                interval_s=post.interval_s,
                context=context,
                phase=SwitchPhase.POST_VALIDATING,
                timeout_s=deps.config.probe_timeout_s,
            )
            if result.healthy:
                context.check(SwitchPhase.POST_VALIDATING)
                result = await probe_once(
                    deps.probe.validate,
                    target,
                    deps.config.probe_timeout_s,
                    attempt=result.attempt,
                    context=context,
                    phase=SwitchPhase.POST_VALIDATING,
                )
        except SwitchCancelled as exc:
            return {
                "post_switch_health": HealthCheckResult.unhealthy(target, exc.message),
                "failure": exc,
            }

        if result.healthy:
            return {"post_switch_health": result}
        return {
            "post_switch_health": result,
            "failure": PostSwitchValidationFailed(
                f"Post-switch validation failed: {result.reason or 'unhealthy'}",
                environment=target,
                health_check=result,
            ),
        }

    return post_check_node


# ---------------------------------------------------------------------------
# Rollback / commit
# ---------------------------------------------------------------------------

def make_rollback_node(deps: SwitchDeps) -> Node:
    """Route all traffic back to the pre-switch environment.

    Runs under the guard the switch already holds.  Attaches the result to
    the recorded failure; a router error replaces the failure with
    ``RollbackFailed``.
    """

    async def rollback_node(state: dict[str, Any]) -> dict[str, Any]:
        await deps.enter(SwitchPhase.ROLLING_BACK, state)
        previous = state["previous"]
        failure = state["failure"]
        logger.warning(
            "%s after cutover to %s, rolling back to %s",
            failure.kind, state["target"].value, previous.value,
        )
        try:
            await bounded(
                deps.router.set_full_traffic(previous), deps.config.router_timeout_s
            )
        except ROUTER_FAILURES as exc:
            result = RollbackResult(
                success=False,
                rolled_back_to=previous,
                reason=error_reason(exc),
                automatic=True,
            )
            return {
                "rollback": result,
                "failure": RollbackFailed(
                    f"Rollback to {previous.value} failed after {failure.kind}: "
                    f"{error_reason(exc)}",
                    environment=state["target"],
                    rolled_back_to=previous,
                    details={"cause": failure.message},
                ),
            }

        result = RollbackResult(
            success=True, rolled_back_to=previous, reason=failure.message, automatic=True
        )
        if isinstance(failure, (PostSwitchValidationFailed, SwitchCancelled)):
            failure.rollback = result
        await deps.enter(SwitchPhase.ROLLED_BACK, state)
        await deps.publish(RollbackCompleted(source_id=deps.source_id, result=result))
        logger.info("Successfully rolled back to %s", previous.value)
        return {"rollback": result}

    return rollback_node


def make_commit_node(deps: SwitchDeps) -> Node:
    """Commit the target as the current environment."""

    async def commit_node(state: dict[str, Any]) -> dict[str, Any]:
        deps.switch_state.commit(state["target"])
        await deps.enter(SwitchPhase.COMMITTED, state)
        return {"committed": True}

    return commit_node
