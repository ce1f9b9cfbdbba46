"""Blue/green traffic-switch orchestrator.

``SwitchOrchestrator`` owns the ``SwitchState`` aggregate and runs each
switch through the compiled switch graph:

    pre-check -> (canary) -> cutover -> post-check -> commit | rollback

Only one switch, manual rollback or reconcile may hold the guard at a time;
a second caller gets ``SwitchInProgress`` immediately.  Every switch that
acquired the guard is recorded in the ``SwitchHistory`` and announced on the
event bus, whatever its result.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from traffic_switch.domain.aggregates import SwitchState
from traffic_switch.domain.enums import Environment, SwitchPhase
from traffic_switch.domain.events import (
    RollbackCompleted,
    SwitchAlert,
    SwitchCommitted,
    SwitchFailed,
    SwitchStarted,
)
from traffic_switch.domain.exceptions import (
    RollbackFailed,
    SwitchAborted,
    SwitchInProgress,
    TrafficSwitchError,
)
from traffic_switch.domain.values import RollbackResult, SwitchOutcome, SwitchStatus
from traffic_switch.graph.graph import build_switch_graph
from traffic_switch.graph.nodes import ROUTER_FAILURES, SwitchDeps, error_reason
from traffic_switch.infrastructure.clock import Clock, SystemClock
from traffic_switch.infrastructure.config import OrchestratorConfig, SwitchOptions
from traffic_switch.infrastructure.event_bus import AsyncEventBus
from traffic_switch.services.health import HealthProbe
from traffic_switch.services.history import SwitchHistory
from traffic_switch.services.polling import SwitchContext, bounded
from traffic_switch.services.router import RouterUpdater

logger = logging.getLogger(__name__)


class SwitchOrchestrator:
    """Decides whether a cutover is safe, executes it and validates it.

    Parameters
    ----------
    probe:
        Health probe for both environments.
    router:
        Routing backend that moves live traffic.
    config:
        Orchestrator-wide settings.  Defaults to ``OrchestratorConfig()``.
    event_bus:
        Bus the lifecycle events are published on.  A private bus is created
        when omitted.
    clock:
        Time source for sleeps and deadlines.  Tests inject a fake.
    history:
        Switch history to record into.  Sized from ``config`` when omitted.
    default_options:
        Options used when ``switch_traffic`` is called without any.
    source_id:
        Stamped on every published event.
    """

    def __init__(
        self,
        probe: HealthProbe,
        router: RouterUpdater,
        config: OrchestratorConfig | None = None,
        *,
        event_bus: AsyncEventBus | None = None,
        clock: Clock | None = None,
        history: SwitchHistory | None = None,
        default_options: SwitchOptions | None = None,
        source_id: str = "traffic-switch",
    ) -> None:
        self._config = config or OrchestratorConfig()
        self._config.validate()
        self._probe = probe
        self._router = router
        self._event_bus = event_bus or AsyncEventBus()
        self._clock = clock or SystemClock()
        self._history = history or SwitchHistory(self._config.history_size)
        self._default_options = default_options or SwitchOptions()
        self._default_options.validate()
        self._source_id = source_id
        self._state = SwitchState(self._config.initial)
        self._context: SwitchContext | None = None
        self._graph = build_switch_graph(SwitchDeps(
            probe=probe,
            router=router,
            config=self._config,
            switch_state=self._state,
            event_bus=self._event_bus,
            source_id=source_id,
        ))

    # -- properties -----------------------------------------------------------

    @property
    def state(self) -> SwitchState:
        return self._state

    @property
    def history(self) -> SwitchHistory:
        return self._history

    @property
    def event_bus(self) -> AsyncEventBus:
        return self._event_bus

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    # -- guard ----------------------------------------------------------------

    @asynccontextmanager
    async def _single_flight(self, operation: str) -> AsyncIterator[None]:
        if not self._state.try_acquire(operation):
            logger.warning(
                "%s refused: %s already in progress", operation, self._state.holder
            )
            raise SwitchInProgress(
                f"Traffic switch already in progress ({self._state.holder})",
                operation=operation,
            )
        try:
            yield
        finally:
            self._context = None
            self._state.release()

    # -- switch ---------------------------------------------------------------

    async def switch_traffic(
        self,
        target_environment: Environment | str,
        options: SwitchOptions | None = None,
    ) -> SwitchOutcome:
        """Move all live traffic to *target_environment*.

        Raises
        ------
        SwitchInProgress
            Another operation holds the guard; nothing was changed.
        TargetUnhealthy, CanaryFailed, RouterUpdateFailed,
        PostSwitchValidationFailed, SwitchCancelled, RollbackFailed
            The switch started and failed; ``exc.outcome`` holds the record.
        """
        target = Environment.parse(target_environment)
        options = options or self._default_options
        options.validate()

        async with self._single_flight("switch"):
            previous = self._state.current
            context = SwitchContext(self._clock, target, options.deadline_s)
            self._context = context
            switch_id = uuid.uuid4().hex[:12]

            if target is previous:
                logger.info(
                    "Switch %s: %s is already live; re-applying the full protocol",
                    switch_id, target.value,
                )
            logger.info(
                "Switch %s: %s -> %s (canary=%s)",
                switch_id, previous.value, target.value,
                f"{options.canary_percentage}%" if options.enable_canary else "off",
            )
            await self._event_bus.publish(SwitchStarted(
                source_id=self._source_id,
                switch_id=switch_id,
                previous_environment=previous,
                target_environment=target,
                canary=options.enable_canary,
            ))

            final = await self._graph.ainvoke({
                "switch_id": switch_id,
                "previous": previous,
                "target": target,
                "options": options,
                "context": context,
                "canary_checks": [],
                "canary_applied": False,
                "cut_over": False,
                "rollback": None,
                "committed": False,
                "failure": None,
            })

            failure: TrafficSwitchError | None = final.get("failure")
            outcome = SwitchOutcome(
                success=failure is None,
                previous_environment=previous,
                current_environment=self._state.current,
                requested_environment=target,
                health_check=final.get("health_check"),
                post_switch_health=final.get("post_switch_health"),
                canary_checks=tuple(final.get("canary_checks") or ()),
                rollback=final.get("rollback"),
                error=failure.message if failure is not None else "",
                error_kind=failure.kind if failure is not None else "",
                duration_s=context.elapsed_s,
                switch_id=switch_id,
            )
            self._history.record(outcome)

            if failure is None:
                logger.info(
                    "Switch %s committed: %s now live (%.1fs)",
                    switch_id, target.value, outcome.duration_s,
                )
                await self._event_bus.publish(
                    SwitchCommitted(source_id=self._source_id, outcome=outcome)
                )
                return outcome

            if isinstance(failure, SwitchAborted):
                failure.outcome = outcome
            await self._report_failure(failure, outcome)
            raise failure

    async def _report_failure(
        self, failure: TrafficSwitchError, outcome: SwitchOutcome
    ) -> None:
        if failure.critical:
            logger.critical(
                "Switch %s: %s: %s (traffic may be split; manual check required)",
                outcome.switch_id, failure.kind, failure.message,
            )
            await self._event_bus.publish(SwitchAlert(
                source_id=self._source_id,
                error_kind=failure.kind,
                message=failure.message,
                environment=outcome.requested_environment,
            ))
        elif outcome.rolled_back:
            logger.error(
                "Switch %s: %s; rolled back to %s",
                outcome.switch_id, failure.message, outcome.rollback.rolled_back_to.value,
            )
        else:
            logger.warning("Switch %s: %s", outcome.switch_id, failure.message)
        await self._event_bus.publish(SwitchFailed(
            source_id=self._source_id, outcome=outcome, error_kind=failure.kind
        ))

    # -- rollback -------------------------------------------------------------

    async def rollback(self) -> RollbackResult:
        """Route all traffic to the inactive environment and commit the swap.

        Raises
        ------
        SwitchInProgress
            A switch or another rollback holds the guard.
        RollbackFailed
            The router refused; the committed environment is unchanged.
        """
        async with self._single_flight("rollback"):
            destination = self._state.target
            source = self._state.current
            self._state.enter(SwitchPhase.ROLLING_BACK)
            logger.warning("Manual rollback: %s -> %s", source.value, destination.value)
            try:
                await bounded(
                    self._router.set_full_traffic(destination),
                    self._config.router_timeout_s,
                )
            except ROUTER_FAILURES as exc:
                result = RollbackResult(
                    success=False, rolled_back_to=destination, reason=error_reason(exc)
                )
                self._history.record_rollback(result)
                error = RollbackFailed(
                    f"Rollback to {destination.value} failed: {error_reason(exc)}",
                    environment=source,
                    rolled_back_to=destination,
                )
                logger.critical("%s: %s", error.kind, error.message)
                await self._event_bus.publish(SwitchAlert(
                    source_id=self._source_id,
                    error_kind=error.kind,
                    message=error.message,
                    environment=destination,
                ))
                raise error from exc

            self._state.commit(destination)
            self._state.enter(SwitchPhase.ROLLED_BACK)
            result = RollbackResult(
                success=True, rolled_back_to=destination, reason="manual rollback"
            )
            self._history.record_rollback(result)
            await self._event_bus.publish(
                RollbackCompleted(source_id=self._source_id, result=result)
            )
            logger.info("Rolled back to %s", destination.value)
            return result

    # -- status ---------------------------------------------------------------

    async def get_status(self) -> SwitchStatus:
        """Router ground truth plus the local guard state.  Never raises."""
        current: Environment | None = None
        error = ""
        try:
            current = await bounded(
                self._router.get_active_environment(), self._config.router_timeout_s
            )
        except ROUTER_FAILURES as exc:
            error = error_reason(exc)
            logger.warning("Could not read active environment: %s", error)
        return SwitchStatus(
            current_environment=current,
            switch_in_progress=self._state.switch_in_progress,
            committed_environment=self._state.current,
            phase=self._state.phase,
            error=error,
        )

    async def reconcile(self) -> Environment:
        """Adopt the router's active environment as the committed one.

        Used at startup when the live ingress may disagree with
        ``initial_environment``.  Router errors propagate as ``RouterError``.
        """
        async with self._single_flight("reconcile"):
            active = await bounded(
                self._router.get_active_environment(), self._config.router_timeout_s
            )
            if active is not self._state.current:
                logger.info(
                    "Reconciled committed environment %s -> %s",
                    self._state.current.value, active.value,
                )
            self._state.commit(active)
            return active

    # -- cancellation ---------------------------------------------------------

    def cancel(self, reason: str = "cancelled by operator") -> bool:
        """Ask the running switch to stop at its next suspension point.

        Returns ``False`` when no switch is running.  A switch cancelled
        after its cutover rolls back before raising ``SwitchCancelled``.
        """
        if self._context is None:
            return False
        logger.warning("Cancelling running switch: %s", reason)
        self._context.cancel(reason)
        return True

    def __repr__(self) -> str:
        return f"SwitchOrchestrator({self._state!r}, router={type(self._router).__name__})"
