"""Rich-based console output for operators.

:class:`StatusReporter` renders switch status, switch outcomes, the switch
history and environment comparisons as ``rich`` tables.
"""

from __future__ import annotations

import datetime as _dt
import sys
from collections.abc import Sequence
from typing import Any

from rich.console import Console
from rich.table import Table

from traffic_switch.domain.enums import Recommendation
from traffic_switch.domain.values import (
    EnvironmentComparison,
    HealthCheckResult,
    RollbackResult,
    SwitchOutcome,
    SwitchStatus,
)

_RECOMMENDATION_STYLE = {
    Recommendation.SWITCH_TO_FIRST: "yellow",
    Recommendation.SWITCH_TO_SECOND: "yellow",
    Recommendation.SAFE_TO_SWITCH: "green",
    Recommendation.DO_NOT_SWITCH: "red",
}


def _when(timestamp: float) -> str:
    return _dt.datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


def _health(result: HealthCheckResult | None) -> str:
    if result is None:
        return "[dim]-[/dim]"
    if result.healthy:
        return f"[green]healthy[/green] (attempt {result.attempt})"
    return f"[red]unhealthy[/red] (attempt {result.attempt}) {result.reason}"


class StatusReporter:
    """Console presentation of orchestrator results.

    Parameters
    ----------
    file:
        Output stream.  Defaults to ``sys.stdout``.
    width:
        Fixed console width; ``None`` lets rich detect it.
    """

    def __init__(self, file: Any = None, width: int | None = None) -> None:
        self._console = Console(file=file or sys.stdout, width=width)

    @property
    def console(self) -> Console:
        return self._console

    # -- public API --------------------------------------------------------

    def print_status(self, status: SwitchStatus) -> None:
        table = Table(title="Traffic Status", show_header=True, header_style="bold cyan")
        table.add_column("Field", style="bold")
        table.add_column("Value")

        live = (
            status.current_environment.value
            if status.current_environment is not None
            else "[red]unknown[/red]"
        )
        table.add_row("Live environment", live)
        table.add_row("Committed environment", status.committed_environment.value)
        table.add_row(
            "Switch in progress",
            "[yellow]yes[/yellow]" if status.switch_in_progress else "no",
        )
        table.add_row("Phase", status.phase.value)
        if status.error:
            table.add_row("Router error", f"[red]{status.error}[/red]")
        elif not status.in_sync:
            table.add_row("Warning", "[yellow]router disagrees with committed state[/yellow]")

        self._console.print(table)

    def print_outcome(self, outcome: SwitchOutcome) -> None:
        """Print one switch outcome, including canary polls and rollback."""
        colour = "green" if outcome.success else "red"
        table = Table(
            title=f"Switch {outcome.switch_id}",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Field", style="bold")
        table.add_column("Value")

        table.add_row(
            "Result",
            f"[{colour}]{'success' if outcome.success else 'failed'}[/{colour}]",
        )
        table.add_row(
            "Route",
            f"{outcome.previous_environment.value} -> {outcome.requested_environment.value}",
        )
        table.add_row("Live environment", outcome.current_environment.value)
        table.add_row("Pre-check", _health(outcome.health_check))
        if outcome.canary_checks:
            passed = sum(1 for c in outcome.canary_checks if c.healthy)
            table.add_row("Canary polls", f"{passed}/{len(outcome.canary_checks)} healthy")
        table.add_row("Post-check", _health(outcome.post_switch_health))
        if outcome.rollback is not None:
            table.add_row("Rollback", self._rollback_text(outcome.rollback))
        if outcome.error:
            table.add_row("Error", f"[red]{outcome.error_kind}: {outcome.error}[/red]")
        table.add_row("Duration", f"{outcome.duration_s:.1f}s")
        table.add_row("Finished", _when(outcome.timestamp))

        self._console.print(table)

    def print_rollback(self, result: RollbackResult) -> None:
        self._console.print(f"Rollback: {self._rollback_text(result)}")

    def print_history(self, outcomes: Sequence[SwitchOutcome]) -> None:
        if not outcomes:
            self._console.print("[dim]no switches recorded[/dim]")
            return

        table = Table(title="Switch History", show_header=True, header_style="bold cyan")
        table.add_column("ID")
        table.add_column("Finished")
        table.add_column("Route")
        table.add_column("Result", justify="center")
        table.add_column("Error")
        for outcome in outcomes:
            colour = "green" if outcome.success else "red"
            table.add_row(
                outcome.switch_id,
                _when(outcome.timestamp),
                f"{outcome.previous_environment.value} -> "
                f"{outcome.requested_environment.value}",
                f"[{colour}]{'ok' if outcome.success else 'failed'}[/{colour}]",
                outcome.error_kind or "",
            )
        self._console.print(table)

    def print_comparison(self, comparison: EnvironmentComparison) -> None:
        table = Table(title="Environment Comparison", show_header=True, header_style="bold cyan")
        table.add_column("Environment", style="bold")
        table.add_column("Health")
        table.add_column("Reason")
        for result in (comparison.first, comparison.second):
            table.add_row(
                result.environment.value,
                "[green]healthy[/green]" if result.healthy else "[red]unhealthy[/red]",
                result.reason,
            )
        self._console.print(table)
        style = _RECOMMENDATION_STYLE[comparison.recommendation]
        self._console.print(f"Recommendation: [{style}]{comparison.message}[/{style}]")

    # -- helpers -----------------------------------------------------------

    @staticmethod
    def _rollback_text(result: RollbackResult) -> str:
        if result.success:
            kind = "automatic" if result.automatic else "manual"
            return f"[yellow]{kind}[/yellow], traffic on {result.rolled_back_to.value}"
        return f"[red]failed[/red] ({result.reason})"
