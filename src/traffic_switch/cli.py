"""Command-line interface for the traffic-switch orchestrator.

Provides subcommands to switch traffic, roll back, show the live status and
compare the health of both environments.

Entry point
-----------
The ``main()`` function is registered as a console script in
``pyproject.toml``::

    [project.scripts]
    traffic-switch = "traffic_switch.cli:main"

Usage examples::

    traffic-switch switch green
    traffic-switch switch green --canary 10 --retries 5 --interval-ms 2000
    traffic-switch --dry-run switch green --json
    traffic-switch rollback
    traffic-switch status
    traffic-switch compare

Exit codes: ``0`` on success, ``1`` on a failed switch or bad input, ``2``
when live traffic may be left in an undefined place.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any

from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from traffic_switch.domain.enums import Environment
from traffic_switch.domain.exceptions import SwitchAborted, TrafficSwitchError
from traffic_switch.infrastructure.config import RouterConfig, SwitchOptions, load_config_file
from traffic_switch.infrastructure.serialization import to_json
from traffic_switch.presentation.console import StatusReporter
from traffic_switch.services.health import HealthProbe, HttpHealthProbe, compare_environments
from traffic_switch.services.orchestrator import SwitchOrchestrator
from traffic_switch.services.requests import SwitchRequest
from traffic_switch.services.router import build_router

logger = logging.getLogger("traffic_switch.cli")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CRITICAL = 2


def _build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="traffic-switch",
        description="Blue/green traffic switching with health gating and rollback.",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        default=False,
        help="Show the package version and exit.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON config file with orchestrator/switch/probe/router sections.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Route through an in-memory table instead of the cluster ingress.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level. (default: INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available subcommands")

    # -- switch ------------------------------------------------------------
    switch_parser = subparsers.add_parser(
        "switch",
        help="Move all traffic to an environment.",
        description="Pre-check, optionally canary, cut over and validate.",
    )
    switch_parser.add_argument("environment", choices=["blue", "green"])
    switch_parser.add_argument(
        "--canary",
        type=int,
        default=None,
        metavar="PERCENT",
        help="Ramp PERCENT of traffic to the target before the full cutover.",
    )
    switch_parser.add_argument(
        "--retries",
        type=int,
        default=None,
        help="Pre-check attempts before giving up.",
    )
    switch_parser.add_argument(
        "--interval-ms",
        type=int,
        default=None,
        help="Milliseconds between pre-check attempts.",
    )
    switch_parser.add_argument(
        "--deadline",
        type=float,
        default=None,
        help="Overall deadline for the switch, in seconds.",
    )
    switch_parser.add_argument(
        "--json", action="store_true", default=False, help="Print the outcome as JSON."
    )

    # -- rollback ----------------------------------------------------------
    rollback_parser = subparsers.add_parser(
        "rollback",
        help="Route all traffic to the inactive environment.",
    )
    rollback_parser.add_argument(
        "--json", action="store_true", default=False, help="Print the result as JSON."
    )

    # -- status ------------------------------------------------------------
    status_parser = subparsers.add_parser("status", help="Show the live environment.")
    status_parser.add_argument(
        "--json", action="store_true", default=False, help="Print the status as JSON."
    )

    # -- compare -----------------------------------------------------------
    compare_parser = subparsers.add_parser(
        "compare",
        help="Compare the health of both environments.",
    )
    compare_parser.add_argument(
        "--json", action="store_true", default=False, help="Print the comparison as JSON."
    )

    return parser


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_sections(args: argparse.Namespace) -> dict[str, Any]:
    sections = load_config_file(args.config) if args.config else {}
    if args.dry_run:
        router_cfg = sections.get("router") or RouterConfig()
        sections["router"] = RouterConfig.from_dict({**router_cfg.to_dict(), "kind": "memory"})
    return sections


def _build_orchestrator(sections: dict[str, Any], probe: HealthProbe) -> SwitchOrchestrator:
    orchestrator_cfg = sections.get("orchestrator")
    initial = orchestrator_cfg.initial if orchestrator_cfg else Environment.BLUE
    return SwitchOrchestrator(
        probe,
        build_router(sections.get("router"), active=initial),
        orchestrator_cfg,
        default_options=sections.get("switch"),
    )


def _exit_code(exc: TrafficSwitchError) -> int:
    return EXIT_CRITICAL if exc.critical else EXIT_FAILED


# =========================================================================
# Subcommands
# =========================================================================

async def _cmd_switch(args: argparse.Namespace, reporter: StatusReporter) -> int:
    """Handle the ``switch`` subcommand."""
    sections = _load_sections(args)
    body: dict[str, Any] = {"environment": args.environment}
    if args.canary is not None:
        body.update(canary=True, canaryPercentage=args.canary)
    if args.retries is not None:
        body["healthCheckRetries"] = args.retries
    if args.interval_ms is not None:
        body["healthCheckInterval"] = args.interval_ms
    request = SwitchRequest.model_validate(body)
    options = request.to_options(sections.get("switch"))
    if args.deadline is not None:
        options = SwitchOptions.from_dict({**options.to_dict(), "deadline_s": args.deadline})

    async with HttpHealthProbe(sections.get("probe")) as probe:
        orchestrator = _build_orchestrator(sections, probe)
        if not args.dry_run:
            await orchestrator.reconcile()
        try:
            outcome = await orchestrator.switch_traffic(request.target, options)
        except SwitchAborted as exc:
            if exc.outcome is not None:
                _show(args, reporter, exc.outcome)
            return _exit_code(exc)

    _show(args, reporter, outcome)
    return EXIT_OK


async def _cmd_rollback(args: argparse.Namespace, reporter: StatusReporter) -> int:
    """Handle the ``rollback`` subcommand."""
    sections = _load_sections(args)
    async with HttpHealthProbe(sections.get("probe")) as probe:
        orchestrator = _build_orchestrator(sections, probe)
        if not args.dry_run:
            await orchestrator.reconcile()
        result = await orchestrator.rollback()
    if args.json:
        print(to_json(result))
    else:
        reporter.print_rollback(result)
    return EXIT_OK


async def _cmd_status(args: argparse.Namespace, reporter: StatusReporter) -> int:
    """Handle the ``status`` subcommand."""
    sections = _load_sections(args)
    async with HttpHealthProbe(sections.get("probe")) as probe:
        orchestrator = _build_orchestrator(sections, probe)
        status = await orchestrator.get_status()
    _show(args, reporter, status)
    return EXIT_FAILED if status.error else EXIT_OK


async def _cmd_compare(args: argparse.Namespace, reporter: StatusReporter) -> int:
    """Handle the ``compare`` subcommand."""
    sections = _load_sections(args)
    async with HttpHealthProbe(sections.get("probe")) as probe:
        comparison = await compare_environments(probe)
    _show(args, reporter, comparison)
    return EXIT_OK


def _show(args: argparse.Namespace, reporter: StatusReporter, obj: Any) -> None:
    if args.json:
        print(to_json(obj))
        return
    printers = {
        "switch": reporter.print_outcome,
        "status": reporter.print_status,
        "compare": reporter.print_comparison,
    }
    printers[args.command](obj)


# =========================================================================
# Main entry point
# =========================================================================

def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Parameters
    ----------
    argv:
        Command-line arguments.  Defaults to ``sys.argv[1:]``.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        from traffic_switch import __version__
        print(f"traffic-switch {__version__}")
        sys.exit(EXIT_OK)

    if args.command is None:
        parser.print_help()
        sys.exit(EXIT_OK)

    _configure_logging(args.log_level)

    handlers: dict[str, Any] = {
        "switch": _cmd_switch,
        "rollback": _cmd_rollback,
        "status": _cmd_status,
        "compare": _cmd_compare,
    }
    reporter = StatusReporter()

    try:
        exit_code = asyncio.run(handlers[args.command](args, reporter))
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        exit_code = 130
    except TrafficSwitchError as exc:
        if not exc.critical:
            logger.error("%s: %s", exc.kind, exc.message)
        exit_code = _exit_code(exc)
    except (ValidationError, ValueError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = EXIT_FAILED

    sys.exit(exit_code)
