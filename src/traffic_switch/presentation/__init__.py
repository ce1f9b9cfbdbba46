"""Operator-facing presentation layer."""

from traffic_switch.presentation.console import StatusReporter

__all__ = ["StatusReporter"]
