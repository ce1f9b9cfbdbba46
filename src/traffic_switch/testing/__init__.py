"""Public testing utilities for traffic-switch.

Provides a fake clock, a scripted health probe and routers that fail or hang
on demand for writing self-contained tests and dry runs without a cluster.
"""

from traffic_switch.testing.fakes import (
    FailingRouter,
    FakeClock,
    HangingRouter,
    ScriptedHealthProbe,
)

__all__ = ["FailingRouter", "FakeClock", "HangingRouter", "ScriptedHealthProbe"]
