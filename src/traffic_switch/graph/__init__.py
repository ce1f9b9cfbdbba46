"""LangGraph-native switch protocol.

Public API
----------
build_switch_graph
    Build and compile the pre-check / canary / cutover / post-check graph.
SwitchGraphState
    The TypedDict state flowing through the graph.
SwitchDeps
    Collaborators the node factories close over.

Edge functions:
    after_pre_check, after_canary, after_cutover, after_post_check
"""

from traffic_switch.graph.edges import (
    after_canary,
    after_cutover,
    after_post_check,
    after_pre_check,
)
from traffic_switch.graph.graph import build_switch_graph
from traffic_switch.graph.nodes import SwitchDeps
from traffic_switch.graph.state import SwitchGraphState

__all__ = [
    "SwitchDeps",
    "SwitchGraphState",
    "after_canary",
    "after_cutover",
    "after_post_check",
    "after_pre_check",
    "build_switch_graph",
]
