"""Conditional edge functions for the switch graph.

Every decision reads the ``failure`` slot the previous node wrote; a node
never raises, so these functions are the only place the protocol branches.
"""

from __future__ import annotations

from typing import Any, Literal


def after_pre_check(state: dict[str, Any]) -> Literal["canary", "cutover", "__end__"]:
    """Stop on an unhealthy target, otherwise canary first if requested."""
    if state.get("failure") is not None:
        return "__end__"
    if state["options"].enable_canary:
        return "canary"
    return "cutover"


def after_canary(state: dict[str, Any]) -> Literal["abort_canary", "cutover", "__end__"]:
    """Withdraw the canary weight if one was applied before the failure."""
    if state.get("failure") is not None:
        if state.get("canary_applied"):
            return "abort_canary"
        return "__end__"
    return "cutover"


def after_cutover(state: dict[str, Any]) -> Literal["post_check", "__end__"]:
    # A failed cutover is not rolled back: nothing was committed.
    if state.get("failure") is not None:
        return "__end__"
    return "post_check"


def after_post_check(state: dict[str, Any]) -> Literal["rollback", "commit"]:
    if state.get("failure") is not None:
        return "rollback"
    return "commit"
