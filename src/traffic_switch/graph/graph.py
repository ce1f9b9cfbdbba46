"""Build the switch StateGraph.

``build_switch_graph()`` wires the phase nodes and conditional edges into a
compiled LangGraph implementing pre-check, optional canary, cutover,
post-switch validation and automatic rollback.
"""

from typing import Any

from langgraph.graph import END, START, StateGraph

from traffic_switch.graph.edges import (
    after_canary,
    after_cutover,
    after_post_check,
    after_pre_check,
)
from traffic_switch.graph.nodes import (
    SwitchDeps,
    make_abort_canary_node,
    make_canary_node,
    make_commit_node,
    make_cutover_node,
    make_post_check_node,
    make_pre_check_node,
    make_rollback_node,
)
from traffic_switch.graph.state import SwitchGraphState


def build_switch_graph(deps: SwitchDeps, checkpointer: Any | None = None) -> Any:
    """Build and compile the switch StateGraph.

    Parameters
    ----------
    deps:
        Collaborators the nodes close over.
    checkpointer:
        Optional LangGraph checkpointer.  The state holds live objects
        (the switch context, exceptions), so only in-memory savers apply.

    Returns
    -------
    CompiledStateGraph
        A compiled graph ready for ``.ainvoke()``.
    """
    graph = StateGraph(SwitchGraphState)

    graph.add_node("pre_check", make_pre_check_node(deps))
    graph.add_node("canary", make_canary_node(deps))
    graph.add_node("abort_canary", make_abort_canary_node(deps))
    graph.add_node("cutover", make_cutover_node(deps))
    graph.add_node("post_check", make_post_check_node(deps))
    graph.add_node("rollback", make_rollback_node(deps))
    graph.add_node("commit", make_commit_node(deps))

    graph.add_edge(START, "pre_check")
    graph.add_conditional_edges(
        "pre_check",
        after_pre_check,
        {"canary": "canary", "cutover": "cutover", "__end__": END},
    )
    graph.add_conditional_edges(
        "canary",
        after_canary,
        {"abort_canary": "abort_canary", "cutover": "cutover", "__end__": END},
    )
    graph.add_conditional_edges(
        "cutover",
        after_cutover,
        {"post_check": "post_check", "__end__": END},
    )
    graph.add_conditional_edges(
        "post_check",
        after_post_check,
        {"rollback": "rollback", "commit": "commit"},
    )
    graph.add_edge("abort_canary", END)
    graph.add_edge("rollback", END)
    graph.add_edge("commit", END)

    compile_kwargs: dict[str, Any] = {}
    if checkpointer is not None:
        compile_kwargs["checkpointer"] = checkpointer
    return graph.compile(**compile_kwargs)
