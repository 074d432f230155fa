from __future__ import annotations

import logging
from time import perf_counter
from typing import Callable, Optional

from langgraph.graph import END, StateGraph

from health_agent.errors import PipelineError
from health_agent.graph import nodes
from health_agent.graph.state import PipelineState
from health_agent.models import TaskRequest

logger = logging.getLogger(__name__)

STEPS = (
    ("render", nodes.render),
    ("generate", nodes.generate),
    ("extract", nodes.parse),
    ("validate", nodes.check),
    ("rules", nodes.apply_rules),
)

_compiled = None


def _wrap_node(
    name: str, fn: Callable[[PipelineState], PipelineState]
) -> Callable[[PipelineState], PipelineState]:
    def wrapped(state: PipelineState) -> PipelineState:
        start = perf_counter()
        try:
            result = fn(state)
        except PipelineError as exc:
            logger.info("Step %s stopped the pipeline: %s", name, exc.kind.value)
            state["error"] = exc
            result = state
        elapsed_ms = (perf_counter() - start) * 1000.0
        debug = result.setdefault("debug", {})
        trace = debug.setdefault("trace", [])
        trace.append({"node": name, "elapsed_ms": elapsed_ms})
        return result

    return wrapped


def _route(next_step: str) -> Callable[[PipelineState], str]:
    def route(state: PipelineState) -> str:
        return "stop" if state.get("error") is not None else "next"

    route.__name__ = f"route_to_{next_step}"
    return route


def build_graph():
    g = StateGraph(PipelineState)
    for name, fn in STEPS:
        g.add_node(name, _wrap_node(name, fn))

    g.set_entry_point(STEPS[0][0])
    for (name, _), (next_name, _) in zip(STEPS, STEPS[1:]):
        # A failed step short-circuits to END with the error in state
        g.add_conditional_edges(name, _route(next_name), {"next": next_name, "stop": END})
    g.add_edge(STEPS[-1][0], END)
    return g.compile()


def get_graph():
    global _compiled
    if _compiled is None:
        _compiled = build_graph()
    return _compiled


def run_pipeline(request: TaskRequest, graph: Optional[object] = None) -> PipelineState:
    compiled = graph or get_graph()
    return compiled.invoke({"request": request, "debug": {}})  # type: ignore[attr-defined]
