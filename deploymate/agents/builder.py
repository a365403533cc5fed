"""Graph builder — wires pipeline steps into a LangGraph StateGraph.

START → [step_1] → [step_2] → ... → [step_n] → END

Steps run strictly in order: every prompt is built from the outputs of
all earlier steps, so there is nothing to run in parallel.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from langgraph.graph import END, StateGraph

from deploymate.agents.nodes import make_step_node, node_name
from deploymate.agents.state import PipelineState

if TYPE_CHECKING:
    from langgraph.graph.state import CompiledStateGraph

    from deploymate.config import PipelineConfig

logger = logging.getLogger(__name__)


def build_graph(pipeline: PipelineConfig) -> CompiledStateGraph:
    """Build and compile the sequential pipeline graph."""
    graph = StateGraph(PipelineState)
    names = []

    for step_id, step in enumerate(pipeline.steps, start=1):
        name = node_name(step_id, step)
        graph.add_node(name, make_step_node(step_id, step))
        names.append(name)

    graph.set_entry_point(names[0])
    for current, following in zip(names, names[1:]):
        graph.add_edge(current, following)
    graph.add_edge(names[-1], END)

    logger.info(f"Built pipeline graph: {' → '.join(names)}")
    return graph.compile()
