"""LangGraph node functions — one per pipeline step.

Each node announces itself on the custom stream channel, renders its
prompt from the description and the outputs of earlier steps, and makes
a single agent call. Errors propagate and end the graph run.

Annotations here are evaluated at definition time: LangGraph inspects
them to decide which runtime arguments (config, writer) to inject.
"""

import logging
from collections.abc import Callable

from langchain_core.runnables import RunnableConfig
from langgraph.types import StreamWriter

from deploymate.agents.state import PipelineState
from deploymate.config import PipelineStepConfig

logger = logging.getLogger(__name__)


def render_prompt(template: str, state: PipelineState) -> str:
    """Fill a step template with the description and upstream outputs.

    Template: "Review these OpenTofu files:\\n\\n{terraform}"
    Outputs:  {"terraform": "resource ..."}
    Result:   "Review these OpenTofu files:\\n\\nresource ..."
    """
    values = {"description": state["description"], **state.get("outputs", {})}
    return template.format_map(values)


def make_step_node(step_id: int, step: PipelineStepConfig) -> Callable:
    """Create a graph node that runs one pipeline step.

    The agent invoker and skill set are read from the run's
    ``configurable`` so one compiled graph serves every request.
    """

    async def step_node(
        state: PipelineState,
        config: RunnableConfig,
        writer: StreamWriter,
    ) -> dict:
        writer({"step": step_id, "kind": step.kind})
        logger.info(f"Step {step_id} ('{step.kind}') running")

        configurable = config["configurable"]
        invoker = configurable["invoker"]
        skill = configurable["skills"].get(step.skill)

        text = await invoker.invoke(skill, render_prompt(step.template, state))
        return {"outputs": {step.kind: text}}

    step_node.__name__ = node_name(step_id, step)
    return step_node


def node_name(step_id: int, step: PipelineStepConfig) -> str:
    return f"step_{step_id}_{step.kind}"
