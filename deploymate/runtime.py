"""Runtime — bridges HTTP requests to agent calls and the pipeline graph.

Validates request fields, runs clarification / review / chat turns,
takes snapshots, and drives the pipeline graph, yielding SSE events.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Sequence
from pathlib import Path

from deploymate.agents import cache as graph_cache
from deploymate.agents.history import Turn
from deploymate.agents.invoker import AgentInvoker, AnthropicModel, ModelCall
from deploymate.agents.nodes import node_name
from deploymate.agents.readiness import ReadinessClassifier
from deploymate.agents.snapshot import SessionSnapshotter, Snapshot, apply_snapshot
from deploymate.config import AppConfig, PipelineConfig
from deploymate.errors import DeployMateError, ValidationError
from deploymate.pipeline import PipelineEvent, PipelineRun
from deploymate.skills import SkillSet, load_skills, select_chat_skill

logger = logging.getLogger(__name__)


def require(value: str | None, field: str) -> str:
    """Reject a missing or blank request field before any model call."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return value


class PipelineController:
    """Runs the ordered pipeline for one description and streams its events."""

    def __init__(self, pipeline: PipelineConfig, skills: SkillSet, invoker: AgentInvoker) -> None:
        self.pipeline = pipeline
        self.skills = skills
        self.invoker = invoker
        self._step_ids = {
            node_name(i, step): i for i, step in enumerate(pipeline.steps, start=1)
        }

    async def run(self, description: str) -> AsyncGenerator[PipelineEvent, None]:
        """Execute the pipeline graph and yield step/result/done/error events.

        1. Build (or fetch) the compiled graph
        2. Stream it: a custom event marks a step as running, a state
           update marks it done and carries its artifact
        3. On any failure emit a single error event and stop
        """
        require(description, "description")
        run = PipelineRun(self.pipeline.steps, self.pipeline.done_message)
        logger.info(f"Starting pipeline run ({len(run.steps)} steps)")

        initial_state = {"description": description, "outputs": {}}
        config = {"configurable": {"invoker": self.invoker, "skills": self.skills}}

        try:
            graph = graph_cache.get_or_build(self.pipeline)
            async for mode, chunk in graph.astream(
                initial_state, config=config, stream_mode=["custom", "updates"]
            ):
                if mode == "custom":
                    for event in run.start_step(chunk["step"]):
                        yield event
                    continue

                for name, update in chunk.items():
                    step_id = self._step_ids.get(name)
                    if step_id is None:
                        continue
                    kind = run.steps[step_id - 1].kind
                    for event in run.finish_step(step_id, update["outputs"][kind]):
                        yield event

            for event in run.complete():
                yield event
            logger.info("Pipeline run completed")

        except DeployMateError as e:
            logger.error(f"Pipeline aborted at step {run.current}: {e}")
            for event in run.fail(e.message):
                yield event
        except Exception as e:
            logger.error(f"Pipeline execution error at step {run.current}: {e}", exc_info=True)
            for event in run.fail(f"Execution error: {e}"):
                yield event


class AgentRuntime:
    """Everything a request needs, built once at startup and shared read-only."""

    def __init__(self, config: AppConfig, skills: SkillSet, model: ModelCall) -> None:
        self.config = config
        self.skills = skills
        self.invoker = AgentInvoker(model)
        self.classifier = ReadinessClassifier(config.readiness.phrases)
        self.snapshotter = SessionSnapshotter(
            self.invoker,
            config.snapshot.instruction,
            every_turns=config.snapshot.every_turns,
        )
        self.controller = PipelineController(config.pipeline, skills, self.invoker)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        base: Path | None = None,
        model: ModelCall | None = None,
    ) -> AgentRuntime:
        """Load skills (fatal if any is missing) and wire the default model."""
        skills = load_skills(config, base)
        return cls(config, skills, model or AnthropicModel(config.model))

    async def clarify(
        self,
        message: str | None,
        history: Sequence[Turn] = (),
        snapshot: Snapshot | None = None,
    ) -> tuple[str, bool]:
        """One clarification turn. Returns the reply and whether it signals readiness."""
        message = require(message, "message")
        history, message = apply_snapshot(
            snapshot, history, message, self.config.snapshot.keep_recent_turns
        )
        reply = await self.invoker.invoke(self.skills.get("clarifier"), message, history)
        return reply, self.classifier.is_ready(reply)

    async def review(self, tf_code: str | None) -> str:
        tf_code = require(tf_code, "tfCode")
        return await self.invoker.invoke(
            self.skills.get("reviewer"),
            f"Review these OpenTofu files for security issues:\n\n{tf_code}",
        )

    async def chat(
        self,
        message: str | None,
        history: Sequence[Turn] = (),
        mode: str | None = None,
    ) -> str:
        message = require(message, "message")
        skill = select_chat_skill(self.skills, mode)
        return await self.invoker.invoke(skill, message, history)

    async def snapshot(self, history: Sequence[Turn]) -> Snapshot | None:
        return await self.snapshotter.summarize(history)

    def generate(self, description: str | None) -> AsyncGenerator[PipelineEvent, None]:
        """Validate eagerly, then hand back the lazy event stream."""
        return self.controller.run(require(description, "description"))
