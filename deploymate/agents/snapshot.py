"""Session snapshots — condensed digests of a long clarification dialogue.

Every ``every_turns`` turns the conversation is summarised into a small
record the client keeps and sends back with later clarify calls, so only
the most recent turns need to be replayed. Snapshots are advisory: any
failure is logged and skipped, the conversation itself carries on.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

import pydantic
from pydantic import BaseModel, ConfigDict

from deploymate.agents.history import Turn, sanitize
from deploymate.errors import DeployMateError, SnapshotError
from deploymate.skills import Skill

if TYPE_CHECKING:
    from deploymate.agents.invoker import AgentInvoker

logger = logging.getLogger(__name__)


class Snapshot(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    summary: str
    cloud: str | None = None
    estimated_cost: str | None = None
    turns: int = 0


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def _transcript(history: Sequence[Turn]) -> str:
    lines = []
    for turn in sanitize(history):
        speaker = "User" if turn.role == "user" else "Assistant"
        lines.append(f"{speaker}: {turn.content}")
    return "\n\n".join(lines)


class SessionSnapshotter:
    def __init__(self, invoker: AgentInvoker, instruction: str, every_turns: int = 8) -> None:
        self.invoker = invoker
        self.every_turns = every_turns
        self.skill = Skill(role="snapshot", text=instruction, source="config.yaml")

    def is_due(self, history: Sequence[Turn]) -> bool:
        """A snapshot is taken each time the history reaches a multiple of the cadence."""
        return len(history) > 0 and len(history) % self.every_turns == 0

    async def summarize(self, history: Sequence[Turn]) -> Snapshot | None:
        """Return a snapshot when one is due, otherwise None. Never raises."""
        if not self.is_due(history):
            return None
        try:
            return await self._summarize(history)
        except DeployMateError as e:
            logger.warning(f"Snapshot skipped after {len(history)} turns: {e}")
            return None

    async def _summarize(self, history: Sequence[Turn]) -> Snapshot:
        transcript = _transcript(history)
        if not transcript:
            raise SnapshotError("Nothing to summarise")

        reply = await self.invoker.invoke(
            self.skill,
            f"Summarise this infrastructure conversation:\n\n{transcript}",
        )

        try:
            data = json.loads(_strip_fences(reply))
            if not isinstance(data, dict):
                raise SnapshotError(f"Expected a JSON object, got {type(data).__name__}")
            snapshot = Snapshot(**{**data, "turns": len(history)})
        except (json.JSONDecodeError, pydantic.ValidationError) as e:
            raise SnapshotError(f"Unparsable snapshot: {e}") from e

        logger.info(
            f"Snapshot taken at {len(history)} turns "
            f"(cloud={snapshot.cloud}, estimated_cost={snapshot.estimated_cost})"
        )
        return snapshot


def apply_snapshot(
    snapshot: Snapshot | None,
    history: Sequence[Turn],
    message: str,
    keep_recent: int,
) -> tuple[list[Turn], str]:
    """Replace replayed history with a snapshot plus the most recent turns."""
    if snapshot is None:
        return list(history), message

    recent = list(history[-keep_recent:]) if keep_recent else []
    context = f"Conversation summary so far:\n{snapshot.summary}"
    if snapshot.cloud:
        context += f"\nCloud provider: {snapshot.cloud}"
    if snapshot.estimated_cost:
        context += f"\nRough budget: {snapshot.estimated_cost}"
    return recent, f"{context}\n\n{message}"
