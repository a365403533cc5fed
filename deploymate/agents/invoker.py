"""Agent invoker — one model call with a fixed skill.

Attaches the skill as the system instruction, repairs the history,
appends the new user turn, calls the model and returns the first text
block of the reply. Errors are classified here and never retried.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from deploymate.agents.history import Turn, sanitize
from deploymate.errors import (
    EmptyModelResponseError,
    HistoryEmptyError,
    ModelCallError,
)

if TYPE_CHECKING:
    from deploymate.config import ModelConfig
    from deploymate.skills import Skill

logger = logging.getLogger(__name__)

# (system instruction, sanitized turns) -> response content
ModelCall = Callable[[str, Sequence[Turn]], Awaitable[Any]]


def extract_text(content: Any) -> str:
    """Return the first non-blank text block of a model response.

    Anthropic content is either a plain string or a list of typed blocks
    such as ``[{"type": "text", "text": "..."}, {"type": "tool_use", ...}]``.
    """
    if isinstance(content, str):
        if content.strip():
            return content
    elif isinstance(content, list):
        for block in content:
            if isinstance(block, str) and block.strip():
                return block
            if isinstance(block, dict) and block.get("type") == "text":
                text = block.get("text") or ""
                if text.strip():
                    return text
    raise EmptyModelResponseError("No text block in model response")


# ---------------------------------------------------------------------------
# LLM factory
# ---------------------------------------------------------------------------


def _get_llm(model: str, max_tokens: int) -> ChatAnthropic:
    """Create an Anthropic LLM instance."""
    api_key = os.environ.get("ANTHROPIC_API_KEY")
    if not api_key:
        raise RuntimeError("ANTHROPIC_API_KEY environment variable is not set")
    return ChatAnthropic(model=model, max_tokens=max_tokens, api_key=api_key)


def to_messages(system: str, turns: Sequence[Turn]) -> list[BaseMessage]:
    """Convert a skill and sanitized turns into LangChain messages."""
    messages: list[BaseMessage] = [SystemMessage(content=system)]
    for turn in turns:
        if turn.role == "user":
            messages.append(HumanMessage(content=turn.content))
        else:
            messages.append(AIMessage(content=turn.content))
    return messages


class AnthropicModel:
    """Default model collaborator backed by ChatAnthropic.

    The client is built lazily so a missing API key surfaces as a
    ModelCallError on the first request rather than at import time.
    """

    def __init__(self, config: ModelConfig) -> None:
        self.model = config.name
        self.max_tokens = config.max_tokens
        self._llm: ChatAnthropic | None = None

    async def __call__(self, system: str, turns: Sequence[Turn]) -> Any:
        if self._llm is None:
            self._llm = _get_llm(self.model, self.max_tokens)
        response = await self._llm.ainvoke(to_messages(system, turns))
        return response.content


class AgentInvoker:
    """Runs single agent calls against an injectable model collaborator."""

    def __init__(self, model: ModelCall) -> None:
        self._model = model

    async def invoke(
        self,
        skill: Skill,
        message: str,
        history: Sequence[Turn] = (),
    ) -> str:
        messages = sanitize([*history, Turn.user(message)])
        if not messages:
            raise HistoryEmptyError("Conversation is empty after sanitization")

        logger.info(
            f"Agent '{skill.role}': {len(messages)} messages, "
            f"last role: {messages[-1].role}"
        )

        try:
            content = await self._model(skill.text, messages)
        except Exception as e:
            logger.error(f"Agent '{skill.role}' model call failed: {e}", exc_info=True)
            raise ModelCallError(f"Model call failed for '{skill.role}': {e}") from e

        return extract_text(content)
