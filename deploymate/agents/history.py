"""Conversation history repair.

The model only accepts a conversation that opens with a user turn and
strictly alternates user/assistant afterwards. Client-side history
(retries, duplicate submissions, restored sessions) rarely satisfies that,
so it is normalised before every call instead of being rejected.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

Role = Literal["user", "assistant"]


class Turn(BaseModel):
    """One message of a conversation."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""

    @field_validator("content", mode="before")
    @classmethod
    def coerce_content(cls, v: Any) -> Any:
        # null content is dropped by sanitize(); numbers are kept as text
        if v is None:
            return ""
        if isinstance(v, (int, float, bool)):
            return str(v)
        return v

    @classmethod
    def user(cls, content: str) -> Turn:
        return cls(role="user", content=content)

    @classmethod
    def agent(cls, content: str) -> Turn:
        return cls(role="assistant", content=content)


def sanitize(turns: Iterable[Turn]) -> list[Turn]:
    """Return a new, model-legal copy of ``turns``.

    - blank turns are dropped
    - leading assistant turns are dropped
    - consecutive user turns are merged with a blank line between them
    - of consecutive assistant turns only the last one is kept

    The input is never mutated. ``sanitize(sanitize(x)) == sanitize(x)``.
    """
    filtered = [t for t in turns if t.content and t.content.strip()]
    if not filtered:
        return []

    result: list[Turn] = []
    for turn in filtered:
        if not result:
            if turn.role == "user":
                result.append(turn)
            continue

        last = result[-1]
        if turn.role != last.role:
            result.append(turn)
        elif turn.role == "user":
            result[-1] = Turn.user(f"{last.content}\n\n{turn.content}")
        else:
            # A later agent utterance supersedes one that never got a reply.
            result[-1] = turn

    return result
