"""Request/response models — the contract between the service and clients.

Required fields are declared optional so a missing value reaches the
runtime's own validation and is reported as a 400 ``{"error": ...}``
like every other client error.
"""

import logging
from typing import Any

import pydantic
from pydantic import BaseModel, Field, field_validator

from deploymate.agents.history import Turn
from deploymate.agents.snapshot import Snapshot

logger = logging.getLogger(__name__)


class ClarifyRequest(BaseModel):
    message: str | None = None
    history: list[Turn] = Field(default_factory=list)
    snapshot: Snapshot | None = None

    @field_validator("snapshot", mode="before")
    @classmethod
    def drop_unusable_snapshot(cls, v: Any) -> Snapshot | None:
        """Snapshots are advisory; one the client mangled is ignored, not rejected."""
        if v is None or isinstance(v, Snapshot):
            return v
        try:
            return Snapshot.model_validate(v)
        except pydantic.ValidationError as e:
            logger.warning(f"Ignoring unusable snapshot: {e.error_count()} error(s)")
            return None


class ClarifyResponse(BaseModel):
    reply: str
    isReady: bool


class ReviewRequest(BaseModel):
    tfCode: str | None = None


class ReviewResponse(BaseModel):
    review: str


class ChatRequest(BaseModel):
    """Follow-up chat. ``mode == "review"`` talks to the security reviewer;
    any other value talks to the clarifier."""

    message: str | None = None
    history: list[Turn] = Field(default_factory=list)
    mode: str | None = None


class ChatResponse(BaseModel):
    reply: str


class SnapshotRequest(BaseModel):
    history: list[Turn] = Field(default_factory=list)


class SnapshotResponse(BaseModel):
    snapshot: Snapshot | None = None
