"""Error taxonomy shared by the agent layer and the HTTP surface.

Every error carries the HTTP status the API reports it with. Only
SnapshotError is ever recovered locally; everything else aborts the
current operation.
"""

from __future__ import annotations


class DeployMateError(Exception):
    """Base class for all errors raised by the service."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(DeployMateError):
    """A required request field is missing or blank."""

    status_code = 400


class HistoryEmptyError(DeployMateError):
    """Sanitized history collapsed to nothing."""

    status_code = 400


class ModelCallError(DeployMateError):
    """The model collaborator failed (network, auth, quota, malformed response)."""

    status_code = 500


class EmptyModelResponseError(ModelCallError):
    """The model answered without any usable text block."""


class SnapshotError(DeployMateError):
    """Summarising a conversation failed. Never fatal."""


class SkillNotFoundError(DeployMateError):
    """A skill file is missing, blank, or the role is unknown."""


class PipelineStateError(DeployMateError):
    """An illegal transition was requested on a pipeline run."""
