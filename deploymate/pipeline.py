"""Pipeline run state machine and the events it emits.

A run moves Idle → StepRunning(1) → StepDone(1) → StepRunning(2) → …
→ Completed, or from any non-terminal phase to Errored. Each transition
returns the events a client must see, in order, so the transport only
has to forward them.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel

from deploymate.errors import PipelineStateError

if TYPE_CHECKING:
    from deploymate.config import PipelineStepConfig


class StepStatus(str, Enum):
    WAITING = "waiting"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class RunPhase(str, Enum):
    IDLE = "idle"
    STEP_RUNNING = "step_running"
    STEP_DONE = "step_done"
    ERRORED = "errored"
    COMPLETED = "completed"


TERMINAL_PHASES = {RunPhase.ERRORED, RunPhase.COMPLETED}


class PipelineEvent(BaseModel):
    """A single SSE event in the pipeline stream.

    Events:
        step    — {step, status, label}: a step started or finished
        result  — {type, content}: a step produced its artifact
        done    — {message}: every step succeeded
        error   — {message}: the run aborted
    """

    event: Literal["step", "result", "done", "error"]
    data: dict[str, Any]

    def to_sse(self) -> str:
        return f"event: {self.event}\ndata: {json.dumps(self.data)}\n\n"


@dataclass
class PipelineStep:
    id: int
    kind: str
    running_label: str
    done_label: str
    status: StepStatus = StepStatus.WAITING


class PipelineRun:
    """Aggregate state of one end-to-end generation."""

    def __init__(self, steps: Sequence[PipelineStepConfig], done_message: str) -> None:
        self.steps = [
            PipelineStep(
                id=i,
                kind=step.kind,
                running_label=step.running_label,
                done_label=step.done_label,
            )
            for i, step in enumerate(steps, start=1)
        ]
        self.done_message = done_message
        self.results: dict[str, str] = {}
        self.phase = RunPhase.IDLE
        self.current: int | None = None

    @property
    def finished(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def _step(self, step_id: int) -> PipelineStep:
        if not 1 <= step_id <= len(self.steps):
            raise PipelineStateError(f"Unknown step {step_id}")
        return self.steps[step_id - 1]

    def start_step(self, step_id: int) -> list[PipelineEvent]:
        expected = 1 if self.phase == RunPhase.IDLE else (self.current or 0) + 1
        if self.phase not in (RunPhase.IDLE, RunPhase.STEP_DONE) or step_id != expected:
            raise PipelineStateError(
                f"Cannot start step {step_id} while {self.phase.value} (step {self.current})"
            )

        step = self._step(step_id)
        step.status = StepStatus.RUNNING
        self.phase = RunPhase.STEP_RUNNING
        self.current = step_id
        return [
            PipelineEvent(
                event="step",
                data={"step": step.id, "status": step.status.value, "label": step.running_label},
            )
        ]

    def finish_step(self, step_id: int, content: str) -> list[PipelineEvent]:
        if self.phase != RunPhase.STEP_RUNNING or step_id != self.current:
            raise PipelineStateError(
                f"Cannot finish step {step_id} while {self.phase.value} (step {self.current})"
            )

        step = self._step(step_id)
        step.status = StepStatus.DONE
        self.phase = RunPhase.STEP_DONE
        self.results[step.kind] = content
        return [
            PipelineEvent(
                event="step",
                data={"step": step.id, "status": step.status.value, "label": step.done_label},
            ),
            PipelineEvent(event="result", data={"type": step.kind, "content": content}),
        ]

    def complete(self) -> list[PipelineEvent]:
        if self.phase != RunPhase.STEP_DONE or self.current != len(self.steps):
            raise PipelineStateError(
                f"Cannot complete run while {self.phase.value} (step {self.current})"
            )

        self.phase = RunPhase.COMPLETED
        return [PipelineEvent(event="done", data={"message": self.done_message})]

    def fail(self, message: str) -> list[PipelineEvent]:
        """Abort the run. Results already produced stay in ``results``."""
        if self.finished:
            raise PipelineStateError(f"Cannot fail run while {self.phase.value}")

        if self.phase == RunPhase.STEP_RUNNING and self.current is not None:
            self._step(self.current).status = StepStatus.FAILED
        self.phase = RunPhase.ERRORED
        return [PipelineEvent(event="error", data={"message": message})]
