import json

import pytest

from deploymate.errors import PipelineStateError
from deploymate.pipeline import PipelineEvent, PipelineRun, RunPhase, StepStatus


@pytest.fixture
def run(config):
    return PipelineRun(config.pipeline.steps, config.pipeline.done_message)


def _finish(run, step_id, content="out"):
    run.start_step(step_id)
    return run.finish_step(step_id, content)


def test_new_run_is_idle_with_waiting_steps(run):
    assert run.phase == RunPhase.IDLE
    assert [s.id for s in run.steps] == [1, 2, 3, 4]
    assert all(s.status == StepStatus.WAITING for s in run.steps)


def test_start_step_emits_running_event(run):
    events = run.start_step(1)
    assert [e.model_dump() for e in events] == [
        {
            "event": "step",
            "data": {"step": 1, "status": "running", "label": "Generating infrastructure..."},
        }
    ]
    assert run.phase == RunPhase.STEP_RUNNING
    assert run.steps[0].status == StepStatus.RUNNING


def test_finish_step_emits_done_then_result(run):
    run.start_step(1)
    events = run.finish_step(1, "resource {}")
    assert [e.event for e in events] == ["step", "result"]
    assert events[0].data == {"step": 1, "status": "done", "label": "Infrastructure generated ✅"}
    assert events[1].data == {"type": "terraform", "content": "resource {}"}
    assert run.results == {"terraform": "resource {}"}
    assert run.phase == RunPhase.STEP_DONE


def test_full_run_completes(run):
    for step_id in range(1, 5):
        _finish(run, step_id)
    events = run.complete()
    assert events[0].event == "done"
    assert run.phase == RunPhase.COMPLETED
    assert all(s.status == StepStatus.DONE for s in run.steps)


def test_fail_marks_running_step_and_keeps_earlier_results(run):
    _finish(run, 1, "tf")
    run.start_step(2)
    events = run.fail("boom")

    assert [e.model_dump() for e in events] == [{"event": "error", "data": {"message": "boom"}}]
    assert run.phase == RunPhase.ERRORED
    assert [s.status for s in run.steps] == [
        StepStatus.DONE,
        StepStatus.FAILED,
        StepStatus.WAITING,
        StepStatus.WAITING,
    ]
    assert run.results == {"terraform": "tf"}


def test_fail_before_any_step(run):
    run.fail("graph build error")
    assert run.phase == RunPhase.ERRORED


@pytest.mark.parametrize(
    "action",
    [
        lambda r: r.start_step(2),                 # skipping ahead
        lambda r: r.finish_step(1, "x"),           # finishing before starting
        lambda r: r.complete(),                    # completing with nothing run
        lambda r: (r.start_step(1), r.start_step(1)),
        lambda r: (_finish(r, 1), r.complete()),   # completing early
        lambda r: (r.fail("x"), r.start_step(1)),  # terminal
        lambda r: (r.fail("x"), r.fail("y")),
    ],
)
def test_illegal_transitions_raise(run, action):
    with pytest.raises(PipelineStateError):
        action(run)


def test_done_steps_never_revert(run):
    _finish(run, 1)
    with pytest.raises(PipelineStateError):
        run.start_step(1)
    assert run.steps[0].status == StepStatus.DONE


def test_event_sse_format():
    event = PipelineEvent(event="result", data={"type": "cost", "content": "$42\nper month"})
    text = event.to_sse()
    assert text.startswith("event: result\ndata: ")
    assert text.endswith("\n\n")
    assert json.loads(text.split("data: ", 1)[1]) == {"type": "cost", "content": "$42\nper month"}
