import paramiko
import pytest

from tagenv.deploy.context import RunContext
from tagenv.deploy.errors import FatalClientError, TransientClientError
from tagenv.deploy.executor import PlanExecutor
from tagenv.deploy.models import (
    Action, Environment, Outcome, Phase, Plan, ResourceKind, Step, StepKind, StepResult,
)
from tagenv.deploy.registry import register
from tagenv.utils.retry import RetryPolicy

# ----------------- test operations -----------------

SCRIPT = {}


@register("test.scripted")
def _scripted(ctx, step, env):
    outcomes = SCRIPT[step.name]
    outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
    if isinstance(outcome, BaseException):
        raise outcome
    return outcome


class Tracker:
    """In-memory RunTracker; `superseded_at` swaps the run id before that step."""

    def __init__(self, env, superseded_at=None):
        self.env = env
        self.superseded_at = superseded_at
        self.begun = []
        self.completed = []

    def begin_step(self, plan, step, run_id):
        if step.name == self.superseded_at:
            self.env = self.env.transition(Phase.DESTROYING, run_id="other-run")
        if self.env.run_id != run_id:
            return self.env
        self.begun.append(step.name)
        self.env = self.env.transition(step.phase)
        return self.env

    def complete_step(self, plan, step, run_id, result):
        self.completed.append(step.name)
        self.env = self.env.with_handles(result.handles)
        self.env = self.env.model_copy(update={"completed_steps": [*self.env.completed_steps, step.key]})


def _step(name, *, fatal=True, attempts=3, phase=Phase.PROVISIONING):
    return Step(
        name=name,
        kind=StepKind.RESOURCE,
        operation="test.scripted",
        key=f"e1:{name}",
        retry=RetryPolicy(max_attempts=attempts, backoff_seconds=1.0, multiplier=2.0),
        fatal=fatal,
        phase=phase,
    )


def _plan(*steps):
    return Plan(action=Action.DEPLOY, environment_id="e1", steps=tuple(steps),
                success_phase=Phase.READY, failure_phase=Phase.FAILED)


@pytest.fixture
def run(cfg, clients, capture):
    sleeps = []

    def _run(plan, tracker):
        ex = PlanExecutor([capture], sleep=sleeps.append)
        ctx = RunContext(config=cfg, clients=clients, run_id="run-1")
        return ex.run(plan, ctx, tracker), sleeps

    SCRIPT.clear()
    return _run


def _env(**kw):
    return Environment(id="e1", run_id="run-1", **kw)


def test_runs_steps_in_order_and_reports_results(run, capture):
    SCRIPT.update({
        "a": [StepResult(handles={ResourceKind.RESOURCE_GROUP: "rg"})],
        "b": [None],
    })
    tracker = Tracker(_env())
    result, _ = run(_plan(_step("a"), _step("b", phase=Phase.BOOTSTRAPPING_CLUSTER)), tracker)

    assert result.outcome is Outcome.SUCCEEDED
    assert result.final_phase is Phase.READY
    assert tracker.completed == ["a", "b"]
    assert tracker.env.resource_handles == {ResourceKind.RESOURCE_GROUP: "rg"}
    assert capture.kinds()[-1] == "RunSummary"


def test_transient_errors_back_off_exponentially(run):
    SCRIPT["a"] = [TimeoutError("slow"), OSError("reset"), StepResult()]
    result, sleeps = run(_plan(_step("a", attempts=3)), Tracker(_env()))
    assert result.outcome is Outcome.SUCCEEDED
    assert sleeps == [1.0, 2.0]


def test_fatal_error_stops_immediately(run, capture):
    SCRIPT.update({
        "a": [paramiko.AuthenticationException("bad key")],
        "b": [StepResult()],
    })
    tracker = Tracker(_env())
    result, sleeps = run(_plan(_step("a"), _step("b")), tracker)

    assert result.outcome is Outcome.FAILED
    assert result.final_phase is Phase.FAILED
    assert result.failed_step == "a"
    assert "bad key" in result.error
    assert sleeps == []
    assert tracker.begun == ["a"]
    failed = [e for e in capture.events if e.__class__.__name__ == "StepFailed"][0]
    assert failed.attempts == 1 and failed.fatal


def test_fatal_client_error_aborts_even_non_fatal_step(run):
    SCRIPT.update({"a": [FatalClientError("malformed")], "b": [StepResult()]})
    result, _ = run(_plan(_step("a", fatal=False), _step("b")), Tracker(_env()))
    assert result.outcome is Outcome.FAILED
    assert result.failed_step == "a"


def test_exhausted_non_fatal_step_continues(run):
    SCRIPT.update({"a": [TransientClientError("nope")], "b": [StepResult()]})
    tracker = Tracker(_env())
    result, sleeps = run(_plan(_step("a", fatal=False, attempts=2), _step("b")), tracker)

    assert result.outcome is Outcome.SUCCEEDED
    assert result.warnings == ["a: nope"]
    assert tracker.completed == ["b"]
    assert sleeps == [1.0]


def test_exhausted_fatal_step_fails_with_attempt_count(run, capture):
    SCRIPT["a"] = [TransientClientError("still booting")]
    result, _ = run(_plan(_step("a", attempts=4)), Tracker(_env()))
    assert result.outcome is Outcome.FAILED
    failed = [e for e in capture.events if e.__class__.__name__ == "StepFailed"][0]
    assert failed.attempts == 4


def test_unknown_exception_is_fatal(run):
    SCRIPT["a"] = [KeyError("oops")]
    result, sleeps = run(_plan(_step("a")), Tracker(_env()))
    assert result.outcome is Outcome.FAILED
    assert "KeyError" in result.error
    assert sleeps == []


def test_superseded_run_stops_before_next_step(run, capture):
    SCRIPT.update({"a": [StepResult()], "b": [StepResult()]})
    tracker = Tracker(_env(), superseded_at="b")
    result, _ = run(_plan(_step("a"), _step("b")), tracker)

    assert result.outcome is Outcome.SUPERSEDED
    assert result.final_phase is Phase.DESTROYING
    assert tracker.completed == ["a"]
    assert "RunSuperseded" in capture.kinds()


def test_completed_steps_are_skipped(run, capture):
    SCRIPT.update({"a": [RuntimeError("must not run")], "b": [StepResult()]})
    tracker = Tracker(_env(completed_steps=["e1:a"]))
    result, _ = run(_plan(_step("a"), _step("b")), tracker)

    assert result.outcome is Outcome.SUCCEEDED
    assert tracker.completed == ["b"]
    skipped = [e for e in capture.events if e.__class__.__name__ == "StepSkipped"]
    assert [e.name for e in skipped] == ["a"]
