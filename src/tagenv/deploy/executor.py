# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Protocol

from . import steps as _steps  # noqa: F401  (registers step operations)
from .context import RunContext
from .errors import ClientError, FatalClientError, classify
from .models import Environment, ExecutionResult, Outcome, Plan, Step, StepResult
from .registry import get as get_operation

# Observer bits
from ..observers.dispatcher import EventBus
from ..observers.events import (
    new_ctx,
    RunSummary,
    RunSuperseded,
    StepAttempt,
    StepFailed,
    StepRetrying,
    StepSkipped,
    StepStarted,
    StepSucceeded,
)

log = logging.getLogger("tagenv")


class RunTracker(Protocol):
    """
    The owner of the environment record. The executor never writes
    records itself; it reports progress through this interface.
    """

    def begin_step(self, plan: Plan, step: Step, run_id: str) -> Environment:
        """
        Re-read the record from the store and, unless another run owns it
        now, move it into the step's phase. Returns the record as stored.
        """
        ...

    def complete_step(self, plan: Plan, step: Step, run_id: str, result: StepResult) -> None: ...


class PlanExecutor:
    """
    Runs a plan step by step. Holds no state between runs.
    """

    def __init__(
        self,
        observers: Optional[List] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.bus = EventBus(observers or [])
        self._sleep = sleep

    def _attempt(self, step: Step, ctx: RunContext, env: Environment, run_ctx: dict) -> tuple[int, StepResult]:
        """
        Call the step's operation until it succeeds, raises a fatal error,
        or runs out of attempts. Returns (attempts, result); raises ClientError.
        """
        operation = get_operation(step.operation)
        policy = step.retry
        attempt = 0
        while True:
            attempt += 1
            self.bus.emit(StepAttempt(name=step.name, attempt=attempt,
                                      max_attempts=policy.max_attempts, **run_ctx))
            try:
                result = operation(ctx, step, env)
                return attempt, result if isinstance(result, StepResult) else StepResult()
            except Exception as raw:
                err = classify(raw)
                err.attempts = attempt
                if isinstance(err, FatalClientError) or attempt >= policy.max_attempts:
                    if err is raw:
                        raise
                    raise err from raw
                delay = policy.delay(attempt)
                log.warning("[%s] %s attempt %d/%d failed, retrying in %.1fs: %s",
                            step.key, step.name, attempt, policy.max_attempts, delay, err)
                self.bus.emit(StepRetrying(name=step.name, attempt=attempt, delay_s=delay,
                                           error=str(err), **run_ctx))
                self._sleep(delay)

    def run(self, plan: Plan, ctx: RunContext, tracker: RunTracker) -> ExecutionResult:
        run_ctx = new_ctx(plan.environment_id, plan.action.value, ctx.run_id)
        warnings: List[str] = []

        for step in plan.steps:
            env = tracker.begin_step(plan, step, ctx.run_id)
            if env.run_id != ctx.run_id:
                log.info("[%s] run %s superseded by %s before %s",
                         plan.environment_id, ctx.run_id, env.run_id, step.name)
                self.bus.emit(RunSuperseded(before_step=step.name, **run_ctx))
                return self._finish(ExecutionResult(final_phase=env.phase, outcome=Outcome.SUPERSEDED,
                                                    warnings=warnings), run_ctx)

            if step.key in env.completed_steps:
                self.bus.emit(StepSkipped(name=step.name, reason="completed in an earlier run", **run_ctx))
                continue

            self.bus.emit(StepStarted(name=step.name, kind=step.kind.value, phase=step.phase.value, **run_ctx))
            t0 = time.time()
            try:
                attempts, result = self._attempt(step, ctx, env, run_ctx)
            except ClientError as err:
                attempts = err.attempts
                stops_run = step.fatal or isinstance(err, FatalClientError)
                self.bus.emit(StepFailed(name=step.name, attempts=attempts, error=str(err),
                                         fatal=stops_run, **run_ctx))
                if stops_run:
                    log.error("[%s] %s failed after %d attempt(s): %s",
                              plan.environment_id, step.name, attempts, err)
                    return self._finish(ExecutionResult(
                        final_phase=plan.failure_phase,
                        outcome=Outcome.FAILED,
                        error=str(err),
                        failed_step=step.name,
                        warnings=warnings,
                    ), run_ctx)
                log.warning("[%s] non-fatal step %s failed, continuing: %s",
                            plan.environment_id, step.name, err)
                warnings.append(f"{step.name}: {err}")
                continue

            tracker.complete_step(plan, step, ctx.run_id, result)
            self.bus.emit(StepSucceeded(name=step.name, attempts=attempts,
                                        duration_ms=int((time.time() - t0) * 1000), **run_ctx))

        return self._finish(ExecutionResult(final_phase=plan.success_phase, outcome=Outcome.SUCCEEDED,
                                            warnings=warnings), run_ctx)

    def _finish(self, result: ExecutionResult, run_ctx: dict) -> ExecutionResult:
        self.bus.emit(RunSummary(
            outcome=result.outcome.value,
            final_phase=result.final_phase.value,
            error=result.error,
            failed_step=result.failed_step,
            **run_ctx,
        ))
        return result
