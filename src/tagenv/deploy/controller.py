# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/deploy/controller.py

"""Deployment controller.

Accepts deploy and destroy requests, owns the environment records and runs
plans through the executor. Each environment has its own lock; it is held
while a record is read, checked and written, never while a client call is
in progress, so a destroy can always take over from a running deploy.

A run owns a record while `record.run_id` equals its id. Submitting a new
run rewrites `run_id`; the older run notices at its next step boundary and
stops without touching the phase. Only a destroy takes over a live run;
a deploy that finds one is rejected.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Callable, Dict, List, Optional, Set

from ..config.models import TagenvConfig
from ..k8s.probe import wait_for_http
from ..observers.dispatcher import EventBus
from ..observers.events import PhaseChanged, new_ctx
from ..state.store import StateStore
from .clients import Clients
from .context import RunContext
from .errors import AlreadyExistsError, NotFoundError, RequestValidationError
from .executor import PlanExecutor
from .models import (
    ENVIRONMENT_ID_RE,
    IN_FLIGHT,
    Action,
    Environment,
    EnvironmentHandle,
    ExecutionResult,
    Outcome,
    Phase,
    Plan,
    Request,
    SecretParameters,
    Step,
    StepResult,
)
from .planner import build_plan

log = logging.getLogger("tagenv")


def new_run_id() -> str:
    return uuid.uuid4().hex


class DeploymentController:
    def __init__(
        self,
        config: TagenvConfig,
        store: StateStore,
        clients: Clients,
        observers: Optional[List] = None,
        sleep: Callable[[float], None] = time.sleep,
        executor: Optional[PlanExecutor] = None,
        http_probe: Callable[..., int] = wait_for_http,
    ):
        self.config = config
        self.store = store
        self.clients = clients
        self.bus = EventBus(observers or [])
        self.executor = executor or PlanExecutor(observers, sleep=sleep)
        self._http_probe = http_probe
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._live: Set[str] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def submit(self, request: Request) -> EnvironmentHandle:
        """
        Validate and run one request to completion. Returns when the run
        finished, failed, or was superseded by a later request.
        """
        action, secrets = self._validate(request)
        if action is Action.DEPLOY:
            return self._deploy(request.environment_id, secrets)
        return self._destroy(request.environment_id, request.wait_for_completion)

    def get(self, environment_id: str) -> Environment:
        if not ENVIRONMENT_ID_RE.match(environment_id or ""):
            raise RequestValidationError(f"invalid environment id {environment_id!r}")
        return self.store.load(environment_id)

    def list(self) -> List[Environment]:
        return self.store.list()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def _validate(self, request: Request) -> tuple[Action, Optional[SecretParameters]]:
        try:
            action = Action(request.action)
        except ValueError:
            raise RequestValidationError(f"unknown action {request.action!r}") from None

        env_id = request.environment_id
        if not isinstance(env_id, str) or not ENVIRONMENT_ID_RE.match(env_id):
            raise RequestValidationError(
                f"invalid environment id {env_id!r}: use 1-40 lowercase letters, digits or '-'"
            )

        if action is not Action.DEPLOY:
            return action, None

        params = request.parameters or {}
        missing = [k for k in ("root_password", "app_password") if not params.get(k)]
        if missing:
            raise RequestValidationError(f"deploy {env_id}: missing parameter(s) {', '.join(missing)}")
        return action, SecretParameters(
            root_password=params["root_password"],
            app_password=params["app_password"],
        )

    def _deploy(self, env_id: str, secrets: Optional[SecretParameters]) -> EnvironmentHandle:
        run_id = new_run_id()
        with self._lock(env_id):
            current = self._load_or_none(env_id)
            if current is None:
                env = Environment(id=env_id, run_id=run_id)
                log.info("[%s] new environment, deploy run %s", env_id, run_id)
            elif current.phase is Phase.READY:
                raise AlreadyExistsError(f"{env_id} is already Ready at {current.endpoint}")
            elif current.phase in IN_FLIGHT and current.run_id in self._live:
                raise AlreadyExistsError(f"{env_id} is being deployed by run {current.run_id}")
            elif current.phase is Phase.DESTROYING and current.run_id in self._live:
                # only a destroy may take over a live run
                raise AlreadyExistsError(f"{env_id} is being destroyed by run {current.run_id}")
            elif current.phase in (Phase.DESTROYING, Phase.DESTROYED):
                env = current.transition(
                    Phase.REQUESTED, run_id=run_id, completed_steps=[],
                    endpoint=None, last_error=None, failed_step=None,
                )
                log.info("[%s] redeploying from %s, run %s", env_id, current.phase.value, run_id)
            else:
                env = current.transition(Phase.REQUESTED, run_id=run_id, last_error=None, failed_step=None)
                log.info("[%s] resuming from %s with %d completed step(s), run %s",
                         env_id, current.phase.value, len(env.completed_steps), run_id)
            self._save(current, env, Action.DEPLOY, run_id)
            self._live.add(run_id)

        plan = build_plan(self.config, Action.DEPLOY, env_id, bus=self.bus, run_id=run_id)
        return self._run(plan, run_id, secrets)

    def _destroy(self, env_id: str, wait_for_completion: Optional[bool]) -> EnvironmentHandle:
        run_id = new_run_id()
        with self._lock(env_id):
            current = self._load_or_none(env_id)
            if current is None:
                log.info("[%s] no record, nothing to destroy", env_id)
                return EnvironmentHandle(environment_id=env_id, phase=None, outcome=Outcome.SUCCEEDED)
            if current.phase is Phase.DESTROYED:
                log.info("[%s] already destroyed", env_id)
                return self._handle(current, Outcome.SUCCEEDED)

            if current.run_id in self._live:
                log.info("[%s] destroy run %s supersedes run %s", env_id, run_id, current.run_id)
            env = current.transition(Phase.DESTROYING, run_id=run_id, last_error=None, failed_step=None)
            self._save(current, env, Action.DESTROY, run_id)
            self._live.add(run_id)

        plan = build_plan(
            self.config, Action.DESTROY, env_id,
            bus=self.bus, run_id=run_id, wait_for_completion=wait_for_completion,
        )
        return self._run(plan, run_id, None)

    def _run(self, plan: Plan, run_id: str, secrets: Optional[SecretParameters]) -> EnvironmentHandle:
        ctx = RunContext(
            config=self.config,
            clients=self.clients,
            run_id=run_id,
            secrets=secrets,
            http_probe=self._http_probe,
        )
        try:
            result = self.executor.run(plan, ctx, self)
            return self._finish(plan, run_id, result)
        finally:
            with self._lock(plan.environment_id):
                self._live.discard(run_id)

    def _finish(self, plan: Plan, run_id: str, result: ExecutionResult) -> EnvironmentHandle:
        env_id = plan.environment_id
        with self._lock(env_id):
            env = self.store.load(env_id)
            if result.outcome is Outcome.SUPERSEDED or env.run_id != run_id:
                log.info("[%s] %s run %s superseded; record left at %s",
                         env_id, plan.action.value, run_id, env.phase.value)
                return self._handle(env, Outcome.SUPERSEDED, warnings=result.warnings)

            if plan.action is Action.DESTROY and result.warnings:
                # deletion rejected: surfaced as a failure, record stays Destroying
                result = ExecutionResult(
                    final_phase=plan.failure_phase,
                    outcome=Outcome.FAILED,
                    error="; ".join(result.warnings),
                    failed_step=plan.steps[-1].name,
                    warnings=result.warnings,
                )

            if result.outcome is Outcome.SUCCEEDED:
                changes = {}
                if plan.success_phase is Phase.DESTROYED:
                    changes = {"resource_handles": {}, "completed_steps": [], "endpoint": None}
                updated = env.transition(plan.success_phase, last_error=None, failed_step=None, **changes)
            else:
                updated = env.transition(plan.failure_phase, last_error=result.error,
                                         failed_step=result.failed_step)
            self._save(env, updated, plan.action, run_id)

        if result.outcome is Outcome.SUCCEEDED:
            log.info("[%s] %s finished in %s", env_id, plan.action.value, updated.phase.value)
        else:
            log.error("[%s] %s failed at %s: %s", env_id, plan.action.value,
                      result.failed_step, result.error)
        return self._handle(updated, result.outcome, result.error, result.failed_step, result.warnings)

    # ------------------------------------------------------------------
    # RunTracker
    # ------------------------------------------------------------------

    def begin_step(self, plan: Plan, step: Step, run_id: str) -> Environment:
        with self._lock(plan.environment_id):
            env = self.store.load(plan.environment_id)
            if env.run_id != run_id or env.phase is step.phase:
                return env
            updated = env.transition(step.phase)
            self._save(env, updated, plan.action, run_id)
            return updated

    def complete_step(self, plan: Plan, step: Step, run_id: str, result: StepResult) -> None:
        with self._lock(plan.environment_id):
            env = self.store.load(plan.environment_id)
            if env.run_id != run_id:
                # the resources exist even though this run lost the record
                if result.handles and env.phase is not Phase.DESTROYED:
                    self.store.save(env.with_handles(result.handles))
                return

            updated = env.with_handles(result.handles)
            changes: Dict[str, object] = {}
            if result.endpoint:
                changes["endpoint"] = result.endpoint
            if plan.action is Action.DEPLOY and step.key not in updated.completed_steps:
                changes["completed_steps"] = [*updated.completed_steps, step.key]
            if changes:
                updated = updated.model_copy(update=changes)
            self.store.save(updated)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lock(self, env_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(env_id)
            if lock is None:
                lock = self._locks[env_id] = threading.Lock()
            return lock

    def _load_or_none(self, env_id: str) -> Optional[Environment]:
        try:
            return self.store.load(env_id)
        except NotFoundError:
            return None

    def _save(self, previous: Optional[Environment], env: Environment, action: Action, run_id: str) -> None:
        self.store.save(env)
        before = previous.phase.value if previous is not None else ""
        if before != env.phase.value:
            log.info("[%s] phase %s -> %s", env.id, before or "(new)", env.phase.value)
            self.bus.emit(PhaseChanged(previous=before, current=env.phase.value,
                                       **new_ctx(env.id, action.value, run_id)))

    @staticmethod
    def _handle(
        env: Environment,
        outcome: Outcome,
        error: Optional[str] = None,
        failed_step: Optional[str] = None,
        warnings: Optional[List[str]] = None,
    ) -> EnvironmentHandle:
        return EnvironmentHandle(
            environment_id=env.id,
            phase=env.phase,
            outcome=outcome,
            error=error,
            failed_step=failed_step,
            endpoint=env.endpoint,
            warnings=tuple(warnings or ()),
        )
