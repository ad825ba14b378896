# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/deploy/models.py

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field

from ..utils.retry import RetryPolicy
from .errors import InvalidTransitionError

ENVIRONMENT_ID_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,38}[a-z0-9])?$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Action(str, Enum):
    DEPLOY = "deploy"
    DESTROY = "destroy"


class Phase(str, Enum):
    REQUESTED = "Requested"
    PROVISIONING = "Provisioning"
    BOOTSTRAPPING_CLUSTER = "BootstrappingCluster"
    CONFIGURING_SECRETS = "ConfiguringSecrets"
    DEPLOYING_WORKLOADS = "DeployingWorkloads"
    READY = "Ready"
    DESTROYING = "Destroying"
    DESTROYED = "Destroyed"
    FAILED = "Failed"


DEPLOY_PATH: Tuple[Phase, ...] = (
    Phase.REQUESTED,
    Phase.PROVISIONING,
    Phase.BOOTSTRAPPING_CLUSTER,
    Phase.CONFIGURING_SECRETS,
    Phase.DEPLOYING_WORKLOADS,
    Phase.READY,
)

# deploy-path phases where a run is still working
IN_FLIGHT = frozenset(DEPLOY_PATH[:-1])

# phases a new deploy run may restart from
RESTARTABLE = frozenset({Phase.FAILED, Phase.DESTROYING, Phase.DESTROYED}) | IN_FLIGHT


def can_transition(current: Phase, target: Phase) -> bool:
    if target is Phase.DESTROYING:
        return True
    if target is Phase.DESTROYED:
        return current is Phase.DESTROYING
    if target is Phase.FAILED:
        return current in IN_FLIGHT
    if target is Phase.REQUESTED:
        return current in RESTARTABLE
    if current in IN_FLIGHT and target in DEPLOY_PATH:
        return DEPLOY_PATH.index(target) >= DEPLOY_PATH.index(current)
    return False


class ResourceKind(str, Enum):
    RESOURCE_GROUP = "ResourceGroup"
    VM = "VM"
    PUBLIC_IP = "PublicIP"


class Environment(BaseModel):
    """Persisted lifecycle record of one environment."""

    id: str
    phase: Phase = Phase.REQUESTED
    resource_handles: Dict[ResourceKind, str] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    last_transition_at: datetime = Field(default_factory=utcnow)
    run_id: str = ""
    completed_steps: List[str] = Field(default_factory=list)
    endpoint: Optional[str] = None
    last_error: Optional[str] = None
    failed_step: Optional[str] = None

    def transition(self, target: Phase, **changes: Any) -> "Environment":
        """
        Return a copy moved to `target`. The record itself is never mutated
        in place; callers persist the copy.
        """
        if target is not self.phase and not can_transition(self.phase, target):
            raise InvalidTransitionError(f"{self.id}: {self.phase.value} -> {target.value} is not allowed")
        update: Dict[str, Any] = {"phase": target, **changes}
        if target is not self.phase:
            update["last_transition_at"] = utcnow()
        return self.model_copy(update=update, deep=True)

    def with_handles(self, handles: Mapping[ResourceKind, str]) -> "Environment":
        merged = dict(self.resource_handles)
        merged.update(handles)
        return self.model_copy(update={"resource_handles": merged}, deep=True)


class StepKind(str, Enum):
    RESOURCE = "ResourceOp"
    BOOTSTRAP = "BootstrapOp"
    CLUSTER = "ClusterOp"


@dataclass(frozen=True)
class Step:
    name: str
    kind: StepKind
    operation: str                     # registered step handler
    key: str                           # idempotency key
    retry: RetryPolicy
    fatal: bool
    phase: Phase                       # environment phase while this step runs
    args: Mapping[str, Any] = field(default_factory=dict)   # never secret material

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "operation": self.operation,
            "key": self.key,
            "fatal": self.fatal,
            "phase": self.phase.value,
            "max_attempts": self.retry.max_attempts,
            "args": dict(self.args),
        }


@dataclass(frozen=True)
class Plan:
    action: Action
    environment_id: str
    steps: Tuple[Step, ...]
    success_phase: Phase
    failure_phase: Phase

    def step_names(self) -> List[str]:
        return [s.name for s in self.steps]


@dataclass(frozen=True)
class SecretParameters:
    """Database credentials for one run. Lives in memory only."""

    root_password: str = field(repr=False)
    app_password: str = field(repr=False)

    def as_secret_data(self) -> Dict[str, str]:
        return {
            "MYSQL_ROOT_PASSWORD": self.root_password,
            "MYSQL_PASSWORD": self.app_password,
        }


@dataclass(frozen=True)
class Request:
    action: Action
    environment_id: str
    parameters: Mapping[str, str] = field(default_factory=dict, repr=False)
    wait_for_completion: Optional[bool] = None      # destroy only; None uses the config


@dataclass
class StepResult:
    handles: Dict[ResourceKind, str] = field(default_factory=dict)
    endpoint: Optional[str] = None


class Outcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SUPERSEDED = "superseded"


@dataclass
class ExecutionResult:
    final_phase: Phase
    outcome: Outcome
    error: Optional[str] = None
    failed_step: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class EnvironmentHandle:
    environment_id: str
    phase: Optional[Phase]
    outcome: Outcome
    error: Optional[str] = None
    failed_step: Optional[str] = None
    endpoint: Optional[str] = None
    warnings: Tuple[str, ...] = ()
