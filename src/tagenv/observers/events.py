# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str               # ISO timestamp
    run_id: str           # correlates all events of one deploy or destroy run
    environment: str      # environment id
    action: str           # deploy/destroy

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(environment: str, action: str, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "environment": environment,
        "action": action,
    }


# ---------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PlanStarted(BaseEvent):
    steps: List[str]


# ---------------------------------------------------------------------
# Step lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class StepStarted(BaseEvent):
    name: str
    kind: str
    phase: str

@dataclass(frozen=True)
class StepAttempt(BaseEvent):
    name: str
    attempt: int
    max_attempts: int

@dataclass(frozen=True)
class StepRetrying(BaseEvent):
    name: str
    attempt: int
    delay_s: float
    error: str

@dataclass(frozen=True)
class StepSucceeded(BaseEvent):
    name: str
    attempts: int
    duration_ms: int

@dataclass(frozen=True)
class StepSkipped(BaseEvent):
    name: str
    reason: str

@dataclass(frozen=True)
class StepFailed(BaseEvent):
    name: str
    attempts: int
    error: str
    fatal: bool


# ---------------------------------------------------------------------
# Environment & run
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PhaseChanged(BaseEvent):
    previous: str
    current: str

@dataclass(frozen=True)
class RunSuperseded(BaseEvent):
    before_step: str

@dataclass(frozen=True)
class RunSummary(BaseEvent):
    outcome: str          # "succeeded" | "failed" | "superseded"
    final_phase: str
    error: Optional[str] = None
    failed_step: Optional[str] = None
