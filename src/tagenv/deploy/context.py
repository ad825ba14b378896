# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from ..config.models import TagenvConfig
from ..k8s.probe import wait_for_http
from .clients import Clients
from .models import SecretParameters


@dataclass
class RunContext:
    """
    Everything one plan run needs besides the plan itself. Built per
    submission and dropped when the run ends; secrets live only here.
    """

    config: TagenvConfig
    clients: Clients
    run_id: str
    secrets: Optional[SecretParameters] = field(default=None, repr=False)
    http_probe: Callable[..., int] = wait_for_http

    def kubeconfig_path(self, environment_id: str) -> Path:
        return self.config.resolved_state_dir() / "kubeconfig" / f"{environment_id}.yaml"
