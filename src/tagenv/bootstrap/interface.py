# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/bootstrap/interface.py

from __future__ import annotations
from typing import Protocol
from .models import Host


class ClusterBootstrapper(Protocol):
    """
    Contract for installing a cluster runtime onto a freshly provisioned VM.
    Implementations should be idempotent and safe to re-run.
    """

    def install(self, host: Host) -> str:
        """
        Install the runtime on `host` and return a kubeconfig that reaches
        it from outside the VM. Must raise on hard errors.
        """
        ...
