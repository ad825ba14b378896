# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from typing import Mapping, Optional, Protocol


class ClusterClient(Protocol):
    """
    Contract for the orchestrator object API. Apply and secret calls are
    create-or-update, so they are safe to repeat.
    """

    def apply_manifest(self, doc: str) -> None: ...

    def create_secret(self, name: str, data: Mapping[str, str]) -> None: ...

    def get_service_address(self, name: str) -> Optional[str]:
        """Return the external address, or None while it is still pending."""
        ...

    def wait_for_service_address(self, name: str, timeout_seconds: int, interval_seconds: float = 5.0) -> str: ...

    def wait_for_rollout(self, deployment: str, timeout_seconds: int) -> None: ...
