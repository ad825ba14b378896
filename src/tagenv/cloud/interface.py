# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol


@dataclass(frozen=True)
class VmSpec:
    name: str
    resource_group: str
    size: str
    image: str
    admin_username: str
    ssh_key_path: Optional[Path] = None   # public key; None lets the provider generate one


@dataclass(frozen=True)
class VmHandle:
    id: str
    public_ip: str


class ResourceClient(Protocol):
    """
    Contract for the cloud control plane.
    Create calls must be safe to repeat for an existing resource.
    """

    def create_resource_group(self, name: str, location: str) -> str: ...

    def delete_resource_group(self, name: str, wait_for_completion: bool = False) -> bool:
        """Return False when the group was already gone."""
        ...

    def create_vm(self, spec: VmSpec) -> VmHandle: ...

    def open_port(self, resource_group: str, vm_name: str, port: int, priority: int = 900) -> None: ...

    def get_vm_power_state(self, resource_group: str, vm_name: str) -> str: ...
