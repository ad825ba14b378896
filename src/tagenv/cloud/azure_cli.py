# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import json
import logging
import subprocess
from typing import List, Optional

from ..execution.runner import CommandRunner
from .errors import AzureCliError
from .interface import ResourceClient, VmHandle, VmSpec

log = logging.getLogger("tagenv")


class AzureCliResourceClient(ResourceClient):
    """
    A pragmatic wrapper around the `az` CLI.
    - Mirrors the commands a pipeline would run: 'group create/delete', 'vm create', 'vm open-port'.
    - Testable by mocking subprocess.run.
    - Assumes the caller is already logged in; credentials are not handled here.
    """

    def __init__(
        self,
        subscription: Optional[str] = None,
        runner: Optional[CommandRunner] = None,
        timeout_seconds: float = 900.0,
    ):
        self.subscription = subscription
        self.runner = runner or CommandRunner(label="az", timeout=timeout_seconds)

    # ------------------------- internal helpers -------------------------

    def _base(self) -> List[str]:
        return ["az"]

    def _run(self, args: List[str]) -> subprocess.CompletedProcess:
        argv = self._base() + args
        if self.subscription:
            argv += ["--subscription", self.subscription]
        cp = self.runner.run(argv)
        if cp.returncode != 0:
            raise AzureCliError(argv, cp.returncode, cp.stderr)
        return cp

    def _run_json(self, args: List[str]) -> dict:
        cp = self._run(args + ["-o", "json"])
        out = (cp.stdout or "").strip()
        return json.loads(out) if out else {}

    # ------------------------- ResourceClient -------------------------

    def create_resource_group(self, name: str, location: str) -> str:
        data = self._run_json(["group", "create", "--name", name, "--location", location])
        return data.get("id") or name

    def delete_resource_group(self, name: str, wait_for_completion: bool = False) -> bool:
        args = ["group", "delete", "--name", name, "--yes"]
        if not wait_for_completion:
            args.append("--no-wait")
        try:
            self._run(args)
        except AzureCliError as e:
            if e.not_found:
                log.info("[az] resource group %s already gone", name)
                return False
            raise
        if wait_for_completion:
            log.info("[az] resource group %s deleted", name)
        else:
            log.info("[az] deletion of resource group %s accepted; it continues in the background", name)
        return True

    def create_vm(self, spec: VmSpec) -> VmHandle:
        args = [
            "vm", "create",
            "--resource-group", spec.resource_group,
            "--name", spec.name,
            "--image", spec.image,
            "--size", spec.size,
            "--admin-username", spec.admin_username,
            "--public-ip-sku", "Standard",
        ]
        if spec.ssh_key_path:
            args += ["--ssh-key-values", str(spec.ssh_key_path)]
        else:
            args.append("--generate-ssh-keys")

        data = self._run_json(args)
        vm_id = data.get("id")
        public_ip = data.get("publicIpAddress")
        if not vm_id or not public_ip:
            raise AzureCliError(args, 0, f"vm create returned no id/publicIpAddress: {sorted(data)}")
        return VmHandle(id=vm_id, public_ip=public_ip)

    def open_port(self, resource_group: str, vm_name: str, port: int, priority: int = 900) -> None:
        self._run([
            "vm", "open-port",
            "--resource-group", resource_group,
            "--name", vm_name,
            "--port", str(port),
            "--priority", str(priority),
        ])

    def get_vm_power_state(self, resource_group: str, vm_name: str) -> str:
        data = self._run_json([
            "vm", "get-instance-view",
            "--resource-group", resource_group,
            "--name", vm_name,
        ])
        statuses = (data.get("instanceView") or {}).get("statuses") or []
        for s in statuses:
            code = s.get("code", "")
            if code.startswith("PowerState/"):
                return code.split("/", 1)[1]
        return "unknown"
