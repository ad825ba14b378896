# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/k8s/kubectl.py

from __future__ import annotations

import json
import logging
import subprocess
import time
from typing import Any, Callable, List, Mapping, Optional, Protocol

import yaml

from .errors import KubectlError
from .interface import ClusterClient

log = logging.getLogger("tagenv")


class Runner(Protocol):
    def run(self, cmd, *, stdin_text: Optional[str] = None, timeout: Optional[float] = None) -> subprocess.CompletedProcess: ...


class KubectlClusterClient(ClusterClient):
    """
    kubectl runner, local (CommandRunner) or on the cluster node (SSHRunner).

    Documents are always passed on stdin, so secret values never appear on
    a command line or on disk.
    """

    def __init__(
        self,
        runner: Runner,
        *,
        kubeconfig: Optional[str] = None,
        namespace: str = "default",
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.runner = runner
        self.kubeconfig = kubeconfig
        self.namespace = namespace
        self._sleep = sleep
        self._clock = clock

    def _base(self) -> List[str]:
        cmd = ["kubectl"]
        if self.kubeconfig:
            cmd += ["--kubeconfig", self.kubeconfig]
        return cmd

    def _run(
        self,
        args: List[str],
        *,
        stdin_text: Optional[str] = None,
        timeout: Optional[float] = None,
        allow_not_found: bool = False,
    ) -> Optional[subprocess.CompletedProcess]:
        cp = self.runner.run(self._base() + args, stdin_text=stdin_text, timeout=timeout)
        if cp.returncode != 0:
            if allow_not_found and "NotFound" in (cp.stderr or ""):
                return None
            raise KubectlError(args, cp.returncode, cp.stderr)
        return cp

    # ------------------------- ClusterClient -------------------------

    def apply_manifest(self, doc: str) -> None:
        cp = self._run(["apply", "-n", self.namespace, "-f", "-"], stdin_text=doc)
        for line in (cp.stdout or "").splitlines():
            log.info("[kubectl] %s", line)

    def create_secret(self, name: str, data: Mapping[str, str]) -> None:
        body: dict[str, Any] = {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {"name": name, "namespace": self.namespace},
            "type": "Opaque",
            "stringData": dict(data),
        }
        self._run(["apply", "-n", self.namespace, "-f", "-"], stdin_text=yaml.safe_dump(body))
        log.info("[kubectl] secret/%s applied with keys %s", name, sorted(data))

    def get_service_address(self, name: str) -> Optional[str]:
        cp = self._run(
            ["get", "service", name, "-n", self.namespace, "-o", "json"],
            allow_not_found=True,
        )
        if cp is None:
            return None
        svc = json.loads(cp.stdout or "{}")
        ingress = ((svc.get("status") or {}).get("loadBalancer") or {}).get("ingress") or []
        for entry in ingress:
            addr = entry.get("ip") or entry.get("hostname")
            if addr:
                return addr
        return None

    def wait_for_service_address(self, name: str, timeout_seconds: int, interval_seconds: float = 5.0) -> str:
        deadline = self._clock() + timeout_seconds
        while True:
            addr = self.get_service_address(name)
            if addr:
                log.info("[kubectl] service/%s reachable at %s", name, addr)
                return addr
            if self._clock() >= deadline:
                raise TimeoutError(f"service/{name} has no external address after {timeout_seconds}s")
            log.debug("[kubectl] service/%s address pending", name)
            self._sleep(interval_seconds)

    def wait_for_rollout(self, deployment: str, timeout_seconds: int) -> None:
        self._run(
            ["rollout", "status", f"deployment/{deployment}", "-n", self.namespace,
             f"--timeout={timeout_seconds}s"],
            timeout=timeout_seconds + 30,
        )
