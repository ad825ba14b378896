# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/bootstrap/k3s_bootstrapper.py

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import paramiko

from ..execution.ssh import SSHRunner, open_ssh
from ..utils.retry import RetryError, retry
from .errors import BootstrapError
from .interface import ClusterBootstrapper
from .models import BootstrapOptions, Host

log = logging.getLogger("tagenv")

LOCAL_API_SERVER = "https://127.0.0.1:6443"


class K3sSshBootstrapper(ClusterBootstrapper):
    """
    Installs a single-node k3s cluster over SSH:
      - connect          (retried while sshd on the new VM comes up)
      - install          (get.k3s.io script, skipped when k3s is already present)
      - wait_ready       (node reports Ready)
      - fetch kubeconfig (server address rewritten to the VM's public address)
    """

    def __init__(
        self,
        options: Optional[BootstrapOptions] = None,
        connect: Callable[[Host], SSHRunner] = open_ssh,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.options = options or BootstrapOptions()
        self._connect_fn = connect
        self._sleep = sleep
        self._clock = clock

    # ------------------ connection & utils ------------------

    def _connect(self, host: Host) -> SSHRunner:
        opts = self.options

        def _attempt() -> SSHRunner:
            try:
                return self._connect_fn(host)
            except (paramiko.AuthenticationException, paramiko.BadHostKeyException) as e:
                raise BootstrapError(f"ssh to {host.address} rejected: {e}", fatal=True) from e

        def _log_retry(attempt: int, exc: Exception) -> None:
            log.info("[k3s] %s not reachable yet (attempt %d/%d): %s",
                     host.address, attempt, opts.connect_attempts, exc)

        connect = retry(
            retries=opts.connect_attempts,
            delay=opts.connect_delay_seconds,
            retry_on=(OSError, paramiko.SSHException),
            on_retry=_log_retry,
            sleep=self._sleep,
        )(_attempt)

        try:
            return connect()
        except RetryError as e:
            raise BootstrapError(f"could not reach {host.address} over ssh: {e.__cause__}") from e

    def _check(self, ssh: SSHRunner, cmd: str, what: str) -> str:
        cp = ssh.run(cmd, sudo=True)
        if cp.returncode != 0:
            raise BootstrapError(f"{what} failed on {ssh.hostname} (rc={cp.returncode}): {cp.stderr.strip()}")
        return cp.stdout

    def _install_command(self, host: Host) -> str:
        opts = self.options
        env = ""
        if opts.k3s_version:
            env = f"INSTALL_K3S_VERSION={opts.k3s_version} "
        return (
            f"curl -sfL {opts.install_url} | {env}sh -s - "
            f"--write-kubeconfig-mode 644 --tls-san {host.address}"
        )

    # ------------------ steps ------------------

    def _ensure_installed(self, ssh: SSHRunner, host: Host) -> None:
        cp = ssh.run("command -v k3s", sudo=True)
        if cp.returncode == 0 and cp.stdout.strip():
            log.info("[k3s] already installed on %s", host.address)
            return
        log.info("[k3s] installing on %s", host.address)
        self._check(ssh, self._install_command(host), "k3s install")

    def _wait_ready(self, ssh: SSHRunner, host: Host) -> None:
        opts = self.options
        deadline = self._clock() + opts.ready_timeout_seconds
        while True:
            cp = ssh.run("k3s kubectl get nodes --no-headers", sudo=True)
            if cp.returncode == 0:
                rows = [r.split() for r in cp.stdout.splitlines() if r.strip()]
                if rows and all(len(r) > 1 and r[1] == "Ready" for r in rows):
                    log.info("[k3s] node on %s is Ready", host.address)
                    return
            if self._clock() >= deadline:
                raise BootstrapError(
                    f"k3s on {host.address} not Ready after {opts.ready_timeout_seconds}s"
                )
            self._sleep(opts.poll_interval_seconds)

    def _fetch_kubeconfig(self, ssh: SSHRunner, host: Host) -> str:
        raw = self._check(ssh, f"cat {self.options.kubeconfig_remote_path}", "read kubeconfig")
        if LOCAL_API_SERVER not in raw:
            raise BootstrapError(f"unexpected kubeconfig on {host.address}: no local server entry")
        return raw.replace(LOCAL_API_SERVER, f"https://{host.address}:6443")

    # ------------------ ClusterBootstrapper ------------------

    def install(self, host: Host) -> str:
        ssh = self._connect(host)
        try:
            self._ensure_installed(ssh, host)
            self._wait_ready(ssh, host)
            return self._fetch_kubeconfig(ssh, host)
        finally:
            ssh.close()
