# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/execution/ssh.py

from __future__ import annotations

import logging
import shlex
import subprocess
from typing import Optional, Sequence, Union

import paramiko

from ..bootstrap.models import Host

log = logging.getLogger("tagenv")


def _load_pkey(path: str) -> Optional[paramiko.PKey]:
    for key_cls in (
        paramiko.Ed25519Key,
        paramiko.RSAKey,
        paramiko.ECDSAKey,
    ):
        try:
            return key_cls.from_private_key_file(path)
        except paramiko.SSHException:
            continue
    raise paramiko.SSHException(f"Unsupported private key format for {path}")


def open_ssh(
    host: Host,
    *,
    connect_timeout: float = 20.0,
) -> "SSHRunner":
    client = paramiko.SSHClient()
    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

    pkey = _load_pkey(str(host.pkey_path)) if host.pkey_path else None

    client.connect(
        hostname=host.address,
        port=host.port,
        username=host.username,
        pkey=pkey,
        timeout=connect_timeout,
        allow_agent=pkey is None,
        look_for_keys=pkey is None,
    )

    return SSHRunner(client, hostname=host.hostname)


def _q(s: str) -> str:
    """Quote for bash -c."""
    return "'" + s.replace("'", "'\"'\"'") + "'"


class SSHRunner:
    """
    Runs commands on a remote host. Same call shape as CommandRunner so
    kubectl can be driven either locally or on the VM.
    """

    def __init__(self, client: paramiko.SSHClient, hostname: str = "remote"):
        self.client = client
        self.hostname = hostname

    def run(
        self,
        cmd: Union[str, Sequence[str]],
        *,
        stdin_text: Optional[str] = None,
        timeout: Optional[float] = None,
        sudo: bool = False,
    ) -> subprocess.CompletedProcess:
        line = cmd if isinstance(cmd, str) else shlex.join(str(c) for c in cmd)
        final = f"sudo -n bash -c {_q(line)}" if sudo else f"bash -c {_q(line)}"
        log.debug("[ssh %s] $ %s", self.hostname, line)

        stdin, stdout, stderr = self.client.exec_command(final, timeout=timeout)
        if stdin_text is not None:
            stdin.write(stdin_text)
            stdin.flush()
            stdin.channel.shutdown_write()

        out = stdout.read().decode("utf-8", errors="replace")
        err = stderr.read().decode("utf-8", errors="replace")
        rc = stdout.channel.recv_exit_status()
        log.debug("[ssh %s][exit %s]", self.hostname, rc)
        return subprocess.CompletedProcess(args=line, returncode=rc, stdout=out, stderr=err)

    def close(self) -> None:
        self.client.close()
