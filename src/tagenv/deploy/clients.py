# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/deploy/clients.py
from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import ContextManager, Iterator, Protocol

from ..bootstrap.interface import ClusterBootstrapper
from ..bootstrap.k3s_bootstrapper import K3sSshBootstrapper
from ..bootstrap.models import BootstrapOptions, Host
from ..cloud.azure_cli import AzureCliResourceClient
from ..cloud.interface import ResourceClient
from ..config.models import TagenvConfig
from ..execution.runner import CommandRunner
from ..execution.ssh import open_ssh
from ..k8s.interface import ClusterClient
from ..k8s.kubectl import KubectlClusterClient
from .errors import FatalClientError
from .models import Environment, ResourceKind

REMOTE_KUBECONFIG = "/etc/rancher/k3s/k3s.yaml"


class Clients(Protocol):
    """The three external collaborators a plan drives."""

    resources: ResourceClient
    bootstrapper: ClusterBootstrapper

    def cluster(self, environment: Environment, kubeconfig_path: Path) -> ContextManager[ClusterClient]: ...


def vm_host(environment: Environment, config: TagenvConfig) -> Host:
    address = environment.resource_handles.get(ResourceKind.PUBLIC_IP)
    if not address:
        raise FatalClientError(f"{environment.id}: no public IP recorded for the VM")
    return Host(
        hostname=config.vm.vm_name(environment.id),
        address=address,
        username=config.vm.admin_username,
        pkey_path=config.vm.ssh_private_key_path,
    )


class DefaultClients:
    """Azure CLI, k3s over SSH and kubectl, built from the config."""

    def __init__(self, config: TagenvConfig):
        self.config = config
        self.resources = AzureCliResourceClient(
            subscription=config.azure.subscription,
            timeout_seconds=config.azure.cli_timeout_seconds,
        )
        self.bootstrapper = K3sSshBootstrapper(
            BootstrapOptions(
                install_url=config.cluster.install_url,
                k3s_version=config.cluster.k3s_version,
                kubeconfig_remote_path=REMOTE_KUBECONFIG,
                ready_timeout_seconds=config.cluster.ready_timeout_seconds,
            )
        )

    @contextmanager
    def cluster(self, environment: Environment, kubeconfig_path: Path) -> Iterator[ClusterClient]:
        namespace = self.config.workloads.namespace
        if self.config.cluster.kubectl_mode == "local":
            yield KubectlClusterClient(
                CommandRunner(label="kubectl"),
                kubeconfig=str(kubeconfig_path),
                namespace=namespace,
            )
            return

        ssh = open_ssh(vm_host(environment, self.config))
        try:
            yield KubectlClusterClient(ssh, kubeconfig=REMOTE_KUBECONFIG, namespace=namespace)
        finally:
            ssh.close()
