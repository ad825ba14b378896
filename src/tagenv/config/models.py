# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/config/models.py

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field

from ..utils.retry import RetryPolicy


class AzureSettings(BaseModel):
    location: str = "eastus"
    resource_group_prefix: str = "rg-wordpress"
    subscription: Optional[str] = None
    cli_timeout_seconds: int = 900

    def resource_group(self, environment_id: str) -> str:
        return f"{self.resource_group_prefix}-{environment_id}"


class VmSettings(BaseModel):
    name_prefix: str = "vm-wordpress"
    size: str = "Standard_B2s"
    image: str = "Ubuntu2204"
    admin_username: str = "azureuser"
    ssh_public_key_path: Optional[Path] = None     # None -> az --generate-ssh-keys
    ssh_private_key_path: Optional[Path] = None    # None -> ssh agent / ~/.ssh defaults

    def vm_name(self, environment_id: str) -> str:
        return f"{self.name_prefix}-{environment_id}"


class ClusterSettings(BaseModel):
    install_url: str = "https://get.k3s.io"
    k3s_version: Optional[str] = None
    ready_timeout_seconds: int = 300
    endpoint_timeout_seconds: int = 600
    # "ssh": kubectl runs on the VM; "local": kubectl runs here against the fetched kubeconfig
    kubectl_mode: Literal["ssh", "local"] = "ssh"
    http_probe: bool = True


class WorkloadSettings(BaseModel):
    namespace: str = "default"
    secret_name: str = "mysql-secrets"
    app_service: str = "wordpress"
    app_deployment: str = "wordpress"
    database_service: str = "mysql-service"
    mysql_image: str = "mysql:5.7"
    wordpress_image: str = "wordpress:6-apache"
    storage_size: str = "1Gi"
    database: str = "wordpress"
    database_user: str = "wordpress"


class RetrySettings(BaseModel):
    max_attempts: int = Field(3, ge=1)
    backoff_seconds: float = Field(5.0, ge=0)
    multiplier: float = Field(2.0, ge=1)
    max_backoff_seconds: float = Field(60.0, ge=0)

    def policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            backoff_seconds=self.backoff_seconds,
            multiplier=self.multiplier,
            max_backoff_seconds=self.max_backoff_seconds,
        )


class RetryProfiles(BaseModel):
    resource: RetrySettings = RetrySettings()
    bootstrap: RetrySettings = RetrySettings(max_attempts=6, backoff_seconds=10.0)
    cluster: RetrySettings = RetrySettings()
    endpoint: RetrySettings = RetrySettings(max_attempts=2, backoff_seconds=15.0)


class DestroySettings(BaseModel):
    # False mirrors `az group delete --no-wait`: Destroying is the terminal phase
    wait_for_completion: bool = False


class TagenvConfig(BaseModel):
    state_dir: Path = Path("~/.tagenv")
    azure: AzureSettings = AzureSettings()
    vm: VmSettings = VmSettings()
    cluster: ClusterSettings = ClusterSettings()
    workloads: WorkloadSettings = WorkloadSettings()
    retries: RetryProfiles = RetryProfiles()
    destroy: DestroySettings = DestroySettings()

    def resolved_state_dir(self) -> Path:
        return self.state_dir.expanduser()
