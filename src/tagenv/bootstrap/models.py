# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/bootstrap/models.py

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class Host:
    """
    Represents a server you will SSH into.
    """
    hostname: str                 # logical name, used in logs
    address: str                  # IP or DNS to connect
    username: str                 # SSH username
    port: int = 22
    pkey_path: Optional[Path] = None


@dataclass
class BootstrapOptions:
    """
    Options for the k3s install.
    """
    install_url: str = "https://get.k3s.io"
    k3s_version: Optional[str] = None          # e.g. "v1.29.4+k3s1"; None takes the stable channel
    kubeconfig_remote_path: str = "/etc/rancher/k3s/k3s.yaml"
    ready_timeout_seconds: int = 300
    poll_interval_seconds: float = 5.0
    connect_attempts: int = 10
    connect_delay_seconds: float = 6.0
