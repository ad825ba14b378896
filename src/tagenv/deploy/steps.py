# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/deploy/steps.py

"""Step operations.

Each operation receives the run context, its step and a fresh copy of the
environment record, calls exactly one kind of client, and returns what the
controller should record. Raw client errors propagate unchanged; the
executor classifies them.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from ..cloud.interface import VmSpec
from ..workloads.renderer import render_workloads
from .clients import vm_host
from .context import RunContext
from .errors import FatalClientError, TransientClientError
from .models import Environment, ResourceKind, Step, StepResult
from .registry import register

log = logging.getLogger("tagenv")


def _write_private(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(content)
    os.replace(tmp, path)


# ---------------------------------------------------------------------
# ResourceOp
# ---------------------------------------------------------------------

@register("resource.create_group")
def create_resource_group(ctx: RunContext, step: Step, env: Environment) -> StepResult:
    name = step.args["resource_group"]
    ctx.clients.resources.create_resource_group(name, step.args["location"])
    log.info("[%s] resource group %s ready", env.id, name)
    return StepResult(handles={ResourceKind.RESOURCE_GROUP: name})


@register("resource.create_vm")
def create_vm(ctx: RunContext, step: Step, env: Environment) -> StepResult:
    vm = ctx.config.vm
    spec = VmSpec(
        name=step.args["vm_name"],
        resource_group=step.args["resource_group"],
        size=step.args["size"],
        image=step.args["image"],
        admin_username=vm.admin_username,
        ssh_key_path=vm.ssh_public_key_path,
    )
    handle = ctx.clients.resources.create_vm(spec)
    log.info("[%s] vm %s up at %s", env.id, spec.name, handle.public_ip)
    return StepResult(handles={ResourceKind.VM: handle.id, ResourceKind.PUBLIC_IP: handle.public_ip})


@register("resource.open_port")
def open_port(ctx: RunContext, step: Step, env: Environment) -> None:
    ctx.clients.resources.open_port(
        step.args["resource_group"],
        step.args["vm_name"],
        int(step.args["port"]),
        int(step.args.get("priority", 900)),
    )
    log.info("[%s] inbound port %s open", env.id, step.args["port"])


@register("resource.delete_group")
def delete_resource_group(ctx: RunContext, step: Step, env: Environment) -> None:
    name = step.args["resource_group"]
    existed = ctx.clients.resources.delete_resource_group(
        name, wait_for_completion=bool(step.args.get("wait_for_completion", False))
    )
    if not existed:
        log.info("[%s] resource group %s already deleted", env.id, name)


# ---------------------------------------------------------------------
# BootstrapOp
# ---------------------------------------------------------------------

@register("bootstrap.install_cluster")
def install_cluster(ctx: RunContext, step: Step, env: Environment) -> None:
    state = ctx.clients.resources.get_vm_power_state(step.args["resource_group"], step.args["vm_name"])
    if state != "running":
        raise TransientClientError(f"vm {step.args['vm_name']} is {state!r}, not running yet")

    kubeconfig = ctx.clients.bootstrapper.install(vm_host(env, ctx.config))
    path = ctx.kubeconfig_path(env.id)
    _write_private(path, kubeconfig)
    log.info("[%s] cluster installed; kubeconfig written to %s", env.id, path)


# ---------------------------------------------------------------------
# ClusterOp
# ---------------------------------------------------------------------

@register("cluster.create_secret")
def create_secret(ctx: RunContext, step: Step, env: Environment) -> None:
    if ctx.secrets is None:
        raise FatalClientError(f"{env.id}: no secret parameters supplied for this run")
    with ctx.clients.cluster(env, ctx.kubeconfig_path(env.id)) as cluster:
        cluster.create_secret(step.args["secret_name"], ctx.secrets.as_secret_data())


@register("cluster.apply_workloads")
def apply_workloads(ctx: RunContext, step: Step, env: Environment) -> None:
    docs = render_workloads(ctx.config.workloads, env.id)
    with ctx.clients.cluster(env, ctx.kubeconfig_path(env.id)) as cluster:
        for name, doc in docs:
            log.info("[%s] applying %s manifests", env.id, name)
            cluster.apply_manifest(doc)


@register("cluster.wait_for_endpoint")
def wait_for_endpoint(ctx: RunContext, step: Step, env: Environment) -> StepResult:
    timeout = int(step.args["timeout_seconds"])
    address: Optional[str]
    with ctx.clients.cluster(env, ctx.kubeconfig_path(env.id)) as cluster:
        cluster.wait_for_rollout(step.args["deployment"], timeout)
        address = cluster.wait_for_service_address(step.args["service"], timeout)

    endpoint = f"http://{address}/"
    if step.args.get("http_probe"):
        ctx.http_probe(endpoint, timeout_seconds=timeout)
    return StepResult(endpoint=endpoint)
