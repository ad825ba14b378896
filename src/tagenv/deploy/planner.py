# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from typing import Optional

from ..config.models import TagenvConfig
from ..utils.retry import RetryPolicy
from ..observers.dispatcher import EventBus
from ..observers.events import PlanStarted, new_ctx
from .models import Action, Phase, Plan, Step, StepKind

HTTP_PORT = 80

NO_RETRY = RetryPolicy(max_attempts=1, backoff_seconds=0.0)


def _key(environment_id: str, name: str) -> str:
    return f"{environment_id}:{name}"


def build_deploy_plan(cfg: TagenvConfig, environment_id: str) -> Plan:
    """
    Fixed seven-step deploy plan. Step args hold names and sizes only;
    credentials reach the secret step through the run context.
    """
    rg = cfg.azure.resource_group(environment_id)
    vm_name = cfg.vm.vm_name(environment_id)
    ws = cfg.workloads
    r = cfg.retries

    def step(name, kind, operation, phase, retry, fatal=True, **args) -> Step:
        return Step(
            name=name,
            kind=kind,
            operation=operation,
            key=_key(environment_id, name),
            retry=retry,
            fatal=fatal,
            phase=phase,
            args=args,
        )

    steps = (
        step("create-resource-group", StepKind.RESOURCE, "resource.create_group",
             Phase.PROVISIONING, r.resource.policy(),
             resource_group=rg, location=cfg.azure.location),
        step("create-vm", StepKind.RESOURCE, "resource.create_vm",
             Phase.PROVISIONING, r.resource.policy(),
             resource_group=rg, vm_name=vm_name, size=cfg.vm.size, image=cfg.vm.image),
        step("open-http-port", StepKind.RESOURCE, "resource.open_port",
             Phase.PROVISIONING, r.resource.policy(), fatal=False,
             resource_group=rg, vm_name=vm_name, port=HTTP_PORT),
        step("install-cluster", StepKind.BOOTSTRAP, "bootstrap.install_cluster",
             Phase.BOOTSTRAPPING_CLUSTER, r.bootstrap.policy(),
             resource_group=rg, vm_name=vm_name),
        step("create-secret", StepKind.CLUSTER, "cluster.create_secret",
             Phase.CONFIGURING_SECRETS, r.cluster.policy(),
             secret_name=ws.secret_name, keys=["MYSQL_ROOT_PASSWORD", "MYSQL_PASSWORD"]),
        step("apply-workloads", StepKind.CLUSTER, "cluster.apply_workloads",
             Phase.DEPLOYING_WORKLOADS, r.cluster.policy(),
             manifests=["storage", "application", "ingress"]),
        step("wait-for-endpoint", StepKind.CLUSTER, "cluster.wait_for_endpoint",
             Phase.DEPLOYING_WORKLOADS, r.endpoint.policy(),
             deployment=ws.app_deployment, service=ws.app_service,
             timeout_seconds=cfg.cluster.endpoint_timeout_seconds,
             http_probe=cfg.cluster.http_probe),
    )
    return Plan(
        action=Action.DEPLOY,
        environment_id=environment_id,
        steps=steps,
        success_phase=Phase.READY,
        failure_phase=Phase.FAILED,
    )


def build_destroy_plan(
    cfg: TagenvConfig,
    environment_id: str,
    wait_for_completion: Optional[bool] = None,
) -> Plan:
    """
    Single fire-and-forget deletion of the resource group. A rejected
    deletion is surfaced but leaves the environment Destroying.
    """
    wait = cfg.destroy.wait_for_completion if wait_for_completion is None else wait_for_completion
    delete = Step(
        name="delete-resource-group",
        kind=StepKind.RESOURCE,
        operation="resource.delete_group",
        key=_key(environment_id, "delete-resource-group"),
        retry=NO_RETRY,
        fatal=False,
        phase=Phase.DESTROYING,
        args={"resource_group": cfg.azure.resource_group(environment_id),
              "wait_for_completion": wait},
    )
    return Plan(
        action=Action.DESTROY,
        environment_id=environment_id,
        steps=(delete,),
        success_phase=Phase.DESTROYED if wait else Phase.DESTROYING,
        failure_phase=Phase.DESTROYING,
    )


def build_plan(
    cfg: TagenvConfig,
    action: Action,
    environment_id: str,
    bus: Optional[EventBus] = None,
    run_id: Optional[str] = None,
    wait_for_completion: Optional[bool] = None,
) -> Plan:
    """Build the plan for `action` and emit PlanStarted if an EventBus is provided."""
    if action is Action.DEPLOY:
        plan = build_deploy_plan(cfg, environment_id)
    else:
        plan = build_destroy_plan(cfg, environment_id, wait_for_completion)
    if bus:
        bus.emit(PlanStarted(steps=plan.step_names(), **new_ctx(environment_id, action.value, run_id)))
    return plan
