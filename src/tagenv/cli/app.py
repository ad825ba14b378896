# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/cli/app.py
from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Tuple

import typer
import yaml
from pydantic import ValidationError

from tagenv.config.loader import load_config, load_secret_parameters, resolve_config_path
from tagenv.config.models import TagenvConfig
from tagenv.deploy.clients import DefaultClients
from tagenv.deploy.controller import DeploymentController
from tagenv.deploy.errors import AlreadyExistsError, NotFoundError, RequestValidationError, TagenvError
from tagenv.deploy.models import Action, EnvironmentHandle, Outcome, Request
from tagenv.deploy.trigger import request_from_tag
from tagenv.logging.log import init_logging
from tagenv.observers.console import ConsoleObserver
from tagenv.observers.jsonfile import JsonFileObserver
from tagenv.observers.logger import LoggerObserver
from tagenv.state.store import FileStateStore


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Tag-driven WordPress environments on Azure")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_SUPERSEDED = 3

_OUTCOME_EXIT = {
    Outcome.SUCCEEDED: EXIT_OK,
    Outcome.FAILED: EXIT_FAILED,
    Outcome.SUPERSEDED: EXIT_SUPERSEDED,
}

ConfigOption = typer.Option(None, "--config", "-c", help="Path to tagenv.yaml")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Debug output and per-event console lines")


# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------

def _load(config: Optional[Path]) -> Tuple[TagenvConfig, Optional[Path]]:
    try:
        cfg_path = resolve_config_path(config)
        return load_config(cfg_path), cfg_path
    except (FileNotFoundError, ValidationError, yaml.YAMLError) as e:
        typer.secho(f"Invalid configuration: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_USAGE)


def _secrets(cfg_path: Optional[Path]) -> Dict[str, str]:
    try:
        return load_secret_parameters(cfg_path)
    except ValueError as e:
        typer.secho(f"Invalid secrets file: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_USAGE)
    except yaml.YAMLError as e:
        # the parser message quotes the offending line, which may hold a password
        mark = getattr(e, "problem_mark", None)
        where = f" at line {mark.line + 1}" if mark else ""
        typer.secho(f"Invalid secrets file: YAML parse error{where}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_USAGE)


def _controller(cfg: TagenvConfig, verbose: bool) -> DeploymentController:
    state_dir = cfg.resolved_state_dir()
    logger, run_id, log_path = init_logging(base_dir=state_dir / "logs", verbose=verbose)

    observers = [
        LoggerObserver(logger),
        JsonFileObserver(state_dir / "logs" / f"{run_id}.jsonl"),
    ]
    if verbose:
        observers.append(ConsoleObserver())

    typer.echo(f"  Run ID   : {run_id}")
    typer.echo(f"  Logs     : {log_path}")
    return DeploymentController(
        config=cfg,
        store=FileStateStore(state_dir),
        clients=DefaultClients(cfg),
        observers=observers,
    )


def _submit(controller: DeploymentController, request: Request) -> None:
    try:
        handle = controller.submit(request)
    except (RequestValidationError, AlreadyExistsError) as e:
        typer.secho(f"Rejected: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_USAGE)
    except TagenvError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_FAILED)

    _report(request.action, handle)
    raise typer.Exit(_OUTCOME_EXIT[handle.outcome])


def _report(action: Action, handle: EnvironmentHandle) -> None:
    phase = handle.phase.value if handle.phase else "(no record)"
    color = {
        Outcome.SUCCEEDED: typer.colors.GREEN,
        Outcome.FAILED: typer.colors.RED,
        Outcome.SUPERSEDED: typer.colors.YELLOW,
    }[handle.outcome]
    typer.secho(f"{action.value} {handle.environment_id}: {handle.outcome.value} ({phase})", fg=color, bold=True)
    if handle.endpoint:
        typer.echo(f"  Endpoint : {handle.endpoint}")
    if handle.failed_step:
        typer.echo(f"  Step     : {handle.failed_step}")
    if handle.error:
        typer.echo(f"  Error    : {handle.error}")
    for warning in handle.warnings:
        typer.echo(f"  Warning  : {warning}")


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def deploy(
    env_id: str = typer.Argument(..., help="Environment id, e.g. 1-0"),
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
):
    """Provision the VM, install k3s and deploy WordPress + MySQL."""
    cfg, cfg_path = _load(config)
    params = _secrets(cfg_path)
    controller = _controller(cfg, verbose)
    _submit(controller, Request(action=Action.DEPLOY, environment_id=env_id, parameters=params))


@app.command()
def destroy(
    env_id: str = typer.Argument(..., help="Environment id"),
    wait: bool = typer.Option(False, "--wait", help="Block until the resource group is gone"),
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
):
    """Delete the environment's resource group."""
    cfg, _ = _load(config)
    controller = _controller(cfg, verbose)
    _submit(controller, Request(action=Action.DESTROY, environment_id=env_id,
                                wait_for_completion=True if wait else None))


@app.command()
def trigger(
    tag: str = typer.Argument(..., help="Pushed tag: deploy-<version> or destroy-<version>"),
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
):
    """Map a pushed tag onto a deploy or destroy request and run it."""
    cfg, cfg_path = _load(config)
    params = _secrets(cfg_path)
    try:
        request = request_from_tag(tag, params)
    except RequestValidationError as e:
        typer.secho(f"Rejected: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_USAGE)
    typer.echo(f"{tag} -> {request.action.value} {request.environment_id}")
    _submit(_controller(cfg, verbose), request)


@app.command()
def status(
    env_id: Optional[str] = typer.Argument(None, help="Environment id; all environments when omitted"),
    config: Optional[Path] = ConfigOption,
):
    """Show stored environment records."""
    cfg, _ = _load(config)
    store = FileStateStore(cfg.resolved_state_dir())

    if env_id is None:
        try:
            envs = store.list()
        except TagenvError as e:
            typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
            raise typer.Exit(EXIT_USAGE)
        if not envs:
            typer.echo("No environments.")
        for env in envs:
            typer.echo(f"{env.id:<24} {env.phase.value:<22} {env.endpoint or '-'}")
        return

    try:
        env = store.load(env_id)
    except NotFoundError as e:
        typer.secho(str(e), fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_FAILED)
    except TagenvError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_USAGE)

    typer.echo(f"Environment : {env.id}")
    typer.echo(f"Phase       : {env.phase.value}")
    typer.echo(f"Updated     : {env.last_transition_at.isoformat()}")
    typer.echo(f"Endpoint    : {env.endpoint or '-'}")
    for kind, handle in sorted(env.resource_handles.items(), key=lambda kv: kv[0].value):
        typer.echo(f"{kind.value:<12}: {handle}")
    if env.completed_steps:
        typer.echo(f"Completed   : {', '.join(env.completed_steps)}")
    if env.last_error:
        typer.echo(f"Last error  : {env.failed_step}: {env.last_error}")


if __name__ == "__main__":
    app()
