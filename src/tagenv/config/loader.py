# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/config/loader.py

import logging
import os
import yaml
from pathlib import Path
from typing import Dict, Optional, Union

from .models import TagenvConfig

log = logging.getLogger("tagenv")

CONFIG_ENV = "TAGENV_CONFIG"
SECRETS_ENV = "TAGENV_SECRETS_FILE"

# CI secret name -> request parameter
SECRET_ENV_PARAMETERS = {
    "MYSQL_ROOT_PASSWORD": "root_password",
    "MYSQL_PASSWORD": "app_password",
}


def _load_yaml(path: Path, expand: bool = True) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    if expand:
        raw = os.path.expandvars(raw)
    return yaml.safe_load(raw) or {}


def resolve_config_path(path: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """
    Pick the config file:
      1. explicit path (must exist)
      2. TAGENV_CONFIG environment variable (must exist)
      3. ./tagenv.yaml if present
    """
    if path:
        p = Path(path)
        if not p.is_file():
            raise FileNotFoundError(f"config file {p} does not exist")
        return p

    env = os.environ.get(CONFIG_ENV)
    if env:
        p = Path(env)
        if not p.is_file():
            raise FileNotFoundError(f"{CONFIG_ENV}={env} does not exist")
        return p

    p = Path("tagenv.yaml")
    return p if p.is_file() else None


def load_config(path: Optional[Union[str, Path]] = None) -> TagenvConfig:
    """
    Load and validate a tagenv YAML config. With no file every setting
    takes its default, which matches the single-VM WordPress pipeline.
    """
    cfg_path = resolve_config_path(path)
    if cfg_path is None:
        log.debug("No config file found; using defaults")
        return TagenvConfig()
    log.debug("Loading config from %s", cfg_path)
    return TagenvConfig.model_validate(_load_yaml(cfg_path))


def _find_secrets_file(config_path: Optional[Path]) -> Optional[Path]:
    """
    Locate secrets.yaml using this priority:

    1. TAGENV_SECRETS_FILE environment variable (explicit override)
    2. secrets.yaml in the same directory as the config
    """
    env = os.environ.get(SECRETS_ENV)
    if env:
        p = Path(env)
        if p.is_file():
            return p
        log.warning("%s=%s does not exist, skipping", SECRETS_ENV, env)
        return None

    if config_path is not None:
        p = config_path.parent / "secrets.yaml"
        if p.is_file():
            return p

    return None


def load_secret_parameters(config_path: Optional[Union[str, Path]] = None) -> Dict[str, str]:
    """
    Collect deploy parameters that are secret.

    A secrets.yaml may hold `root_password` / `app_password`; the CI secret
    environment variables MYSQL_ROOT_PASSWORD / MYSQL_PASSWORD override it.
    Values are never logged.
    """
    params: Dict[str, str] = {}
    cfg_path = Path(config_path) if config_path else None

    secrets_path = _find_secrets_file(cfg_path)
    if secrets_path:
        log.debug("Reading deploy secrets from %s", secrets_path)
        data = _load_yaml(secrets_path, expand=False)
        if not isinstance(data, dict):
            raise ValueError(f"{secrets_path}: expected a mapping of secret names, got {type(data).__name__}")
        for key in SECRET_ENV_PARAMETERS.values():
            value = data.get(key)
            if value not in (None, ""):
                params[key] = str(value)

    for env_name, key in SECRET_ENV_PARAMETERS.items():
        value = os.environ.get(env_name)
        if value:
            params[key] = value

    return params
