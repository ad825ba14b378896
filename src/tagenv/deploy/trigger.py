# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/deploy/trigger.py
from __future__ import annotations

import re
from typing import Mapping, Optional

from .errors import RequestValidationError
from .models import ENVIRONMENT_ID_RE, Action, Request

TAG_PREFIXES = {
    "deploy-": Action.DEPLOY,
    "destroy-": Action.DESTROY,
}

_REF_PREFIX = "refs/tags/"
_SEPARATORS = re.compile(r"[._+/]")


def environment_id_from_version(version: str) -> str:
    """`1.0` -> `1-0`, `RC_2` -> `rc-2`."""
    env_id = _SEPARATORS.sub("-", version.strip().lower())
    if not ENVIRONMENT_ID_RE.match(env_id):
        raise RequestValidationError(f"version {version!r} does not map to a valid environment id")
    return env_id


def request_from_tag(tag: str, parameters: Optional[Mapping[str, str]] = None) -> Request:
    """
    Turn a pushed tag (`deploy-<version>` or `destroy-<version>`, optionally
    as a full `refs/tags/...` ref) into a Request. Parameters are passed
    through for deploys only.
    """
    name = tag.strip()
    if name.startswith(_REF_PREFIX):
        name = name[len(_REF_PREFIX):]

    for prefix, action in TAG_PREFIXES.items():
        if name.startswith(prefix) and len(name) > len(prefix):
            env_id = environment_id_from_version(name[len(prefix):])
            params = dict(parameters or {}) if action is Action.DEPLOY else {}
            return Request(action=action, environment_id=env_id, parameters=params)

    raise RequestValidationError(f"tag {tag!r} is not a deploy-<version> or destroy-<version> tag")
