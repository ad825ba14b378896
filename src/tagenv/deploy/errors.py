# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/deploy/errors.py
from __future__ import annotations

import paramiko

from ..bootstrap.errors import BootstrapError
from ..cloud.errors import AzureCliError
from ..k8s.errors import KubectlError


class TagenvError(RuntimeError):
    """Base class for deployment-controller failures."""


class RequestValidationError(TagenvError, ValueError):
    """Request rejected before any client call was made."""


class AlreadyExistsError(TagenvError):
    """Deploy submitted for an environment that is Ready or already being deployed."""


class NotFoundError(TagenvError, KeyError):
    """No record for the environment id."""

    def __str__(self) -> str:
        return RuntimeError.__str__(self)


class InvalidTransitionError(TagenvError):
    """Phase change outside the deploy or destroy path."""


class StateStoreError(TagenvError):
    """A record could not be read or written."""


class ClientError(TagenvError):
    """An external call failed, after classification."""

    def __init__(self, message: str, *, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause
        self.attempts = 0


class TransientClientError(ClientError):
    """Network, timeout or not-ready-yet: retried per step policy."""


class FatalClientError(ClientError):
    """Authentication, authorization or malformed spec: aborts the plan."""


def classify(exc: BaseException) -> ClientError:
    """
    Map a raw client exception onto the transient/fatal taxonomy.
    Unknown exception types are programming errors and count as fatal.
    """
    if isinstance(exc, ClientError):
        return exc

    msg = str(exc) or exc.__class__.__name__

    if isinstance(exc, (AzureCliError, KubectlError, BootstrapError)):
        cls = FatalClientError if exc.fatal else TransientClientError
        return cls(msg, cause=exc)

    if isinstance(exc, (paramiko.AuthenticationException, paramiko.BadHostKeyException)):
        return FatalClientError(msg, cause=exc)

    if isinstance(exc, (TimeoutError, OSError, paramiko.SSHException)):
        return TransientClientError(msg, cause=exc)

    return FatalClientError(f"{exc.__class__.__name__}: {msg}", cause=exc)
