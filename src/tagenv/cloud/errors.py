# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/cloud/errors.py
from __future__ import annotations

from typing import Sequence

# Substrings of az error output that no amount of retrying will fix.
FATAL_MARKERS = (
    "AuthorizationFailed",
    "AuthenticationFailed",
    "InvalidAuthenticationToken",
    "az login",
    "InvalidParameter",
    "InvalidTemplate",
    "SkuNotAvailable",
    "unrecognized arguments",
)


class AzureCliError(RuntimeError):
    """Raised when an `az` invocation exits non-zero."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr or ""
        super().__init__(f"az failed (rc={returncode}) for {' '.join(self.argv[:3])}: {self.stderr.strip()}")

    @property
    def fatal(self) -> bool:
        return any(m in self.stderr for m in FATAL_MARKERS)

    @property
    def not_found(self) -> bool:
        return "ResourceGroupNotFound" in self.stderr or "could not be found" in self.stderr
