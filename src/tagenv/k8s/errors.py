# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/k8s/errors.py
from __future__ import annotations

from typing import Sequence

FATAL_MARKERS = (
    "Forbidden",
    "Unauthorized",
    "error validating",
    "is invalid",
    "error parsing",
)


class KubectlError(RuntimeError):
    """Raised when a kubectl invocation exits non-zero."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr or ""
        super().__init__(f"kubectl {' '.join(self.argv[:2])} failed (rc={returncode}): {self.stderr.strip()}")

    @property
    def fatal(self) -> bool:
        return any(m in self.stderr for m in FATAL_MARKERS)
