# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/bootstrap/errors.py
class BootstrapError(RuntimeError):
    """Raised when the cluster runtime could not be installed or reached."""

    def __init__(self, message: str, *, fatal: bool = False):
        super().__init__(message)
        self.fatal = fatal
