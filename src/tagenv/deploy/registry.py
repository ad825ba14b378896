# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/deploy/registry.py
from __future__ import annotations

from typing import Callable, Dict

# Step operations by name. Plans refer to operations by name so a plan
# stays plain data that can be described, logged and compared.
_OPERATIONS: Dict[str, Callable[..., object]] = {}


def register(name: str):
    """Decorator to register a step operation by name."""
    def _wrap(fn: Callable[..., object]):
        _OPERATIONS[name] = fn
        return fn
    return _wrap


def get(name: str) -> Callable[..., object]:
    """Fetch an operation by name. Raises KeyError if not found."""
    return _OPERATIONS[name]


def has(name: str) -> bool:
    return name in _OPERATIONS
