# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/tagenv/k8s/probe.py
from __future__ import annotations

import logging
import time
from typing import Callable

import requests

log = logging.getLogger("tagenv")


def wait_for_http(
    url: str,
    timeout_seconds: int = 300,
    interval_seconds: float = 5.0,
    *,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> int:
    """
    Poll `url` until it answers with a non-5xx status.
    WordPress answers 302 to its installer on first boot, which counts.
    Returns the status code.
    """
    deadline = clock() + timeout_seconds
    last = "no response"
    while True:
        try:
            resp = requests.get(url, timeout=10, allow_redirects=False)
            if resp.status_code < 500:
                log.info("[probe] %s answered %s", url, resp.status_code)
                return resp.status_code
            last = f"HTTP {resp.status_code}"
        except requests.RequestException as e:
            last = str(e)
        if clock() >= deadline:
            raise TimeoutError(f"{url} not reachable after {timeout_seconds}s ({last})")
        log.debug("[probe] %s not ready: %s", url, last)
        sleep(interval_seconds)
