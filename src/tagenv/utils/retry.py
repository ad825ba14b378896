# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

import time
import functools
from dataclasses import dataclass
from typing import Callable


class RetryError(RuntimeError):
    pass


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt budget with exponential backoff.

    max_attempts: total attempts, including the first one
    backoff_seconds: delay after the first failed attempt
    multiplier: growth factor applied per further failure
    max_backoff_seconds: ceiling for a single delay
    """

    max_attempts: int = 3
    backoff_seconds: float = 5.0
    multiplier: float = 2.0
    max_backoff_seconds: float = 60.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must be >= 0")

    def delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt` (1-based)."""
        raw = self.backoff_seconds * (self.multiplier ** (attempt - 1))
        return min(raw, self.max_backoff_seconds)


def retry(
    *,
    retries: int,
    delay: float,
    multiplier: float = 1.0,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[int, Exception], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
):
    """
    Retry decorator for idempotent operations.

    retries: number of attempts
    delay: seconds between the first two attempts
    multiplier: delay growth per attempt (1.0 keeps it constant)
    retry_on: exception types to retry
    on_retry: callback(attempt, exception)
    """

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            last_exc = None
            wait = delay
            for attempt in range(1, retries + 1):
                try:
                    return fn(*args, **kwargs)
                except retry_on as exc:
                    last_exc = exc
                    if on_retry:
                        on_retry(attempt, exc)
                    if attempt == retries:
                        break
                    sleep(wait)
                    wait *= multiplier
            raise RetryError(f"{fn.__name__} failed after {retries} retries") from last_exc
        return wrapper
    return decorator
