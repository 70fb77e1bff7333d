"""Bounded retry with multiplicative backoff for remote tutor calls."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry a failed call and how long to wait in between."""

    retries: int = 2
    initial_delay: float = 0.5
    multiplier: float = 1.5

    def __post_init__(self) -> None:
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be >= 0")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def delays(self) -> Iterator[float]:
        """Yield the wait before each retry (0.5, 0.75, ... with the defaults)."""

        delay = self.initial_delay
        for _ in range(self.retries):
            yield delay
            delay *= self.multiplier


def call_with_retry(
    fn: Callable[[], T],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "call",
) -> T:
    """Invoke ``fn`` until it succeeds or the retry budget is spent.

    The last exception is re-raised once every attempt has failed.
    """

    delays = policy.delays()
    attempt = 0
    while True:
        attempt += 1
        try:
            return fn()
        except Exception as exc:
            delay: Optional[float] = next(delays, None)
            if delay is None:
                LOGGER.warning(
                    "%s failed after %d attempt(s): %s", label, attempt, exc
                )
                raise
            LOGGER.info(
                "%s attempt %d/%d failed (%s); retrying in %.2fs",
                label,
                attempt,
                policy.max_attempts,
                exc,
                delay,
            )
            sleep(delay)
