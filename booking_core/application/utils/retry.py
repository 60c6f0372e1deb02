from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from booking_core.application.exceptions import BookingError

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    initial_delay: float = 0.5  # seconds
    max_delay: float = 5.0
    backoff_multiplier: float = 2.0
    jitter: float = 0.1  # fraction of the delay

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number `attempt` (0-based), capped, with jitter."""
        delay = min(self.initial_delay * (self.backoff_multiplier ** attempt), self.max_delay)
        return delay + delay * self.jitter * random.random()


def is_retryable(error: Exception) -> bool:
    return isinstance(error, BookingError) and error.retryable


def retry_with_backoff(
    fn: Callable[[], T],
    policy: RetryPolicy,
    operation: str,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call `fn`, retrying retryable BookingErrors up to `policy.max_retries` times.

    Non-retryable errors propagate immediately. After the last attempt the
    final error propagates unchanged.
    """
    attempt = 0
    while True:
        try:
            return fn()
        except Exception as e:
            if attempt >= policy.max_retries or not is_retryable(e):
                raise
            delay = policy.delay_for(attempt)
            attempt += 1
            logger.warning(
                "%s failed, retrying",
                operation,
                extra={"attempt": attempt, "delay": round(delay, 3), "error": str(e)},
            )
            sleep(delay)
