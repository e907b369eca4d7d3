"""Retry helper with bounded exponential backoff.

Only ``RolloutError``s flagged ``retryable`` are retried; anything else
propagates on the first occurrence. Retries never span more than the one
call they wrap.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from rollkeeper.core.errors import RolloutError
from rollkeeper.models.config import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_with_backoff(
    func: Callable[[], T],
    policy: RetryPolicy,
    *,
    description: str = "call",
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Callable[[int, float, RolloutError], None] | None = None,
) -> T:
    """Invoke *func*, retrying retryable rollout errors per *policy*.

    Raises the last retryable error once ``policy.max_attempts`` calls
    have failed.
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return func()
        except RolloutError as exc:
            if not exc.retryable or attempt >= policy.max_attempts:
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "%s failed (attempt %d/%d, %s): %s; retrying in %.2fs",
                description, attempt, policy.max_attempts, exc.code, exc, delay,
            )
            if on_retry:
                on_retry(attempt, delay, exc)
            sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover
