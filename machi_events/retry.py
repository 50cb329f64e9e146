"""
Classified, bounded, jittered exponential backoff.

retry_with_backoff() is a pure wrapper: it knows nothing about sites, stores
or alerts. Callers decide what an operation is; this module only decides
whether (and when) to run it again.
"""
from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from .errors import ScrapingError, to_scraping_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_s: float = 1.0
    max_delay_s: float = 30.0
    jitter_ratio: float = 0.1

    def compute_backoff_s(self, attempt: int, rand: Callable[[], float] = random.random) -> float:
        """
        attempt: 0..N-1 (the attempt that just failed)

        base * 2^attempt plus up to jitter_ratio of that, capped at max_delay_s.
        """
        delay = self.base_delay_s * (2 ** attempt)
        jitter = rand() * self.jitter_ratio * delay
        return min(delay + jitter, self.max_delay_s)


def is_retryable(exc: BaseException) -> bool:
    """
    Same verdict as the error's classification: network and database errors
    are retried, parsing and validation errors are not. An exception that
    classifies as nothing in particular counts as network.
    """
    if isinstance(exc, ScrapingError):
        return exc.retryable
    return to_scraping_error(exc, "").retryable


def retry_with_backoff(
    operation: Callable[[], T],
    policy: Optional[RetryPolicy] = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
    rand: Callable[[], float] = random.random,
    label: str = "",
    on_attempt: Optional[Callable[[int], None]] = None,
) -> T:
    """
    Run operation until it succeeds, raises a non-retryable error, or
    policy.max_attempts is used up. The last error is re-raised unchanged.
    """
    policy = policy or RetryPolicy()
    attempts = max(1, policy.max_attempts)

    for attempt in range(attempts):
        if on_attempt is not None:
            on_attempt(attempt + 1)
        try:
            return operation()
        except Exception as e:
            if not is_retryable(e):
                logger.info("[retry] %s not retryable: %s: %s", label, type(e).__name__, e)
                raise
            if attempt == attempts - 1:
                logger.info("[retry] %s giving up after attempts=%d: %s", label, attempts, e)
                raise

            delay = policy.compute_backoff_s(attempt, rand)
            logger.info(
                "[retry] %s attempt=%d/%d failed (%s: %s), sleeping %.2fs",
                label, attempt + 1, attempts, type(e).__name__, e, delay,
            )
            sleep(delay)

    # range(attempts) always returns or raises
    raise AssertionError("unreachable")
