"""Bounded retry with exponential backoff and jitter.

Transport-agnostic: the caller supplies the operation, a classification
function that decides whether a failure is worth another attempt, and
optionally a sleep function so tests never wait.
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from config.settings import LLM_MAX_ATTEMPTS, LLM_RETRY_BASE_DELAY, LLM_RETRY_MAX_DELAY

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff schedule."""

    max_attempts: int = LLM_MAX_ATTEMPTS
    base_delay: float = LLM_RETRY_BASE_DELAY
    max_delay: float = LLM_RETRY_MAX_DELAY
    jitter_low: float = 0.5
    jitter_high: float = 1.5

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays must not be negative")

    def delay_for(
        self,
        attempt: int,
        hint: float | None = None,
        rng: random.Random | None = None,
    ) -> float:
        """Seconds to wait after the given (1-based) failed attempt.

        The exponential step is capped at max_delay, scaled by a random
        jitter factor, and never shorter than a server-provided hint.
        """
        rng = rng or random
        step = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        delay = step * rng.uniform(self.jitter_low, self.jitter_high)
        if hint is not None:
            delay = max(delay, min(hint, self.max_delay))
        return delay

    def max_backoff(self) -> float:
        """Longest total wait between attempts when no hint is given."""
        return sum(
            min(self.max_delay, self.base_delay * (2 ** (attempt - 1))) * self.jitter_high
            for attempt in range(1, self.max_attempts)
        )


def _default_hint(error: Exception) -> float | None:
    return getattr(error, "retry_after", None)


def call_with_retry(
    fn: Callable[[], T],
    *,
    is_retryable: Callable[[Exception], bool],
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
    retry_hint: Callable[[Exception], float | None] = _default_hint,
    on_retry: Callable[[int, Exception, float], None] | None = None,
) -> T:
    """Call fn until it succeeds, fails terminally, or the budget runs out.

    Args:
        fn: Zero-argument operation to attempt.
        is_retryable: Returns True for transient failures.
        policy: Attempt budget and backoff schedule (defaults from settings).
        sleep: Called with the delay between attempts.
        retry_hint: Extracts a minimum delay from an error (Retry-After).
        on_retry: Called with (attempt, error, delay) before each wait.

    Returns:
        Whatever fn returns on its first successful attempt.

    Raises:
        The last exception raised by fn when it is terminal or when every
        attempt has failed.
    """
    policy = policy or RetryPolicy()

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return fn()
        except Exception as e:
            if not is_retryable(e):
                logger.info("Attempt %d failed with a terminal error: %s", attempt, e)
                raise
            if attempt == policy.max_attempts:
                logger.warning("Giving up after %d attempts: %s", attempt, e)
                raise
            delay = policy.delay_for(attempt, hint=retry_hint(e))
            logger.warning(
                "Attempt %d/%d failed (%s), retrying in %.2fs",
                attempt, policy.max_attempts, e, delay,
            )
            if on_retry is not None:
                on_retry(attempt, e, delay)
            sleep(delay)

    # Unreachable: the loop either returns or raises
    raise RuntimeError("retry loop exited without a result")
