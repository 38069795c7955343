"""
Caller-side retry policy for rate-limited upstream calls.

Fetchers never retry on their own. Callers that want to ride out
throttling wrap an operation in call_with_backoff, which retries only on
RateLimited with exponential backoff and jitter.
"""

import logging
import random
import time
from typing import Callable, Optional, TypeVar

from .errors import RateLimited

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Retry configuration
DEFAULT_INITIAL_DELAY = 1.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0
DEFAULT_MAX_RETRIES = 5
DEFAULT_MAX_DELAY = 32.0  # seconds
DEFAULT_JITTER = 0.1  # ±10%


def apply_jitter(delay: float, jitter: float) -> float:
    """Apply random jitter (±jitter fraction) to a delay value."""
    jitter_range = delay * jitter
    return delay + random.uniform(-jitter_range, jitter_range)


def call_with_backoff(
    func: Callable[[], T],
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    max_retries: int = DEFAULT_MAX_RETRIES,
    max_delay: float = DEFAULT_MAX_DELAY,
    jitter: float = DEFAULT_JITTER,
    sleep: Optional[Callable[[float], None]] = None,
) -> T:
    """
    Call func, retrying with exponential backoff while it raises RateLimited.

    Args:
        func: Zero-argument callable to execute
        initial_delay: Initial delay in seconds for retry backoff
        backoff_multiplier: Multiplier for exponential backoff
        max_retries: Maximum number of retry attempts
        max_delay: Maximum delay cap in seconds
        jitter: Jitter factor (±percentage) to randomize delays
        sleep: Sleep function (defaults to time.sleep)

    Returns:
        The value returned by func

    Raises:
        RateLimited: When the rate limit persists after max_retries retries
    """
    sleep = sleep or time.sleep
    delay = initial_delay
    attempt = 0

    while True:
        try:
            return func()
        except RateLimited as e:
            if attempt >= max_retries:
                raise
            sleep_time = apply_jitter(min(delay, max_delay), jitter)
            logger.info(
                "Rate limited (%s), retrying in %.2fs (attempt %d/%d)",
                e,
                sleep_time,
                attempt + 1,
                max_retries,
            )
            sleep(sleep_time)
            delay *= backoff_multiplier
            attempt += 1
