"""Exponential backoff for emacsclient invocations.

emacsclient fails transiently while the daemon is still booting or while a
previous request holds the terminal frame. Retrying with a growing, jittered
delay absorbs those races.
"""

import logging
import random
import time
from collections.abc import Callable
from typing import TypeVar

from orgrender.domain.config import RetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryAborted(Exception):
    """Raised by should_abort checks to stop retrying immediately."""

    pass


def backoff_delay(
    attempt: int,
    config: RetryConfig,
    rng: random.Random | None = None,
) -> float:
    """Return the delay after the given 0-based failed attempt.

    delay = min(max_timeout, min_timeout * factor**attempt * r), where r is
    drawn from [1, 2) when randomize is enabled and is 1 otherwise.

    Args:
        attempt: Index of the attempt that just failed
        config: Backoff policy
        rng: Random source (module-level random by default)

    Returns:
        Seconds to sleep before the next attempt
    """
    try:
        growth = config.factor**attempt
    except OverflowError:
        return config.max_timeout

    jitter = (rng or random).uniform(1.0, 2.0) if config.randomize else 1.0
    return min(config.min_timeout * growth * jitter, config.max_timeout)


def call_with_backoff(
    operation: Callable[[int], T],
    retryable: tuple[type[Exception], ...],
    config: RetryConfig,
    should_abort: Callable[[], bool] = lambda: False,
    sleep: Callable[[float], None] = time.sleep,
    rng: random.Random | None = None,
) -> T:
    """Run operation until it succeeds or the retry budget is spent.

    Args:
        operation: Callable receiving the 1-based attempt number
        retryable: Exception types that trigger another attempt
        config: Backoff policy; config.retries is the total attempt count
        should_abort: Checked after every failed attempt
        sleep: Sleep function (injected by tests)
        rng: Random source for jitter

    Returns:
        Result of the first successful attempt

    Raises:
        RetryAborted: If should_abort() returned True
        Exception: The last retryable error once every attempt failed
    """
    for attempt in range(config.retries):
        try:
            return operation(attempt + 1)
        except retryable as e:
            if should_abort():
                raise RetryAborted(str(e)) from e
            if attempt == config.retries - 1:
                raise
            delay = backoff_delay(attempt, config, rng)
            logger.debug(
                f"Attempt {attempt + 1}/{config.retries} failed ({e}), "
                f"retrying in {delay:.3f}s"
            )
            sleep(delay)

    # retries >= 1 is enforced by RetryConfig, so the loop always returns or raises
    raise RuntimeError("retry loop exited without a result")  # pragma: no cover
