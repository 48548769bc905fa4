import time
from collections.abc import Callable
from typing import TypeVar

from pydantic import Field

from layr.constants import LAYR_DEFAULT_MAX_BACKOFF, LAYR_DEFAULT_MAX_RETRIES, LAYR_DEFAULT_RETRY_BACKOFF
from layr.exceptions import is_recoverable
from layr.models.base import LayrBaseModel

T = TypeVar("T")

RetryCallback = Callable[[int, Exception, float], None]


class RetryPolicy(LayrBaseModel):
    """
    Bounded retry with exponential backoff.

    Attempt n (1-based) that fails waits `base_delay * 2 ** (n - 1)` seconds,
    capped at `max_delay`, before attempt n + 1. No wait follows the last attempt.
    """

    max_attempts: int = Field(default=LAYR_DEFAULT_MAX_RETRIES, ge=1)
    base_delay: float = Field(default=LAYR_DEFAULT_RETRY_BACKOFF, ge=0)
    max_delay: float = Field(default=LAYR_DEFAULT_MAX_BACKOFF, ge=0)

    def delay_for(self, attempt: int) -> float:
        return min(self.max_delay, self.base_delay * (2 ** max(0, attempt - 1)))


NO_RETRY = RetryPolicy(max_attempts=1)


def call_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    on_retry: RetryCallback | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run `operation` until it succeeds or the policy's attempts are exhausted.

    Args:
        operation: Zero-argument callable to invoke.
        policy: Attempt bound and backoff parameters.
        on_retry: Called as on_retry(attempt, error, delay) before each wait.
        sleep: Wait function, injectable so tests do not actually sleep.

    Returns:
        The operation's return value.

    Raises:
        The last error once attempts run out, or immediately for
        non-recoverable errors (e.g. ConfigurationError).
    """
    attempt = 1
    while True:
        try:
            return operation()
        except Exception as e:
            if not is_recoverable(e) or attempt >= policy.max_attempts:
                raise
            delay = policy.delay_for(attempt)
            if on_retry:
                on_retry(attempt, e, delay)
            sleep(delay)
            attempt += 1
