"""Bounded retry with exponential backoff."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhausted(Exception):
    """Raised when every attempt of an operation failed.

    The last underlying exception is available as ``__cause__`` and
    :attr:`last_error`.
    """

    def __init__(self, description: str, attempts: int, last_error: BaseException) -> None:
        self.description = description
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{description} failed after {attempts} attempt(s): {last_error}")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry an operation up to *max_retries* extra times.

    Attributes
    ----------
    max_retries:
        Number of retries after the first attempt (``0`` disables retrying).
    base_delay:
        Seconds to wait before the first retry.
    multiplier:
        Growth factor of the delay; attempt *n* (0-based) waits
        ``base_delay * multiplier ** n``.
    retry_on:
        Exception types that trigger a retry.  Anything else propagates
        immediately.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    retry_on: tuple[type[BaseException], ...] = (Exception,)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")
        if self.multiplier < 1:
            raise ValueError(f"multiplier must be >= 1, got {self.multiplier}")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, attempt: int) -> float:
        """Seconds to sleep after the failed 0-based *attempt*."""
        return self.base_delay * self.multiplier**attempt

    def call(self, operation: Callable[[], T], *, description: str = "operation") -> T:
        """Run *operation* until it succeeds or the attempts run out.

        Raises
        ------
        RetryExhausted
            When the final attempt fails with a retryable exception.
        """
        for attempt in range(self.max_attempts):
            try:
                return operation()
            except self.retry_on as exc:
                if attempt + 1 >= self.max_attempts:
                    raise RetryExhausted(description, self.max_attempts, exc) from exc
                wait = self.delay_for(attempt)
                logger.warning(
                    "Retry %d/%d for %s (wait %.2fs): %s",
                    attempt + 1, self.max_retries, description, wait, exc,
                )
                time.sleep(wait)
        raise AssertionError("unreachable")  # pragma: no cover
