"""Retry policy for registry requests.

Only transient failures are retried: RegistryUnavailableError (5xx answers,
refused connections) and socket-level ConnectionError/TimeoutError. A 4xx
answer is final on the first attempt.

Backoff (default RetryConfig, jitter off):
    attempt 1 -> request
    attempt 2 -> sleep 0.5s, request
    attempt 3 -> sleep 1.0s, request, give up

Example:
    >>> policy = RetryPolicy(RetryConfig(max_attempts=3))
    >>> descriptor = policy.call(lambda: repository_head(ref), cancellation=token)
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, TypeVar

import structlog

from ocisign.cancellation import check_cancelled
from ocisign.errors import RegistryUnavailableError
from ocisign.schemas.config import RetryConfig

if TYPE_CHECKING:
    from ocisign.cancellation import CancellationToken

logger = structlog.get_logger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    RegistryUnavailableError,
    ConnectionError,
    TimeoutError,
)


class RetryPolicy:
    """Exponential backoff around a single registry request.

    Attributes:
        config: Attempts, delays and jitter.
    """

    def __init__(self, config: RetryConfig | None = None) -> None:
        self.config = config or RetryConfig()

    def calculate_delay(self, attempt: int) -> float:
        """Seconds to sleep after the failed attempt number ``attempt`` (0-based).

        ``initial * multiplier ** attempt`` milliseconds, capped at
        ``max_delay_ms``, then spread by up to 25% either way when jitter is on.
        """
        delay_ms = min(
            self.config.initial_delay_ms * self.config.backoff_multiplier**attempt,
            self.config.max_delay_ms,
        )
        if self.config.jitter:
            delay_ms *= random.uniform(0.75, 1.25)
        return max(delay_ms, 0.0) / 1000.0

    def call(
        self,
        func: Callable[[], T],
        *,
        cancellation: CancellationToken | None = None,
        operation: str = "registry_request",
    ) -> T:
        """Run ``func``, retrying transient failures.

        The cancellation token is checked before every attempt, so a
        cancelled operation never starts another request.

        Args:
            func: Zero-argument callable performing one request.
            cancellation: Optional cancellation token.
            operation: Stage name for log events and cancellation errors.

        Returns:
            Whatever ``func`` returns.
        """
        attempts = self.config.max_attempts
        attempt = 0
        while True:
            check_cancelled(cancellation, operation)
            try:
                return func()
            except TRANSIENT_ERRORS as e:
                attempt += 1
                if attempt >= attempts:
                    logger.warning(
                        "retry_exhausted",
                        operation=operation,
                        attempts=attempts,
                        error=str(e),
                    )
                    raise
                delay = self.calculate_delay(attempt - 1)
                logger.debug(
                    "retry_scheduled",
                    operation=operation,
                    attempt=attempt,
                    max_attempts=attempts,
                    delay_seconds=round(delay, 3),
                    error=str(e),
                )
                time.sleep(delay)


__all__ = ["TRANSIENT_ERRORS", "RetryPolicy"]
