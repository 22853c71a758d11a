"""Cooperative cancellation for the signing pipeline.

A single CancellationToken is threaded through every stage. Stages check it
right before each blocking I/O boundary (repository resolve, signer call,
repository push); nothing is interrupted mid-request.

Example:
    >>> token = CancellationToken()
    >>> token.raise_if_cancelled("resolve")  # no-op
    >>> token.cancel()
    >>> token.raise_if_cancelled("resolve")
    Traceback (most recent call last):
        ...
    OperationCancelledError: operation cancelled before resolve
"""

from __future__ import annotations

import threading

import structlog

from ocisign.errors import OperationCancelledError

logger = structlog.get_logger(__name__)


class CancellationToken:
    """Thread-safe, one-way cancellation flag.

    Safe to set from a signal handler or another thread.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        """Return True once cancel() has been called."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        if not self._event.is_set():
            logger.info("cancellation_requested")
        self._event.set()

    def raise_if_cancelled(self, stage: str) -> None:
        """Raise OperationCancelledError if cancellation was requested.

        Args:
            stage: Name of the I/O boundary about to be crossed.

        Raises:
            OperationCancelledError: If cancel() was called.
        """
        if self._event.is_set():
            raise OperationCancelledError(stage)


def check_cancelled(token: CancellationToken | None, stage: str) -> None:
    """Check an optional token; None means the caller cannot be cancelled."""
    if token is not None:
        token.raise_if_cancelled(stage)


__all__ = ["CancellationToken", "check_cancelled"]
