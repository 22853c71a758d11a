"""Operator-facing messages.

The signing pipeline never prints. It hands human-readable messages to a
Notifier: warnings (mutable tag, stale referrers index) and the final report.

Implementations:
- ConsoleNotifier: "Warning: ..." on stderr, the report on stdout
- RecordingNotifier: keeps messages in lists (tests, embedding)
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import click


@runtime_checkable
class Notifier(Protocol):
    """Sink for operator messages."""

    def warn(self, message: str) -> None:
        """Show a warning."""
        ...

    def report(self, message: str) -> None:
        """Show the result line."""
        ...


class ConsoleNotifier:
    """Notifier writing warnings to stderr and reports to stdout."""

    def warn(self, message: str) -> None:
        click.echo(f"Warning: {message}", err=True)

    def report(self, message: str) -> None:
        click.echo(message)


class RecordingNotifier:
    """Notifier that records messages instead of printing them.

    Example:
        >>> notifier = RecordingNotifier()
        >>> notifier.warn("tags are mutable")
        >>> notifier.warnings
        ['tags are mutable']
    """

    def __init__(self) -> None:
        self.warnings: list[str] = []
        self.reports: list[str] = []

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def report(self, message: str) -> None:
        self.reports.append(message)


__all__ = ["ConsoleNotifier", "Notifier", "RecordingNotifier"]
