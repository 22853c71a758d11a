"""CLI exit codes and output helpers.

stdout carries exactly one line on success (``Successfully signed <ref>``)
so scripts can capture the signed reference. Everything else goes to
stderr.

Example:
    from ocisign.cli.utils import ExitCode, error_exit

    if not outcome.succeeded:
        error_exit(outcome.message, exit_code=ExitCode.SIGNATURE_PUSH_ERROR)
"""

from __future__ import annotations

import sys
from enum import IntEnum
from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from typing import NoReturn


class ExitCode(IntEnum):
    """Process exit codes.

    OCISignError subclasses carry the matching value as ``exit_code``.
    """

    SUCCESS = 0
    GENERAL_ERROR = 1
    USAGE_ERROR = 2
    """Click rejected the command line."""

    ARTIFACT_NOT_FOUND = 3
    AUTHENTICATION_ERROR = 4
    VALIDATION_ERROR = 5
    """Invalid argument or unsupported envelope format."""

    NETWORK_ERROR = 8
    SIGNATURE_PUSH_ERROR = 9
    SIGNING_ERROR = 10
    CANCELLED = 130


def _with_context(prefix: str, message: str, context: dict[str, object]) -> str:
    details = ", ".join(f"{key}={value}" for key, value in context.items() if value is not None)
    if details:
        return f"{prefix}: {message} ({details})"
    return f"{prefix}: {message}"


def error(message: str, **context: str | int | bool | None) -> None:
    """Print ``Error: <message>`` to stderr.

    Example:
        error("reference is missing a tag or digest", reference="reg/repo")
        # Error: reference is missing a tag or digest (reference=reg/repo)
    """
    click.echo(_with_context("Error", message, context), err=True)


def error_exit(
    message: str,
    exit_code: int = ExitCode.GENERAL_ERROR,
    **context: str | int | bool | None,
) -> NoReturn:
    """Print an error to stderr and exit.

    Raises:
        SystemExit: Always, with ``exit_code``.
    """
    error(message, **context)
    sys.exit(exit_code)


def warn(message: str, **context: str | int | bool | None) -> None:
    """Print ``Warning: <message>`` to stderr."""
    click.echo(_with_context("Warning", message, context), err=True)


def success(message: str) -> None:
    """Print the result line to stdout."""
    click.echo(message)


__all__: list[str] = ["ExitCode", "error", "error_exit", "success", "warn"]
