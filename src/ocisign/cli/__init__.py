"""Command-line interface for ocisign.

Command:
    ocisign sign: Sign an artifact in a registry or a local OCI layout

Exit Codes:
    0: Success
    1: General error
    2: Usage error (invalid arguments)
    3: Artifact not found
    4: Authentication error
    5: Validation error
    8: Network error
    9: Signature push failed
    10: Signing failed
    130: Cancelled

The entry point lives in ocisign.cli.main; this package only re-exports the
output helpers so the signing layer can use them without importing commands.
"""

from __future__ import annotations

from ocisign.cli.utils import ExitCode, error, error_exit, success, warn

__all__: list[str] = [
    "ExitCode",
    "error",
    "error_exit",
    "success",
    "warn",
]
