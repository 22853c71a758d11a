"""Main entry point for the ocisign CLI.

Commands:
    ocisign sign: Sign an artifact in a registry or a local OCI layout

Example:
    $ ocisign --help
    $ ocisign sign --key release registry.example.com/net-monitor@sha256:...
"""

from __future__ import annotations

import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

import click

from ocisign.cli.sign import sign_command
from ocisign.cli.utils import ExitCode


def _get_version() -> str:
    """Get the ocisign package version.

    Returns:
        Version string from package metadata, or 'unknown' if not installed.
    """
    try:
        return get_version("ocisign")
    except PackageNotFoundError:
        return "unknown"


@click.group(
    name="ocisign",
    help="ocisign - Sign OCI artifacts in registries and local OCI layouts.",
    epilog="Use 'ocisign <command> --help' for command-specific help.",
    context_settings={
        "help_option_names": ["-h", "--help"],
    },
)
@click.version_option(
    version=_get_version(),
    prog_name="ocisign",
    message="%(prog)s %(version)s",
)
def cli() -> None:
    """Root command group for the ocisign CLI."""


cli.add_command(sign_command)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the ocisign CLI.

    Args:
        argv: Command-line arguments (uses sys.argv if None).
    """
    try:
        cli(args=argv, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(ExitCode.CANCELLED)


if __name__ == "__main__":
    main()
