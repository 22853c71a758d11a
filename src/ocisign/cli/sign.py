"""``ocisign sign`` command.

Signs one artifact in a remote registry, or in a local OCI image layout with
``--local-content``, and stores the signature next to it.

Example:
    $ ocisign sign --key release registry.example.com/net-monitor@sha256:...
    Successfully signed registry.example.com/net-monitor@sha256:...

Environment Variables:
    OCISIGN_USERNAME: Registry username for basic auth
    OCISIGN_PASSWORD: Registry password for basic auth
    OCISIGN_TOKEN: Identity token for token auth
    OCISIGN_CONFIG_DIR: Directory holding signingkeys.yaml and plugins
    OCISIGN_PLUGIN_TIMEOUT: Seconds to wait for a signing plugin
"""

from __future__ import annotations

import functools
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import click

from ocisign.cancellation import CancellationToken
from ocisign.cli.options import DURATION
from ocisign.cli.utils import error_exit
from ocisign.oci.auth import create_auth_provider, resolve_registry_auth
from ocisign.oci.repository import open_repository
from ocisign.schemas.config import RegistryAuth, RegistryConfig
from ocisign.schemas.reference import RemoteReference
from ocisign.signer import get_signer
from ocisign.signing.notifier import ConsoleNotifier
from ocisign.signing.outcome import SigningFailure
from ocisign.signing.workflow import SignOptions, render_outcome, run_sign
from ocisign.telemetry import configure_logging

if TYPE_CHECKING:
    from ocisign.oci.repository import Repository
    from ocisign.schemas.reference import ArtifactReference
    from ocisign.schemas.signing import SignatureManifestKind


@contextmanager
def _cancel_on_sigterm(token: CancellationToken) -> Iterator[None]:
    """Cancel ``token`` on SIGTERM while the block runs."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum: int, frame: Any) -> None:  # noqa: ARG001
        token.cancel()

    previous = signal.signal(signal.SIGTERM, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


def _log_level(debug: bool, verbose: bool) -> str:
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    return "WARNING"


def _open_repository(
    reference: ArtifactReference,
    manifest_kind: SignatureManifestKind,
    *,
    auth: RegistryAuth,
    password: str | None,
    insecure_registry: bool,
) -> Repository:
    """Repository factory binding the CLI's registry options."""
    if not isinstance(reference, RemoteReference):
        return open_repository(reference, manifest_kind)
    config = RegistryConfig(host=reference.registry, plain_http=insecure_registry, auth=auth)
    return open_repository(
        reference,
        manifest_kind,
        registry_config=config,
        auth_provider=create_auth_provider(reference.registry, auth, password=password),
    )


@click.command(
    name="sign",
    help="""\b
Sign an OCI artifact and store the signature next to it.

REFERENCE is <registry>/<repository>:<tag> or <registry>/<repository>@<digest>,
or with --local-content <layout-dir>:<tag> or <layout-dir>@<digest>.
Prefer digests: tags are mutable.

Examples:
    # Sign with the default key from signingkeys.yaml
    $ ocisign sign registry.example.com/net-monitor@sha256:...

    # Sign with a named key and a one year expiry
    $ ocisign sign --key release -e 8760h registry.example.com/net-monitor:v1

    # Sign with a plugin key, COSE envelope
    $ ocisign sign --plugin kms --id arn:key/1 --signature-format cose \\
        registry.example.com/net-monitor@sha256:...

    # Sign an artifact in a local OCI layout
    $ ocisign sign --local-content ./layout@sha256:...
""",
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.argument("reference")
@click.option(
    "--signature-format",
    type=str,
    default="jws",
    show_default=True,
    metavar="[jws|cose]",
    help="Signature envelope format.",
)
@click.option("--key", "-k", type=str, default=None, help="Signing key name from signingkeys.yaml.")
@click.option("--plugin", type=str, default=None, help="Signing plugin name (requires --id).")
@click.option("--id", "key_id", type=str, default=None, help="Key id understood by --plugin.")
@click.option(
    "--expiry",
    "-e",
    type=DURATION,
    default=None,
    help="Signature validity period (e.g. 24h, 90m, 3600s, 1h30m).",
)
@click.option(
    "--plugin-config",
    multiple=True,
    metavar="KEY=VALUE",
    help="Configuration passed to the signing plugin. Repeatable.",
)
@click.option(
    "--user-metadata",
    "-m",
    multiple=True,
    metavar="KEY=VALUE",
    help="Metadata signed into the payload. Repeatable.",
)
@click.option(
    "--signature-manifest",
    type=str,
    default="image",
    show_default=True,
    help='[Experimental] Manifest type for the signature: "image" or "artifact".',
)
@click.option("--local-content", is_flag=True, default=False, help="Sign an artifact in a local OCI layout.")
@click.option("--username", "-u", type=str, default=None, envvar="OCISIGN_USERNAME", help="Registry username.")
@click.option("--password", "-p", type=str, default=None, envvar="OCISIGN_PASSWORD", help="Registry password.")
@click.option("--insecure-registry", is_flag=True, default=False, help="Use plain HTTP for the registry.")
@click.option("--debug", is_flag=True, default=False, help="Debug logging on stderr.")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Info logging on stderr.")
def sign_command(
    reference: str,
    signature_format: str,
    key: str | None,
    plugin: str | None,
    key_id: str | None,
    expiry: timedelta | None,
    plugin_config: tuple[str, ...],
    user_metadata: tuple[str, ...],
    signature_manifest: str,
    local_content: bool,
    username: str | None,
    password: str | None,
    insecure_registry: bool,
    debug: bool,
    verbose: bool,
) -> None:
    """Sign an OCI artifact."""
    configure_logging(_log_level(debug, verbose))

    options = SignOptions(
        reference=reference,
        local_content=local_content,
        signature_manifest=signature_manifest,
        signature_format=signature_format,
        expiry=expiry or timedelta(0),
        plugin_config=plugin_config,
        user_metadata=user_metadata,
    )
    auth = resolve_registry_auth(username, password)
    repository_factory = functools.partial(
        _open_repository,
        auth=auth,
        password=password,
        insecure_registry=insecure_registry,
    )
    signer_factory = functools.partial(get_signer, key_name=key, plugin=plugin, key_id=key_id)

    notifier = ConsoleNotifier()
    token = CancellationToken()
    with _cancel_on_sigterm(token):
        outcome = run_sign(
            options,
            repository_factory=repository_factory,
            signer_factory=signer_factory,
            notifier=notifier,
            cancellation=token,
        )

    if isinstance(outcome, SigningFailure):
        error_exit(outcome.message, exit_code=outcome.exit_code)
    render_outcome(outcome, notifier)


__all__: list[str] = ["sign_command"]
