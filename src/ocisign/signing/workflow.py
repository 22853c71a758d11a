"""Sign workflow: option checks, resolve, sign, classify.

run_sign() is what the ``ocisign sign`` command calls. It never raises for
signing-workflow errors; every OCISignError ends up in a SigningFailure so
the caller has one value to render.

Stages:
    1. Validate the manifest kind and all flag values (no I/O)
    2. Select the signer (reads signingkeys.yaml)
    3. Parse the reference and open the repository
    4. Resolve, build the request, sign and push
    5. Classify the outcome; the repository is always closed
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ocisign.errors import InvalidArgumentError, OCISignError
from ocisign.oci.reference import parse_reference
from ocisign.schemas.signing import SignatureManifestKind
from ocisign.signing.orchestrator import sign
from ocisign.signing.outcome import (
    SigningFailure,
    SigningOutcome,
    SigningSuccess,
    SigningSuccessWithWarning,
    classify_outcome,
)
from ocisign.signing.request import build_signing_request, prepare_signing_inputs
from ocisign.signing.resolver import resolve_reference

if TYPE_CHECKING:
    from ocisign.cancellation import CancellationToken
    from ocisign.oci.repository import Repository
    from ocisign.schemas.reference import ArtifactReference, ResolvedTarget
    from ocisign.schemas.signing import SignResult
    from ocisign.signer.base import Signer
    from ocisign.signing.notifier import Notifier

logger = structlog.get_logger(__name__)

RepositoryFactory = Callable[["ArtifactReference", SignatureManifestKind], "Repository"]
SignerFactory = Callable[[], "Signer"]


class SignOptions(BaseModel):
    """Options of one ``sign`` invocation, as given on the command line."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    reference: str = Field(..., description="Artifact reference argument")
    local_content: bool = Field(default=False, description="Reference is an OCI layout")
    signature_manifest: str = Field(default=SignatureManifestKind.IMAGE.value)
    signature_format: str = Field(default="jws")
    expiry: timedelta = Field(default=timedelta(0))
    plugin_config: tuple[str, ...] = Field(default=())
    user_metadata: tuple[str, ...] = Field(default=())


def validate_signature_manifest(value: str) -> SignatureManifestKind:
    """Return the manifest kind for an exact, case-sensitive value.

    Raises:
        InvalidArgumentError: If value is not ``image`` or ``artifact``.
    """
    for kind in SignatureManifestKind:
        if kind.value == value:
            return kind
    supported = ", ".join(f'"{kind.value}"' for kind in SignatureManifestKind)
    raise InvalidArgumentError(
        f"signature manifest {value!r} is not supported, options: {supported}"
    )


def run_sign(
    options: SignOptions,
    *,
    repository_factory: RepositoryFactory,
    signer_factory: SignerFactory,
    notifier: Notifier,
    cancellation: CancellationToken | None = None,
) -> SigningOutcome:
    """Run the sign workflow end to end.

    Args:
        options: Command options.
        repository_factory: Opens the backend for a parsed reference.
        signer_factory: Returns the configured signer.
        notifier: Receives warnings raised along the way.
        cancellation: Optional cancellation token.

    Returns:
        The classified outcome. Never raises OCISignError.
    """
    log = logger.bind(reference=options.reference, local=options.local_content)

    try:
        manifest_kind = validate_signature_manifest(options.signature_manifest)
        inputs = prepare_signing_inputs(
            envelope_format=options.signature_format,
            expiry=options.expiry,
            plugin_config=options.plugin_config,
            user_metadata=options.user_metadata,
        )
        signer = signer_factory()
        reference = parse_reference(options.reference, local=options.local_content)
        repository = repository_factory(reference, manifest_kind)
    except OCISignError as e:
        log.debug("sign_rejected", error=str(e))
        return SigningFailure(cause=e)

    target: ResolvedTarget | None = None
    result: SignResult | None = None
    error: OCISignError | None = None
    try:
        target = resolve_reference(reference, repository, notifier, cancellation=cancellation)
        request = build_signing_request(
            str(target.reference),
            envelope_format=options.signature_format,
            expiry=inputs.expiry,
            plugin_config=inputs.plugin_config,
            user_metadata=inputs.user_metadata,
        )
        result = sign(request, target, repository, signer, cancellation=cancellation)
    except OCISignError as e:
        log.debug("sign_failed", error=str(e), error_type=type(e).__name__)
        error = e
    finally:
        repository.close()

    target_reference = str(target.reference) if target is not None else options.reference
    outcome = classify_outcome(error, manifest_kind, result, target_reference=target_reference)
    log.info("sign_completed", succeeded=outcome.succeeded, outcome=type(outcome).__name__)
    return outcome


def render_outcome(outcome: SigningOutcome, notifier: Notifier) -> None:
    """Report a successful outcome; failures are left to the caller."""
    if isinstance(outcome, SigningSuccessWithWarning):
        notifier.warn(outcome.warning)
        notifier.report(f"Successfully signed {outcome.reference}")
    elif isinstance(outcome, SigningSuccess):
        notifier.report(f"Successfully signed {outcome.reference}")


__all__ = [
    "RepositoryFactory",
    "SignOptions",
    "SignerFactory",
    "render_outcome",
    "run_sign",
    "validate_signature_manifest",
]
