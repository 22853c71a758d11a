"""Outcome classification.

classify_outcome() is the only place that decides whether a push error is
fatal. A registry that cannot delete the superseded referrers index has still
stored the signature, so that case is a success with a warning for image
manifests. Everything else propagates unchanged.

Decision table:
    no error                                   -> SigningSuccess
    SignaturePushError, artifact manifest      -> SigningFailure + guidance
    ReferrersIndexCleanupError, image manifest -> SigningSuccessWithWarning
    push error text with the cleanup marker    -> SigningSuccessWithWarning
    anything else                              -> SigningFailure
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

import structlog

from ocisign.errors import (
    REFERRERS_INDEX_CLEANUP_MARKER,
    ReferrersIndexCleanupError,
    SignaturePushError,
)
from ocisign.schemas.signing import SignatureManifestKind

if TYPE_CHECKING:
    from ocisign.schemas.reference import Descriptor
    from ocisign.schemas.signing import SignResult

logger = structlog.get_logger(__name__)

STALE_REFERRERS_INDEX_WARNING = (
    "Removal of outdated referrers index is not supported by the remote registry. "
    "Garbage collection may be required."
)

ARTIFACT_MANIFEST_GUIDANCE = (
    "Possible reason: target registry does not support OCI artifact manifest. "
    "Try removing the flag `--signature-manifest artifact` to store signatures "
    "using OCI image manifest"
)


@dataclass(frozen=True)
class SigningSuccess:
    """Signature generated and stored."""

    reference: str
    signature_descriptor: Descriptor | None = None

    @property
    def succeeded(self) -> bool:
        return True


@dataclass(frozen=True)
class SigningSuccessWithWarning:
    """Signature stored; a best-effort cleanup step failed."""

    reference: str
    warning: str
    signature_descriptor: Descriptor | None = None

    @property
    def succeeded(self) -> bool:
        return True


@dataclass(frozen=True)
class SigningFailure:
    """Signing failed.

    Attributes:
        cause: The error that ended the workflow.
        guidance: Optional hint appended to the error message.
    """

    cause: Exception
    guidance: str | None = None

    @property
    def succeeded(self) -> bool:
        return False

    @property
    def message(self) -> str:
        """Error text shown to the operator."""
        if self.guidance:
            return f"{self.cause}. {self.guidance}"
        return str(self.cause)

    @property
    def exit_code(self) -> int:
        """CLI exit code taken from the cause."""
        return int(getattr(self.cause, "exit_code", 1))


SigningOutcome = Union[SigningSuccess, SigningSuccessWithWarning, SigningFailure]


def classify_outcome(
    error: Exception | None,
    manifest_kind: SignatureManifestKind,
    result: SignResult | None = None,
    *,
    target_reference: str,
) -> SigningOutcome:
    """Map the orchestrator's result or error to a SigningOutcome.

    Args:
        error: Error raised by the workflow, or None on success.
        manifest_kind: Manifest type the signature was stored as.
        result: SignResult when the orchestrator returned normally.
        target_reference: Digest-pinned reference reported on success.

    Returns:
        SigningSuccess, SigningSuccessWithWarning or SigningFailure.
    """
    if error is None:
        return SigningSuccess(
            reference=target_reference,
            signature_descriptor=result.signature if result is not None else None,
        )

    if isinstance(error, SignaturePushError):
        if manifest_kind is SignatureManifestKind.ARTIFACT:
            logger.debug("artifact_manifest_push_failed", error=str(error))
            return SigningFailure(cause=error, guidance=ARTIFACT_MANIFEST_GUIDANCE)

        if isinstance(error, ReferrersIndexCleanupError):
            logger.info(
                "stale_referrers_index_kept",
                stale_digest=error.stale_index_digest,
                signature_digest=error.signature.digest,
            )
            return SigningSuccessWithWarning(
                reference=target_reference,
                warning=STALE_REFERRERS_INDEX_WARNING,
                signature_descriptor=error.signature,
            )

        # Untyped errors from other backends only carry the marker text
        if REFERRERS_INDEX_CLEANUP_MARKER in str(error):
            logger.info("stale_referrers_index_kept", error=str(error))
            return SigningSuccessWithWarning(
                reference=target_reference,
                warning=STALE_REFERRERS_INDEX_WARNING,
            )

    return SigningFailure(cause=error)


__all__ = [
    "ARTIFACT_MANIFEST_GUIDANCE",
    "STALE_REFERRERS_INDEX_WARNING",
    "SigningFailure",
    "SigningOutcome",
    "SigningSuccess",
    "SigningSuccessWithWarning",
    "classify_outcome",
]
