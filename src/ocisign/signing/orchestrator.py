"""Signing orchestration.

One call signs one resolved artifact:

    1. Re-resolve the target by digest in the repository
    2. Ask the signer for an envelope over the payload descriptor
    3. Stamp the creation time and push the envelope as a referrer

The orchestrator does not know which backend it talks to. Remote registries
and local layouts go through the same Repository protocol.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from opentelemetry import trace

from ocisign.cancellation import check_cancelled
from ocisign.errors import (
    DigestMismatchError,
    OCISignError,
    OperationCancelledError,
    ReferenceResolutionError,
    SignaturePushError,
    SigningFailedError,
)
from ocisign.oci.media_types import ANNOTATION_CREATED
from ocisign.schemas.reference import Descriptor
from ocisign.schemas.signing import SignResult

if TYPE_CHECKING:
    from ocisign.cancellation import CancellationToken
    from ocisign.oci.repository import Repository
    from ocisign.schemas.reference import ResolvedTarget
    from ocisign.schemas.signing import SigningRequest
    from ocisign.signer.base import Signer

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


def _created_timestamp() -> str:
    """Return the current UTC time as RFC 3339 with second precision."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def sign(
    request: SigningRequest,
    target: ResolvedTarget,
    repository: Repository,
    signer: Signer,
    *,
    cancellation: CancellationToken | None = None,
) -> SignResult:
    """Sign a resolved artifact and store the signature next to it.

    Args:
        request: Signing request built for the target.
        target: Digest-pinned target from the resolver.
        repository: Backend holding the target.
        signer: Produces the signature envelope.
        cancellation: Optional cancellation token, checked before the
            resolve, the signer call and the push.

    Returns:
        SignResult with the target and signature manifest descriptors.

    Raises:
        ReferenceResolutionError: If the digest no longer resolves.
        SigningFailedError: If the signer fails.
        SignaturePushError: If the signature cannot be stored.
        OperationCancelledError: If cancelled at a stage boundary.
    """
    log = logger.bind(
        reference=request.artifact_reference,
        manifest_kind=repository.manifest_kind.value,
        media_type=request.signature_media_type,
    )

    with tracer.start_as_current_span("ocisign.sign") as span:
        span.set_attribute("ocisign.reference", request.artifact_reference)
        span.set_attribute("ocisign.manifest_kind", repository.manifest_kind.value)
        span.set_attribute("ocisign.envelope.media_type", request.signature_media_type)

        check_cancelled(cancellation, "resolve")
        try:
            subject = repository.resolve(target.digest, cancellation=cancellation)
        except OperationCancelledError:
            raise
        except OCISignError as e:
            raise ReferenceResolutionError(request.artifact_reference, e) from e
        if subject.digest != target.digest:
            raise ReferenceResolutionError(
                request.artifact_reference,
                DigestMismatchError(target.digest, subject.digest, request.artifact_reference),
            )
        log.debug("target_descriptor_resolved", digest=subject.digest, size=subject.size)

        payload = Descriptor(
            media_type=subject.media_type,
            digest=subject.digest,
            size=subject.size,
            artifact_type=subject.artifact_type,
            annotations=dict(request.user_metadata),
        )

        check_cancelled(cancellation, "sign")
        try:
            envelope = signer.sign(payload, request)
        except OCISignError:
            raise
        except Exception as e:
            log.error("signer_failed", error=str(e))
            raise SigningFailedError(str(e)) from e
        log.info("signature_generated", size=len(envelope.content))

        envelope = envelope.model_copy(
            update={"annotations": {**envelope.annotations, ANNOTATION_CREATED: _created_timestamp()}}
        )

        check_cancelled(cancellation, "push")
        with tracer.start_as_current_span("ocisign.push_signature") as push_span:
            push_span.set_attribute("ocisign.subject.digest", subject.digest)
            try:
                signature = repository.push_signature(envelope, subject, cancellation=cancellation)
            except (SignaturePushError, OperationCancelledError):
                raise
            except Exception as e:
                raise SignaturePushError(request.artifact_reference, str(e)) from e
            push_span.set_attribute("ocisign.signature.digest", signature.digest)

    log.info("signature_pushed", signature_digest=signature.digest)
    return SignResult(target=subject, signature=signature)


__all__ = ["sign"]
