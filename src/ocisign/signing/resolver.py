"""Reference resolution.

Turns a parsed reference into a digest-pinned ResolvedTarget. When the user
gave a tag, the operator is warned once that tags are mutable.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from opentelemetry import trace

from ocisign.cancellation import check_cancelled
from ocisign.errors import (
    InvalidReferenceError,
    OCISignError,
    OperationCancelledError,
    ReferenceResolutionError,
)
from ocisign.oci.digest import is_digest
from ocisign.oci.reference import pin_reference
from ocisign.schemas.reference import ResolvedTarget

if TYPE_CHECKING:
    from ocisign.cancellation import CancellationToken
    from ocisign.oci.repository import Repository
    from ocisign.schemas.reference import ArtifactReference
    from ocisign.signing.notifier import Notifier

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

MUTABLE_TAG_WARNING = (
    "Always sign the artifact using digest(@sha256:...) rather than a tag(:{tag}) "
    "because tags are mutable and a tag reference can point to a different "
    "artifact than the one signed."
)


def resolve_reference(
    reference: ArtifactReference,
    repository: Repository,
    notifier: Notifier,
    *,
    cancellation: CancellationToken | None = None,
) -> ResolvedTarget:
    """Resolve a tag or digest to a digest-pinned target.

    Args:
        reference: Parsed remote or local reference.
        repository: Backend matching the reference.
        notifier: Receives the mutable-tag warning.
        cancellation: Optional cancellation token.

    Returns:
        ResolvedTarget whose reference carries the digest.

    Raises:
        InvalidReferenceError: If the reference has no tag or digest.
        ReferenceResolutionError: If the repository lookup fails.
        OperationCancelledError: If cancelled before the lookup.
    """
    original = reference.reference
    if not original:
        raise InvalidReferenceError(str(reference), "missing tag or digest")

    check_cancelled(cancellation, "resolve")
    log = logger.bind(reference=str(reference))

    with tracer.start_as_current_span("ocisign.resolve") as span:
        span.set_attribute("ocisign.reference", str(reference))
        try:
            descriptor = repository.resolve(original, cancellation=cancellation)
        except OperationCancelledError:
            raise
        except OCISignError as e:
            log.warning("resolve_failed", error=str(e))
            raise ReferenceResolutionError(str(reference), e) from e

        was_tag = descriptor.digest != original and not is_digest(original)
        span.set_attribute("ocisign.digest", descriptor.digest)
        span.set_attribute("ocisign.was_tag", was_tag)

    if was_tag:
        notifier.warn(MUTABLE_TAG_WARNING.format(tag=original))

    target = ResolvedTarget(
        reference=pin_reference(reference, descriptor.digest),
        descriptor=descriptor,
        was_tag=was_tag,
        original=original,
    )
    log.info("reference_resolved", digest=target.digest, was_tag=was_tag)
    return target


__all__ = ["MUTABLE_TAG_WARNING", "resolve_reference"]
