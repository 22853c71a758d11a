"""OCI media types and annotation keys.

Single source of truth for the media types used when resolving manifests and
storing signatures, plus the envelope format lookup table.
"""

from __future__ import annotations

from ocisign.errors import UnsupportedEnvelopeFormatError

# Manifest types
OCI_IMAGE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"
OCI_ARTIFACT_MANIFEST = "application/vnd.oci.artifact.manifest.v1+json"
DOCKER_MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
DOCKER_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"

MANIFEST_ACCEPT_TYPES: tuple[str, ...] = (
    OCI_IMAGE_MANIFEST,
    OCI_IMAGE_INDEX,
    OCI_ARTIFACT_MANIFEST,
    DOCKER_MANIFEST_V2,
    DOCKER_MANIFEST_LIST,
)
"""Accept header values for manifest HEAD/GET requests."""

# Empty config blob (always {})
OCI_EMPTY_CONFIG = "application/vnd.oci.empty.v1+json"
OCI_EMPTY_CONFIG_BYTES = b"{}"
OCI_EMPTY_CONFIG_DIGEST = "sha256:44136fa355b3678a1146ad16f7e8649e94fb4fc21fe77e8310c060f61caaff8a"
OCI_EMPTY_CONFIG_SIZE = 2

# Notary Project signature artifacts
SIGNATURE_ARTIFACT_TYPE = "application/vnd.cncf.notary.signature"
SIGNATURE_PAYLOAD_TYPE = "application/vnd.cncf.notary.payload.v1+json"
JWS_MEDIA_TYPE = "application/jose+json"
COSE_MEDIA_TYPE = "application/cose"

ENVELOPE_MEDIA_TYPES: dict[str, str] = {
    "jws": JWS_MEDIA_TYPE,
    "cose": COSE_MEDIA_TYPE,
}
"""Envelope format name -> media type."""

# Annotation keys
ANNOTATION_CREATED = "org.opencontainers.image.created"
ANNOTATION_REF_NAME = "org.opencontainers.image.ref.name"
ANNOTATION_THUMBPRINT = "io.cncf.notary.x509chain.thumbprint#S256"
RESERVED_ANNOTATION_PREFIX = "io.cncf.notary"


def get_envelope_media_type(envelope_format: str) -> str:
    """Return the media type for a signature envelope format.

    Args:
        envelope_format: Format name (``jws`` or ``cose``).

    Returns:
        Envelope media type.

    Raises:
        UnsupportedEnvelopeFormatError: If the format is unknown.

    Example:
        >>> get_envelope_media_type("jws")
        'application/jose+json'
    """
    media_type = ENVELOPE_MEDIA_TYPES.get(envelope_format)
    if media_type is None:
        raise UnsupportedEnvelopeFormatError(envelope_format, sorted(ENVELOPE_MEDIA_TYPES))
    return media_type


def get_envelope_format(media_type: str) -> str:
    """Return the format name for an envelope media type (reverse lookup)."""
    for name, value in ENVELOPE_MEDIA_TYPES.items():
        if value == media_type:
            return name
    raise UnsupportedEnvelopeFormatError(media_type, sorted(ENVELOPE_MEDIA_TYPES))


__all__ = [
    "ANNOTATION_CREATED",
    "ANNOTATION_REF_NAME",
    "ANNOTATION_THUMBPRINT",
    "COSE_MEDIA_TYPE",
    "DOCKER_MANIFEST_LIST",
    "DOCKER_MANIFEST_V2",
    "ENVELOPE_MEDIA_TYPES",
    "JWS_MEDIA_TYPE",
    "MANIFEST_ACCEPT_TYPES",
    "OCI_ARTIFACT_MANIFEST",
    "OCI_EMPTY_CONFIG",
    "OCI_EMPTY_CONFIG_BYTES",
    "OCI_EMPTY_CONFIG_DIGEST",
    "OCI_EMPTY_CONFIG_SIZE",
    "OCI_IMAGE_INDEX",
    "OCI_IMAGE_MANIFEST",
    "RESERVED_ANNOTATION_PREFIX",
    "SIGNATURE_ARTIFACT_TYPE",
    "SIGNATURE_PAYLOAD_TYPE",
    "get_envelope_format",
    "get_envelope_media_type",
]
