"""Signature manifest and referrers index builders.

Key Functions:
    build_signature_manifest: Manifest that stores an envelope next to its subject
    build_referrers_index: Image index listing the referrers of a subject
    referrers_tag: Tag under which a registry without the referrers API keeps that index

Manifests are serialized as compact JSON with sorted keys so the same inputs
always hash to the same digest.

Example:
    >>> manifest = build_signature_manifest(
    ...     SignatureManifestKind.IMAGE, envelope_descriptor, subject, annotations={}
    ... )
    >>> manifest.descriptor.media_type
    'application/vnd.oci.image.manifest.v1+json'
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import structlog

from ocisign.oci.digest import calculate_digest, digest_algorithm, digest_hex
from ocisign.oci.media_types import (
    OCI_ARTIFACT_MANIFEST,
    OCI_EMPTY_CONFIG,
    OCI_EMPTY_CONFIG_DIGEST,
    OCI_EMPTY_CONFIG_SIZE,
    OCI_IMAGE_INDEX,
    OCI_IMAGE_MANIFEST,
    SIGNATURE_ARTIFACT_TYPE,
)
from ocisign.schemas.reference import Descriptor
from ocisign.schemas.signing import SignatureManifestKind

logger = structlog.get_logger(__name__)

EMPTY_CONFIG_DESCRIPTOR = Descriptor(
    media_type=OCI_EMPTY_CONFIG,
    digest=OCI_EMPTY_CONFIG_DIGEST,
    size=OCI_EMPTY_CONFIG_SIZE,
)

_MAX_REFERRERS_TAG_LENGTH = 128


@dataclass(frozen=True)
class EncodedManifest:
    """Serialized manifest and the descriptor that addresses it."""

    content: bytes
    descriptor: Descriptor


def canonical_json(data: dict[str, Any]) -> bytes:
    """Serialize a JSON document deterministically."""
    return json.dumps(data, sort_keys=True, separators=(",", ":")).encode("utf-8")


def encode_manifest(
    data: dict[str, Any],
    media_type: str,
    *,
    artifact_type: str | None = None,
    annotations: dict[str, str] | None = None,
) -> EncodedManifest:
    """Serialize a manifest document and build its descriptor."""
    content = canonical_json(data)
    descriptor = Descriptor(
        media_type=media_type,
        digest=calculate_digest(content),
        size=len(content),
        artifact_type=artifact_type,
        annotations=annotations or {},
    )
    return EncodedManifest(content=content, descriptor=descriptor)


def build_signature_manifest(
    kind: SignatureManifestKind,
    envelope: Descriptor,
    subject: Descriptor,
    *,
    annotations: dict[str, str],
) -> EncodedManifest:
    """Build the manifest that stores a signature envelope.

    Args:
        kind: IMAGE (OCI image manifest, empty config, envelope as the only
            layer) or ARTIFACT (OCI artifact manifest, envelope as a blob).
        envelope: Descriptor of the envelope blob.
        subject: Descriptor of the signed artifact.
        annotations: Manifest annotations.

    Returns:
        EncodedManifest whose descriptor carries artifactType and annotations,
        ready to be listed in a referrers index.
    """
    subject_data = Descriptor(
        media_type=subject.media_type,
        digest=subject.digest,
        size=subject.size,
    ).to_oci()

    data: dict[str, Any]
    if kind is SignatureManifestKind.IMAGE:
        media_type = OCI_IMAGE_MANIFEST
        data = {
            "schemaVersion": 2,
            "mediaType": media_type,
            "artifactType": SIGNATURE_ARTIFACT_TYPE,
            "config": EMPTY_CONFIG_DESCRIPTOR.to_oci(),
            "layers": [envelope.to_oci()],
            "subject": subject_data,
        }
    else:
        media_type = OCI_ARTIFACT_MANIFEST
        data = {
            "mediaType": media_type,
            "artifactType": SIGNATURE_ARTIFACT_TYPE,
            "blobs": [envelope.to_oci()],
            "subject": subject_data,
        }
    if annotations:
        data["annotations"] = dict(annotations)

    manifest = encode_manifest(
        data,
        media_type,
        artifact_type=SIGNATURE_ARTIFACT_TYPE,
        annotations=annotations,
    )
    logger.debug(
        "signature_manifest_built",
        kind=kind.value,
        digest=manifest.descriptor.digest,
        subject=subject.digest,
    )
    return manifest


def referrers_tag(subject_digest: str) -> str:
    """Return the fallback tag holding the referrers index of a subject.

    Example:
        >>> referrers_tag("sha256:" + "a" * 64)[:10]
        'sha256-aaa'
    """
    tag = f"{digest_algorithm(subject_digest)}-{digest_hex(subject_digest)}"
    return tag[:_MAX_REFERRERS_TAG_LENGTH]


def parse_referrers_index(content: bytes) -> list[Descriptor]:
    """Parse the manifests listed in a referrers index."""
    data = json.loads(content)
    return [Descriptor.from_oci(entry) for entry in data.get("manifests") or []]


def build_referrers_index(referrers: list[Descriptor]) -> EncodedManifest:
    """Build an image index listing referrer manifests."""
    data = {
        "schemaVersion": 2,
        "mediaType": OCI_IMAGE_INDEX,
        "manifests": [referrer.to_oci() for referrer in referrers],
    }
    return encode_manifest(data, OCI_IMAGE_INDEX)


__all__ = [
    "EMPTY_CONFIG_DESCRIPTOR",
    "EncodedManifest",
    "build_referrers_index",
    "build_signature_manifest",
    "canonical_json",
    "encode_manifest",
    "parse_referrers_index",
    "referrers_tag",
]
