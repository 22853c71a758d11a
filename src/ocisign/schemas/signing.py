"""Signing request and result schemas.

Key Components:
    SignatureManifestKind: How the signature is stored (image or artifact manifest)
    SigningRequest: Everything the signer needs, built once per invocation
    SignatureEnvelope: Envelope bytes returned by a signer
    SignResult: Descriptors produced by a successful sign + push
"""

from __future__ import annotations

from datetime import timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ocisign.schemas.reference import Descriptor


class SignatureManifestKind(str, Enum):
    """Manifest type used to store a signature next to its subject.

    IMAGE stores the envelope as the single layer of an OCI image manifest
    and works with every registry. ARTIFACT uses the OCI artifact manifest,
    which fewer registries accept.
    """

    IMAGE = "image"
    ARTIFACT = "artifact"


class EnvelopeFormat(str, Enum):
    """Signature envelope formats."""

    JWS = "jws"
    COSE = "cose"


class SigningRequest(BaseModel):
    """Input to a signer for one artifact.

    Examples:
        >>> request = SigningRequest(
        ...     artifact_reference="registry.example.com/repo@sha256:" + "a" * 64,
        ...     signature_media_type="application/jose+json",
        ... )
        >>> request.expiry
        datetime.timedelta(0)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    artifact_reference: str = Field(
        ...,
        min_length=1,
        description="Digest-pinned reference of the artifact being signed",
    )
    signature_media_type: str = Field(
        ...,
        min_length=1,
        description="Envelope media type (application/jose+json, application/cose)",
    )
    expiry: timedelta = Field(
        default=timedelta(0),
        description="Signature validity period; zero means no expiry",
    )
    plugin_config: dict[str, str] = Field(
        default_factory=dict,
        description="Key/value pairs passed through to a signing plugin",
    )
    user_metadata: dict[str, str] = Field(
        default_factory=dict,
        description="Key/value pairs signed into the payload descriptor annotations",
    )

    @property
    def has_expiry(self) -> bool:
        """Check if the signature should carry an expiry time."""
        return self.expiry > timedelta(0)


class SignatureEnvelope(BaseModel):
    """Signed envelope produced by a signer.

    Attributes:
        content: Raw envelope bytes as they will be stored.
        media_type: Envelope media type.
        annotations: Annotations to put on the signature manifest.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    content: bytes = Field(..., min_length=1)
    media_type: str = Field(..., min_length=1)
    annotations: dict[str, str] = Field(default_factory=dict)


class SignResult(BaseModel):
    """Result of a successful sign + push.

    Attributes:
        target: Descriptor of the artifact that was signed.
        signature: Descriptor of the stored signature manifest.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    target: Descriptor
    signature: Descriptor


__all__ = [
    "EnvelopeFormat",
    "SignResult",
    "SignatureEnvelope",
    "SignatureManifestKind",
    "SigningRequest",
]
