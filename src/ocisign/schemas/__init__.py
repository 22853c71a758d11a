"""Pydantic schemas shared across ocisign modules."""

from __future__ import annotations

from ocisign.schemas.config import (
    AuthType,
    RegistryAuth,
    RegistryConfig,
    RetryConfig,
    SigningKey,
    SigningKeysConfig,
)
from ocisign.schemas.reference import (
    ArtifactReference,
    Descriptor,
    LocalReference,
    RemoteReference,
    ResolvedTarget,
)
from ocisign.schemas.signing import (
    EnvelopeFormat,
    SignatureEnvelope,
    SignatureManifestKind,
    SigningRequest,
    SignResult,
)

__all__ = [
    "ArtifactReference",
    "AuthType",
    "Descriptor",
    "EnvelopeFormat",
    "LocalReference",
    "RegistryAuth",
    "RegistryConfig",
    "RemoteReference",
    "ResolvedTarget",
    "RetryConfig",
    "SignResult",
    "SignatureEnvelope",
    "SignatureManifestKind",
    "SigningKey",
    "SigningKeysConfig",
    "SigningRequest",
]
