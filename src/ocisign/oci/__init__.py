"""OCI storage layer for signatures.

Key Components:
- Reference parsing: parse_reference, parse_remote_reference, parse_layout_reference
- Repository: protocol the signing workflow talks to
- RegistryRepository: remote registry backend (ORAS SDK)
- LayoutRepository: local OCI image layout backend
- Signature manifest and referrers index builders
- RetryPolicy: exponential backoff for transient registry failures

Example:
    >>> from ocisign.oci import open_repository, parse_reference
    >>> ref = parse_reference("registry.example.com/net-monitor:v1", local=False)
    >>> repo = open_repository(ref, SignatureManifestKind.IMAGE)
    >>> repo.resolve(ref.reference).digest
    'sha256:...'
"""

from __future__ import annotations

from ocisign.oci.auth import (
    AnonymousAuthProvider,
    AuthProvider,
    BasicAuthProvider,
    Credentials,
    TokenAuthProvider,
    create_auth_provider,
    resolve_registry_auth,
)
from ocisign.oci.digest import calculate_digest, is_digest, validate_digest
from ocisign.oci.layout import LayoutRepository
from ocisign.oci.manifest import (
    build_referrers_index,
    build_signature_manifest,
    referrers_tag,
)
from ocisign.oci.media_types import get_envelope_media_type
from ocisign.oci.reference import (
    parse_layout_reference,
    parse_reference,
    parse_remote_reference,
    pin_reference,
)
from ocisign.oci.registry import RegistryRepository
from ocisign.oci.repository import Repository, open_repository
from ocisign.oci.resilience import RetryPolicy

__all__: list[str] = [
    # Auth
    "AnonymousAuthProvider",
    "AuthProvider",
    "BasicAuthProvider",
    "Credentials",
    "TokenAuthProvider",
    "create_auth_provider",
    "resolve_registry_auth",
    # Digests
    "calculate_digest",
    "is_digest",
    "validate_digest",
    # References
    "parse_layout_reference",
    "parse_reference",
    "parse_remote_reference",
    "pin_reference",
    # Repositories
    "LayoutRepository",
    "RegistryRepository",
    "Repository",
    "open_repository",
    # Manifests
    "build_referrers_index",
    "build_signature_manifest",
    "get_envelope_media_type",
    "referrers_tag",
    # Resilience
    "RetryPolicy",
]
