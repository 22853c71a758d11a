"""Repository capability used by the signing workflow.

The workflow only sees the Repository protocol. Two implementations exist:

- RegistryRepository (ocisign.oci.registry): remote registry over HTTP via ORAS
- LayoutRepository (ocisign.oci.layout): local OCI image layout directory

The backend is picked once, at the command boundary, by open_repository().
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ocisign.cancellation import CancellationToken
    from ocisign.oci.auth import AuthProvider
    from ocisign.schemas.config import RegistryConfig
    from ocisign.schemas.reference import ArtifactReference, Descriptor
    from ocisign.schemas.signing import SignatureEnvelope, SignatureManifestKind


@runtime_checkable
class Repository(Protocol):
    """Storage for artifacts and their signatures.

    Example:
        >>> class InMemoryRepository:
        ...     manifest_kind = SignatureManifestKind.IMAGE
        ...     def resolve(self, reference, *, cancellation=None): ...
        ...     def push_signature(self, envelope, subject, *, cancellation=None): ...
        ...     def close(self): ...
    """

    @property
    def manifest_kind(self) -> SignatureManifestKind:
        """Manifest type used when storing signatures."""
        ...

    def resolve(
        self,
        reference: str,
        *,
        cancellation: CancellationToken | None = None,
    ) -> Descriptor:
        """Resolve a tag or digest to a manifest descriptor.

        Args:
            reference: Tag or digest.
            cancellation: Optional cancellation token.

        Returns:
            Descriptor of the manifest.

        Raises:
            ArtifactNotFoundError: If nothing matches.
            DigestMismatchError: If content does not match a requested digest.
        """
        ...

    def push_signature(
        self,
        envelope: SignatureEnvelope,
        subject: Descriptor,
        *,
        cancellation: CancellationToken | None = None,
    ) -> Descriptor:
        """Store a signature envelope as a referrer of ``subject``.

        Returns:
            Descriptor of the stored signature manifest.

        Raises:
            SignaturePushError: If the signature could not be stored.
            ReferrersIndexCleanupError: If it was stored but the superseded
                referrers index could not be removed.
        """
        ...

    def close(self) -> None:
        """Release network sessions or file handles."""
        ...


def open_repository(
    reference: ArtifactReference,
    manifest_kind: SignatureManifestKind,
    *,
    registry_config: RegistryConfig | None = None,
    auth_provider: AuthProvider | None = None,
) -> Repository:
    """Create the backend matching a parsed reference.

    Args:
        reference: Parsed remote or local reference.
        manifest_kind: Manifest type for stored signatures.
        registry_config: Connection settings for remote references.
            Defaults to HTTPS with anonymous access.
        auth_provider: Credentials for remote references. Built from
            registry_config.auth when None.

    Returns:
        RegistryRepository or LayoutRepository.
    """
    from ocisign.schemas.config import RegistryConfig
    from ocisign.schemas.reference import LocalReference

    if isinstance(reference, LocalReference):
        from ocisign.oci.layout import LayoutRepository

        return LayoutRepository(reference.layout_path, manifest_kind)

    from ocisign.oci.registry import RegistryRepository

    config = registry_config or RegistryConfig(host=reference.registry)
    return RegistryRepository(
        reference.registry,
        reference.repository,
        manifest_kind,
        config=config,
        auth_provider=auth_provider,
    )


__all__ = ["Repository", "open_repository"]
