"""Unit test fixtures shared by every ocisign module.

Key Fixtures:
- manifest_descriptor: Descriptor of a small image manifest
- fake_repository: In-memory Repository with tag and digest lookup
- fake_signer: Signer returning a fixed envelope
- make_repository, make_signer: factories for custom fakes
- notifier: RecordingNotifier collecting operator messages
- oci_layout: OCI image layout on disk with one manifest tagged ``v1``
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from ocisign.errors import ArtifactNotFoundError, DigestMismatchError
from ocisign.oci.digest import calculate_digest, digest_hex, is_digest
from ocisign.oci.media_types import (
    ANNOTATION_REF_NAME,
    OCI_EMPTY_CONFIG,
    OCI_EMPTY_CONFIG_DIGEST,
    OCI_IMAGE_INDEX,
    OCI_IMAGE_MANIFEST,
)
from ocisign.schemas.reference import Descriptor
from ocisign.schemas.signing import (
    SignatureEnvelope,
    SignatureManifestKind,
    SigningRequest,
)
from ocisign.signing.notifier import RecordingNotifier

MANIFEST_CONTENT = json.dumps(
    {
        "schemaVersion": 2,
        "mediaType": OCI_IMAGE_MANIFEST,
        "config": {"mediaType": OCI_EMPTY_CONFIG, "digest": OCI_EMPTY_CONFIG_DIGEST, "size": 2},
        "layers": [],
    },
    sort_keys=True,
).encode("utf-8")


class FakeRepository:
    """In-memory Repository.

    Attributes:
        tags: tag -> digest.
        manifests: digest -> descriptor.
        resolve_calls: Every reference passed to resolve().
        pushed: (envelope, subject) for every push_signature() call.
        push_error: Raised by push_signature() when set.
        closed: True once close() was called.
    """

    def __init__(
        self,
        manifest_kind: SignatureManifestKind = SignatureManifestKind.IMAGE,
    ) -> None:
        self._manifest_kind = manifest_kind
        self.tags: dict[str, str] = {}
        self.manifests: dict[str, Descriptor] = {}
        self.resolve_calls: list[str] = []
        self.pushed: list[tuple[SignatureEnvelope, Descriptor]] = []
        self.push_error: Exception | None = None
        self.resolve_error: Exception | None = None
        self.closed = False

    @property
    def manifest_kind(self) -> SignatureManifestKind:
        return self._manifest_kind

    def add(self, descriptor: Descriptor, *tags: str) -> None:
        self.manifests[descriptor.digest] = descriptor
        for tag in tags:
            self.tags[tag] = descriptor.digest

    def resolve(self, reference: str, *, cancellation: Any = None) -> Descriptor:
        self.resolve_calls.append(reference)
        if self.resolve_error is not None:
            raise self.resolve_error
        digest = reference if is_digest(reference) else self.tags.get(reference)
        if digest is None or digest not in self.manifests:
            raise ArtifactNotFoundError(reference, "fake")
        descriptor = self.manifests[digest]
        if descriptor.digest != digest:
            raise DigestMismatchError(digest, descriptor.digest, "fake")
        return descriptor

    def push_signature(
        self,
        envelope: SignatureEnvelope,
        subject: Descriptor,
        *,
        cancellation: Any = None,
    ) -> Descriptor:
        self.pushed.append((envelope, subject))
        if self.push_error is not None:
            raise self.push_error
        return Descriptor(
            media_type=OCI_IMAGE_MANIFEST,
            digest=calculate_digest(envelope.content + subject.digest.encode()),
            size=len(envelope.content),
        )

    def close(self) -> None:
        self.closed = True


class FakeSigner:
    """Signer returning a fixed envelope and recording its inputs."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[Descriptor, SigningRequest]] = []

    def sign(self, descriptor: Descriptor, request: SigningRequest) -> SignatureEnvelope:
        self.calls.append((descriptor, request))
        if self.error is not None:
            raise self.error
        return SignatureEnvelope(
            content=b'{"signature":"fake"}',
            media_type=request.signature_media_type,
            annotations={"io.cncf.notary.x509chain.thumbprint#S256": '["abc"]'},
        )


@pytest.fixture
def manifest_descriptor() -> Descriptor:
    """Descriptor of MANIFEST_CONTENT."""
    return Descriptor(
        media_type=OCI_IMAGE_MANIFEST,
        digest=calculate_digest(MANIFEST_CONTENT),
        size=len(MANIFEST_CONTENT),
    )


@pytest.fixture
def fake_repository(manifest_descriptor: Descriptor) -> FakeRepository:
    """FakeRepository holding manifest_descriptor, tagged ``v1``."""
    repository = FakeRepository()
    repository.add(manifest_descriptor, "v1")
    return repository


@pytest.fixture
def fake_signer() -> FakeSigner:
    """Signer that always succeeds."""
    return FakeSigner()


@pytest.fixture
def notifier() -> RecordingNotifier:
    """Notifier recording warnings and reports."""
    return RecordingNotifier()


def write_layout(path: Path, manifests: list[tuple[bytes, str | None]]) -> list[Descriptor]:
    """Create an OCI image layout holding the given manifests.

    Args:
        path: Layout directory (created).
        manifests: (manifest bytes, optional tag) pairs.

    Returns:
        Descriptors in index order.
    """
    blobs = path / "blobs" / "sha256"
    blobs.mkdir(parents=True, exist_ok=True)
    (path / "oci-layout").write_text('{"imageLayoutVersion": "1.0.0"}')

    descriptors: list[Descriptor] = []
    entries: list[dict[str, Any]] = []
    for content, tag in manifests:
        digest = calculate_digest(content)
        (blobs / digest_hex(digest)).write_bytes(content)
        annotations = {ANNOTATION_REF_NAME: tag} if tag else {}
        descriptor = Descriptor(
            media_type=OCI_IMAGE_MANIFEST,
            digest=digest,
            size=len(content),
            annotations=annotations,
        )
        descriptors.append(descriptor)
        entries.append(descriptor.to_oci())

    index = {"schemaVersion": 2, "mediaType": OCI_IMAGE_INDEX, "manifests": entries}
    (path / "index.json").write_text(json.dumps(index))
    return descriptors


@pytest.fixture
def oci_layout(tmp_path: Path) -> tuple[Path, Descriptor]:
    """OCI layout with MANIFEST_CONTENT tagged ``v1``."""
    layout = tmp_path / "layout"
    (descriptor,) = write_layout(layout, [(MANIFEST_CONTENT, "v1")])
    return layout, descriptor


@pytest.fixture
def make_repository(manifest_descriptor: Descriptor) -> Any:
    """Factory for FakeRepository instances holding manifest_descriptor as ``v1``."""

    def _make(
        manifest_kind: SignatureManifestKind = SignatureManifestKind.IMAGE,
    ) -> FakeRepository:
        repository = FakeRepository(manifest_kind)
        repository.add(manifest_descriptor, "v1")
        return repository

    return _make


@pytest.fixture
def make_signer() -> Any:
    """Factory for FakeSigner instances."""
    return FakeSigner


@pytest.fixture
def layout_builder() -> Any:
    """write_layout() for tests that need several manifests or tags."""
    return write_layout
