"""Reference and descriptor schemas.

Pydantic v2 models for the values that flow through the signing pipeline:

    RemoteReference / LocalReference: parsed user input
    Descriptor: OCI content descriptor returned by repositories
    ResolvedTarget: digest-pinned reference produced by the resolver

All models are frozen; a pipeline stage never mutates what an earlier stage
produced.
"""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

DIGEST_PATTERN = r"^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[a-zA-Z0-9=_-]+$"
"""Shape of a content digest (algorithm:encoded). Algorithm and length checks
live in ocisign.oci.digest."""


class RemoteReference(BaseModel):
    """Artifact reference in a remote OCI registry.

    Examples:
        >>> ref = RemoteReference(
        ...     registry="registry.example.com", repository="repo", reference="v1"
        ... )
        >>> str(ref)
        'registry.example.com/repo:v1'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    registry: str = Field(..., min_length=1, description="Registry host[:port]")
    repository: str = Field(..., min_length=1, description="Repository path")
    reference: str = Field(default="", description="Tag or digest (may be empty)")

    @property
    def is_local(self) -> bool:
        """Remote references are never local."""
        return False

    @property
    def location(self) -> str:
        """Return registry/repository without tag or digest."""
        return f"{self.registry}/{self.repository}"

    def with_reference(self, reference: str) -> RemoteReference:
        """Return a copy pointing at another tag or digest."""
        return self.model_copy(update={"reference": reference})

    def __str__(self) -> str:
        if not self.reference:
            return self.location
        if ":" in self.reference:
            return f"{self.location}@{self.reference}"
        return f"{self.location}:{self.reference}"


class LocalReference(BaseModel):
    """Artifact reference inside a local OCI image layout directory.

    Examples:
        >>> ref = LocalReference(layout_path="/tmp/layout", reference="v1")
        >>> str(ref)
        '/tmp/layout:v1'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    layout_path: str = Field(..., min_length=1, description="OCI layout directory")
    reference: str = Field(..., min_length=1, description="Tag or digest")

    @property
    def is_local(self) -> bool:
        """Layout references are always local."""
        return True

    @property
    def location(self) -> str:
        """Return the layout directory."""
        return self.layout_path

    def with_reference(self, reference: str) -> LocalReference:
        """Return a copy pointing at another tag or digest."""
        return self.model_copy(update={"reference": reference})

    def __str__(self) -> str:
        if ":" in self.reference:
            return f"{self.layout_path}@{self.reference}"
        return f"{self.layout_path}:{self.reference}"


ArtifactReference = Union[RemoteReference, LocalReference]


class Descriptor(BaseModel):
    """OCI content descriptor.

    Field aliases match the OCI JSON names, so ``model_dump(by_alias=True)``
    yields a descriptor ready to embed in a manifest or index.

    Examples:
        >>> desc = Descriptor(
        ...     media_type="application/vnd.oci.image.manifest.v1+json",
        ...     digest="sha256:" + "a" * 64,
        ...     size=512,
        ... )
        >>> desc.to_oci()["mediaType"]
        'application/vnd.oci.image.manifest.v1+json'
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    media_type: str = Field(..., min_length=1, alias="mediaType")
    digest: str = Field(..., pattern=DIGEST_PATTERN)
    size: int = Field(..., ge=0)
    artifact_type: str | None = Field(default=None, alias="artifactType")
    annotations: dict[str, str] = Field(default_factory=dict)

    def to_oci(self) -> dict[str, Any]:
        """Serialize to the OCI descriptor JSON shape, dropping empty fields."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        if not data.get("annotations"):
            data.pop("annotations", None)
        return data

    @classmethod
    def from_oci(cls, data: dict[str, Any]) -> Descriptor:
        """Build a Descriptor from OCI JSON, ignoring fields we do not model."""
        return cls(
            media_type=data["mediaType"],
            digest=data["digest"],
            size=data["size"],
            artifact_type=data.get("artifactType"),
            annotations=data.get("annotations") or {},
        )


class ResolvedTarget(BaseModel):
    """Digest-pinned artifact produced by the reference resolver.

    Attributes:
        reference: Original reference with its tag replaced by the digest.
        descriptor: Manifest descriptor reported by the repository.
        was_tag: True when the user supplied a tag rather than a digest.
        original: The tag or digest exactly as the user supplied it.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    reference: ArtifactReference
    descriptor: Descriptor
    was_tag: bool
    original: str

    @property
    def digest(self) -> str:
        """Return the resolved manifest digest."""
        return self.descriptor.digest


__all__ = [
    "DIGEST_PATTERN",
    "ArtifactReference",
    "Descriptor",
    "LocalReference",
    "RemoteReference",
    "ResolvedTarget",
]
