"""Local OCI image layout backend.

Directory structure of an OCI image layout:
    <layout>/
        oci-layout              {"imageLayoutVersion": "1.0.0"}
        index.json              image index listing the top-level manifests
        blobs/<alg>/<hex>       content-addressed blobs

Tags are the ``org.opencontainers.image.ref.name`` annotation on index.json
entries. Signatures are written as blobs and appended to index.json; the
subject field links them to the signed manifest.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from opentelemetry import trace
from pydantic import ValidationError

from ocisign.errors import (
    ArtifactNotFoundError,
    DigestMismatchError,
    OCISignError,
    SignaturePushError,
)
from ocisign.oci.digest import calculate_digest, digest_algorithm, digest_hex, is_digest
from ocisign.oci.manifest import EMPTY_CONFIG_DESCRIPTOR, build_signature_manifest
from ocisign.oci.media_types import ANNOTATION_REF_NAME, OCI_EMPTY_CONFIG_BYTES, OCI_IMAGE_INDEX
from ocisign.schemas.reference import Descriptor
from ocisign.schemas.signing import SignatureEnvelope, SignatureManifestKind

if TYPE_CHECKING:
    from ocisign.cancellation import CancellationToken

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

OCI_LAYOUT_FILE = "oci-layout"
INDEX_FILE = "index.json"
BLOBS_DIR = "blobs"


class LayoutRepository:
    """Repository backed by an OCI image layout directory.

    Example:
        >>> repo = LayoutRepository("./layout", SignatureManifestKind.IMAGE)
        >>> repo.resolve("v1").digest
        'sha256:...'
    """

    def __init__(self, layout_path: str | Path, manifest_kind: SignatureManifestKind) -> None:
        self.layout_path = Path(layout_path)
        self._manifest_kind = manifest_kind

    @property
    def manifest_kind(self) -> SignatureManifestKind:
        """Manifest type used when storing signatures."""
        return self._manifest_kind

    def _require_layout(self, reference: str) -> None:
        if not (self.layout_path / OCI_LAYOUT_FILE).is_file():
            raise ArtifactNotFoundError(
                reference,
                f"{self.layout_path} (not an OCI image layout: missing {OCI_LAYOUT_FILE})",
            )

    def _read_index(self) -> dict[str, Any]:
        index_path = self.layout_path / INDEX_FILE
        if not index_path.is_file():
            return {"schemaVersion": 2, "mediaType": OCI_IMAGE_INDEX, "manifests": []}
        try:
            data = json.loads(index_path.read_bytes())
        except ValueError as e:
            raise OCISignError(f"{index_path}: invalid index: {e}") from e
        if not isinstance(data, dict):
            raise OCISignError(f"{index_path}: invalid index: expected a JSON object")
        manifests = data.setdefault("manifests", [])
        if not isinstance(manifests, list) or not all(isinstance(entry, dict) for entry in manifests):
            raise OCISignError(f"{index_path}: invalid index: manifests must be a list of objects")
        return data

    def _descriptor(self, entry: dict[str, Any]) -> Descriptor:
        try:
            return Descriptor.from_oci(entry)
        except (KeyError, TypeError, ValidationError) as e:
            raise OCISignError(
                f"{self.layout_path / INDEX_FILE}: invalid index entry: {e}"
            ) from e

    def blob_path(self, digest: str) -> Path:
        """Return the path of a blob inside the layout."""
        return self.layout_path / BLOBS_DIR / digest_algorithm(digest) / digest_hex(digest)

    def resolve(
        self,
        reference: str,
        *,
        cancellation: CancellationToken | None = None,
    ) -> Descriptor:
        """Resolve a tag or digest against index.json and the blob store.

        Raises:
            ArtifactNotFoundError: If the layout holds nothing for the reference.
            DigestMismatchError: If a blob does not hash to its name.
        """
        self._require_layout(reference)
        manifests = self._read_index()["manifests"]

        with tracer.start_as_current_span("ocisign.layout.resolve") as span:
            span.set_attribute("ocisign.layout_path", str(self.layout_path))
            span.set_attribute("ocisign.reference", reference)

            if is_digest(reference):
                descriptor = self._resolve_digest(reference, manifests)
            else:
                matches = [
                    entry
                    for entry in manifests
                    if (entry.get("annotations") or {}).get(ANNOTATION_REF_NAME) == reference
                ]
                if not matches:
                    raise ArtifactNotFoundError(reference, str(self.layout_path))
                # Later entries win, as with re-tagging
                descriptor = self._descriptor(matches[-1])

        logger.debug(
            "layout_resolved",
            layout_path=str(self.layout_path),
            reference=reference,
            media_type=descriptor.media_type,
            digest=descriptor.digest,
            size=descriptor.size,
        )
        return descriptor

    def _resolve_digest(self, digest: str, manifests: list[dict[str, Any]]) -> Descriptor:
        for entry in manifests:
            if entry.get("digest") == digest:
                return self._descriptor(entry)

        path = self.blob_path(digest)
        if not path.is_file():
            raise ArtifactNotFoundError(digest, str(self.layout_path))
        content = path.read_bytes()
        actual = calculate_digest(content, digest_algorithm(digest))
        if actual != digest:
            raise DigestMismatchError(digest, actual, str(self.layout_path))

        try:
            manifest = json.loads(content)
        except ValueError as e:
            raise OCISignError(f"{path}: blob is not a manifest: {e}") from e
        media_type = manifest.get("mediaType") if isinstance(manifest, dict) else None
        if not isinstance(media_type, str) or not media_type:
            raise OCISignError(f"{path}: manifest has no mediaType")
        return Descriptor(media_type=media_type, digest=digest, size=len(content))

    def push_signature(
        self,
        envelope: SignatureEnvelope,
        subject: Descriptor,
        *,
        cancellation: CancellationToken | None = None,
    ) -> Descriptor:
        """Write the signature blobs and add its manifest to index.json.

        Raises:
            SignaturePushError: If the layout cannot be written.
        """
        envelope_descriptor = Descriptor(
            media_type=envelope.media_type,
            digest=calculate_digest(envelope.content),
            size=len(envelope.content),
        )
        manifest = build_signature_manifest(
            self._manifest_kind,
            envelope_descriptor,
            subject,
            annotations=envelope.annotations,
        )

        with tracer.start_as_current_span("ocisign.layout.push_signature") as span:
            span.set_attribute("ocisign.layout_path", str(self.layout_path))
            span.set_attribute("ocisign.subject.digest", subject.digest)
            try:
                if self._manifest_kind is SignatureManifestKind.IMAGE:
                    self._write_blob(OCI_EMPTY_CONFIG_BYTES, EMPTY_CONFIG_DESCRIPTOR.digest)
                self._write_blob(envelope.content, envelope_descriptor.digest)
                self._write_blob(manifest.content, manifest.descriptor.digest)

                index = self._read_index()
                if not any(
                    entry.get("digest") == manifest.descriptor.digest
                    for entry in index["manifests"]
                ):
                    index["manifests"].append(manifest.descriptor.to_oci())
                    self._write_index(index)
            except (OSError, OCISignError) as e:
                logger.error(
                    "layout_push_failed",
                    layout_path=str(self.layout_path),
                    error=str(e),
                )
                raise SignaturePushError(str(self.layout_path), str(e)) from e

        logger.info(
            "signature_stored",
            layout_path=str(self.layout_path),
            digest=manifest.descriptor.digest,
            subject=subject.digest,
        )
        return manifest.descriptor

    def _write_blob(self, content: bytes, digest: str) -> None:
        path = self.blob_path(digest)
        if path.is_file():
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        self._atomic_write(path, content)

    def _write_index(self, index: dict[str, Any]) -> None:
        content = json.dumps(index, indent=2).encode("utf-8")
        self._atomic_write(self.layout_path / INDEX_FILE, content)

    @staticmethod
    def _atomic_write(path: Path, content: bytes) -> None:
        """Write via a temp file in the same directory and os.replace."""
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "wb") as tmp:
                tmp.write(content)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def close(self) -> None:
        """Nothing to release for a directory."""


__all__ = ["LayoutRepository"]
