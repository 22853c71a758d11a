"""Artifact reference parsing.

Turns the raw reference argument into a RemoteReference or LocalReference.
Parsing is pure: no network or file system access happens here.

Remote form:
    <registry>[:port]/<repository>[:<tag>|@<digest>]

Local (OCI layout) form:
    <layout-directory>[:<tag>|@<digest>]

Example:
    >>> parse_remote_reference("localhost:5000/net-monitor:v1")
    RemoteReference(registry='localhost:5000', repository='net-monitor', reference='v1')
    >>> parse_layout_reference("/tmp/layout:v1").layout_path
    '/tmp/layout'
"""

from __future__ import annotations

import os
import re

from ocisign.errors import InvalidDigestError, InvalidReferenceError
from ocisign.oci.digest import validate_digest
from ocisign.schemas.reference import ArtifactReference, LocalReference, RemoteReference

_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
REGISTRY_RE = re.compile(
    rf"^(?:{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*|\[[a-fA-F0-9:]+\])(?::[0-9]+)?$"
)

_PATH_COMPONENT = r"[a-z0-9]+(?:(?:[._]|__|[-]*)[a-z0-9]+)*"
REPOSITORY_RE = re.compile(rf"^{_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*$")

TAG_RE = re.compile(r"^[\w][\w.-]{0,127}$")

_WINDOWS_DRIVE_RE = re.compile(r"^[A-Za-z]:[\\/]")


def parse_remote_reference(raw: str) -> RemoteReference:
    """Parse a registry reference.

    A ``repo:tag@digest`` reference keeps only the digest. The tag/digest part
    may be missing; the resolver rejects that case.

    Args:
        raw: Reference such as ``registry.example.com/repo@sha256:...``.

    Returns:
        Parsed RemoteReference.

    Raises:
        InvalidReferenceError: If host, repository, tag or digest is malformed.
    """
    registry, sep, path = raw.partition("/")
    if not sep or not path:
        raise InvalidReferenceError(raw, "missing repository")
    if not registry:
        raise InvalidReferenceError(raw, "missing registry")

    reference = ""
    if "@" in path:
        repository, _, reference = path.partition("@")
        # tag@digest: the digest wins
        repository = repository.split(":", 1)[0]
        try:
            validate_digest(reference)
        except InvalidDigestError as e:
            raise InvalidReferenceError(raw, e.reason) from e
    elif ":" in path:
        repository, _, reference = path.partition(":")
        if not TAG_RE.match(reference):
            raise InvalidReferenceError(raw, f"invalid tag {reference!r}")
    else:
        repository = path

    if not REGISTRY_RE.match(registry):
        raise InvalidReferenceError(raw, f"invalid registry {registry!r}")
    if not REPOSITORY_RE.match(repository):
        raise InvalidReferenceError(raw, f"invalid repository {repository!r}")

    return RemoteReference(registry=registry, repository=repository, reference=reference)


def _has_path_separator(value: str) -> bool:
    """Check for a path separator of the current platform."""
    if "/" in value:
        return True
    return os.sep != "/" and os.sep in value


def parse_layout_reference(raw: str) -> LocalReference:
    """Parse an OCI layout reference.

    A digest follows the last ``@``. Otherwise the tag follows the last ``:``,
    which only counts as a delimiter when nothing after it looks like a path,
    so a ``:`` inside the directory name is never mistaken for the tag
    delimiter. A Windows drive letter is never a delimiter either.

    Args:
        raw: Reference such as ``/var/oci/layout@sha256:...``.

    Returns:
        Parsed LocalReference.

    Raises:
        InvalidReferenceError: If the path or the tag/digest is missing.
    """
    if "@" in raw:
        path, _, reference = raw.rpartition("@")
        if reference:
            try:
                validate_digest(reference)
            except InvalidDigestError as e:
                raise InvalidReferenceError(raw, e.reason) from e
    else:
        index = raw.rfind(":")
        is_drive = index == 1 and _WINDOWS_DRIVE_RE.match(raw) is not None
        if index == -1 or is_drive or _has_path_separator(raw[index + 1 :]):
            raise InvalidReferenceError(raw, "missing tag or digest")
        path, reference = raw[:index], raw[index + 1 :]

    if not path:
        raise InvalidReferenceError(raw, "missing layout path")
    if not reference:
        raise InvalidReferenceError(raw, "missing tag or digest")

    return LocalReference(layout_path=path, reference=reference)


def parse_reference(raw: str, *, local: bool) -> ArtifactReference:
    """Parse a reference in remote or local-layout mode.

    Args:
        raw: Raw reference argument.
        local: True for ``--local-content`` (OCI layout directory).

    Returns:
        RemoteReference or LocalReference.
    """
    if not raw:
        raise InvalidReferenceError(raw, "missing reference")
    if local:
        return parse_layout_reference(raw)
    return parse_remote_reference(raw)


def pin_reference(reference: ArtifactReference, digest: str) -> ArtifactReference:
    """Return the reference with its tag or digest replaced by ``digest``."""
    validate_digest(digest)
    return reference.with_reference(digest)


__all__ = [
    "parse_layout_reference",
    "parse_reference",
    "parse_remote_reference",
    "pin_reference",
]
