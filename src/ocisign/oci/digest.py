"""Content digest validation and calculation.

A digest is ``<algorithm>:<encoded>``. Only registered algorithms are
accepted, and the encoded part must be lowercase hex of the algorithm's
output length.

Example:
    >>> is_digest("sha256:" + "0" * 64)
    True
    >>> is_digest("v1.0.0")
    False
    >>> calculate_digest(b"{}")
    'sha256:44136fa355b3678a1146ad16f7e8649e94fb4fc21fe77e8310c060f61caaff8a'
"""

from __future__ import annotations

import hashlib
import re

from ocisign.errors import InvalidDigestError

DIGEST_RE = re.compile(r"^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[a-zA-Z0-9=_-]+$")

ALGORITHM_HEX_LENGTHS: dict[str, int] = {
    "sha256": 64,
    "sha384": 96,
    "sha512": 128,
}
"""Registered digest algorithms and the length of their hex encoding."""

_HEX_RE = re.compile(r"^[a-f0-9]+$")


def validate_digest(value: str) -> None:
    """Validate a digest string.

    Args:
        value: Candidate digest.

    Raises:
        InvalidDigestError: If the format, algorithm or encoding is invalid.
    """
    if not DIGEST_RE.match(value):
        raise InvalidDigestError(value, "invalid checksum digest format")

    algorithm, encoded = value.split(":", 1)
    expected_length = ALGORITHM_HEX_LENGTHS.get(algorithm)
    if expected_length is None:
        raise InvalidDigestError(value, f"unsupported digest algorithm {algorithm!r}")
    if len(encoded) != expected_length:
        raise InvalidDigestError(value, "invalid checksum digest length")
    if not _HEX_RE.match(encoded):
        raise InvalidDigestError(value, "invalid checksum digest format")


def is_digest(value: str) -> bool:
    """Return True if value is a valid digest."""
    try:
        validate_digest(value)
    except InvalidDigestError:
        return False
    return True


def calculate_digest(content: bytes, algorithm: str = "sha256") -> str:
    """Calculate the digest of content.

    Args:
        content: Raw bytes.
        algorithm: Registered algorithm name.

    Returns:
        Digest string ``<algorithm>:<hex>``.
    """
    if algorithm not in ALGORITHM_HEX_LENGTHS:
        raise InvalidDigestError(f"{algorithm}:", f"unsupported digest algorithm {algorithm!r}")
    return f"{algorithm}:{hashlib.new(algorithm, content).hexdigest()}"


def digest_algorithm(value: str) -> str:
    """Return the algorithm part of a valid digest."""
    return value.split(":", 1)[0]


def digest_hex(value: str) -> str:
    """Return the encoded part of a valid digest."""
    return value.split(":", 1)[1]


__all__ = [
    "ALGORITHM_HEX_LENGTHS",
    "calculate_digest",
    "digest_algorithm",
    "digest_hex",
    "is_digest",
    "validate_digest",
]
