"""Exception hierarchy for ocisign.

All exceptions inherit from OCISignError, so callers can catch every
signing-workflow failure with a single except clause.

Exception Hierarchy:
    OCISignError (base)
    ├── InvalidArgumentError            # Bad user input, detected before any I/O
    │   ├── InvalidReferenceError       # Malformed artifact reference
    │   ├── InvalidDigestError          # Malformed content digest
    │   └── InvalidFlagError            # Malformed or duplicate key=value entry
    ├── UnsupportedEnvelopeFormatError  # Unknown signature envelope format
    ├── ReferenceResolutionError        # Tag/digest lookup failed (wraps cause)
    ├── ArtifactNotFoundError           # Repository has no such tag/digest
    ├── AuthenticationError             # Registry rejected credentials
    ├── RegistryUnavailableError        # Registry not reachable / 5xx
    ├── DigestMismatchError             # Content does not hash to its digest
    ├── SigningFailedError              # Signer could not produce an envelope
    │   └── SignerConfigError           # No usable signing key configured
    ├── SignaturePushError              # Storing the signature failed
    │   └── ReferrersIndexCleanupError  # Signature stored, stale index kept
    └── OperationCancelledError         # Cancellation signal observed

Exit Codes:
    0 - Success
    1 - General error (OCISignError)
    3 - Artifact not found (ArtifactNotFoundError)
    4 - Authentication error (AuthenticationError)
    5 - Invalid argument (InvalidArgumentError, UnsupportedEnvelopeFormatError)
    8 - Network/connectivity error (RegistryUnavailableError)
    9 - Signature push failed (SignaturePushError)
    10 - Signing failed (SigningFailedError)
    130 - Cancelled (OperationCancelledError)

Example:
    >>> from ocisign.errors import ArtifactNotFoundError
    >>> raise ArtifactNotFoundError("v1", "registry.example.com/repo")
    Traceback (most recent call last):
        ...
    ArtifactNotFoundError: Artifact not found: v1 in registry.example.com/repo
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ocisign.schemas.reference import Descriptor

REFERRERS_INDEX_CLEANUP_MARKER = "failed to delete dangling referrers index"
"""Text a registry backend puts in a push error when only the old referrers
index could not be removed. Kept for errors that arrive untyped."""


class OCISignError(Exception):
    """Base exception for all ocisign errors.

    Attributes:
        exit_code: CLI exit code for this error type (default: 1).
    """

    exit_code: int = 1

    pass


class InvalidArgumentError(OCISignError):
    """Raised when user input is rejected before any I/O happens.

    Attributes:
        exit_code: CLI exit code (5).
    """

    exit_code: int = 5

    pass


class InvalidReferenceError(InvalidArgumentError):
    """Raised when an artifact reference cannot be parsed.

    Attributes:
        reference: The raw reference string.
        reason: Why the reference was rejected.

    Example:
        >>> raise InvalidReferenceError("localhost", "missing repository")
        Traceback (most recent call last):
            ...
        InvalidReferenceError: 'localhost': invalid reference: missing repository
    """

    def __init__(self, reference: str, reason: str) -> None:
        self.reference = reference
        self.reason = reason
        super().__init__(f"{reference!r}: invalid reference: {reason}")


class InvalidDigestError(InvalidArgumentError):
    """Raised when a digest string is malformed or uses an unknown algorithm."""

    def __init__(self, digest: str, reason: str) -> None:
        self.digest = digest
        self.reason = reason
        super().__init__(f"invalid digest {digest!r}: {reason}")


class InvalidFlagError(InvalidArgumentError):
    """Raised when a repeatable key=value option cannot be parsed.

    Attributes:
        flag_name: Option name the entry came from (e.g. ``plugin-config``).
        entry: The offending entry.
        reason: Why the entry was rejected.
    """

    def __init__(self, flag_name: str, entry: str, reason: str) -> None:
        self.flag_name = flag_name
        self.entry = entry
        self.reason = reason
        super().__init__(f"could not parse flag {flag_name}: {reason}")


class UnsupportedEnvelopeFormatError(OCISignError):
    """Raised when a signature envelope format has no known media type.

    Attributes:
        envelope_format: The requested format name.
        supported: Supported format names.
        exit_code: CLI exit code (5).
    """

    exit_code: int = 5

    def __init__(self, envelope_format: str, supported: list[str] | None = None) -> None:
        self.envelope_format = envelope_format
        self.supported = supported or []
        msg = f"signature format {envelope_format!r} not supported"
        if self.supported:
            msg += f". Supported formats: {', '.join(self.supported)}"
        super().__init__(msg)


class ArtifactNotFoundError(OCISignError):
    """Raised when a repository has no manifest for a tag or digest.

    Attributes:
        reference: The tag or digest that was not found.
        location: Registry repository or layout directory searched.
        exit_code: CLI exit code (3).
    """

    exit_code: int = 3

    def __init__(self, reference: str, location: str) -> None:
        self.reference = reference
        self.location = location
        super().__init__(f"Artifact not found: {reference} in {location}")


class AuthenticationError(OCISignError):
    """Raised when registry authentication fails.

    Attributes:
        registry: Registry host where authentication failed.
        reason: Description of why authentication failed.
        exit_code: CLI exit code (4).
    """

    exit_code: int = 4

    def __init__(self, registry: str, reason: str) -> None:
        self.registry = registry
        self.reason = reason
        super().__init__(f"Authentication failed for {registry}: {reason}")


class RegistryUnavailableError(OCISignError):
    """Raised when the registry is not reachable or answers with a server error.

    Retried with exponential backoff before it reaches the caller.

    Attributes:
        registry: Registry host that is unreachable.
        reason: Description of the connectivity failure.
        exit_code: CLI exit code (8).
    """

    exit_code: int = 8

    def __init__(self, registry: str, reason: str) -> None:
        self.registry = registry
        self.reason = reason
        super().__init__(f"Registry unavailable: {registry}: {reason}")


class DigestMismatchError(OCISignError):
    """Raised when content does not match the digest it was requested by.

    Attributes:
        expected: The expected digest.
        actual: The digest actually observed.
        reference: The reference being resolved.
    """

    def __init__(self, expected: str, actual: str, reference: str) -> None:
        self.expected = expected
        self.actual = actual
        self.reference = reference
        super().__init__(f"Digest mismatch for {reference}: expected {expected}, got {actual}")


class ReferenceResolutionError(OCISignError):
    """Raised when a reference cannot be resolved to a descriptor.

    Wraps the backend failure (network, not found, bad digest). The exit
    code follows the cause so scripts can still tell "not found" apart
    from "registry down".

    Attributes:
        reference: The reference that failed to resolve.
        cause: The underlying repository error.
    """

    def __init__(self, reference: str, cause: Exception) -> None:
        self.reference = reference
        self.cause = cause
        self.exit_code = getattr(cause, "exit_code", OCISignError.exit_code)
        super().__init__(f"failed to resolve {reference}: {cause}")


class SigningFailedError(OCISignError):
    """Raised when the signer cannot produce a signature envelope.

    Attributes:
        reason: Description of the failure.
        exit_code: CLI exit code (10).
    """

    exit_code: int = 10

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Signing failed: {reason}")


class SignerConfigError(SigningFailedError):
    """Raised when no signing key or plugin can be selected.

    Remediation:
        - Pass --key with a name from signingkeys.yaml
        - Or pass --plugin together with --id
        - Or set a default key in signingkeys.yaml
    """

    def __init__(self, reason: str) -> None:
        super().__init__(
            f"{reason}\n\nRemediation:\n"
            "  - Pass --key with a key name from signingkeys.yaml\n"
            "  - Or pass --plugin together with --id\n"
            "  - Or set 'default' in signingkeys.yaml"
        )
        self.reason = reason


class SignaturePushError(OCISignError):
    """Raised when the signature could not be stored in the repository.

    Attributes:
        location: Registry repository or layout directory.
        reason: Description of the failure.
        exit_code: CLI exit code (9).
    """

    exit_code: int = 9

    def __init__(self, location: str, reason: str) -> None:
        self.location = location
        self.reason = reason
        super().__init__(f"failed to push signature to {location}: {reason}")


class ReferrersIndexCleanupError(SignaturePushError):
    """Raised when the signature was stored but the superseded referrers index
    could not be deleted.

    The signature manifest and the new referrers index are in place, so the
    signature is valid and discoverable. Only garbage remains.

    Attributes:
        signature: Descriptor of the signature manifest that was pushed.
        stale_index_digest: Digest of the index that could not be deleted.
    """

    def __init__(
        self,
        location: str,
        signature: Descriptor,
        stale_index_digest: str,
        reason: str,
    ) -> None:
        self.signature = signature
        self.stale_index_digest = stale_index_digest
        super().__init__(
            location,
            f"{REFERRERS_INDEX_CLEANUP_MARKER} {stale_index_digest}: {reason}",
        )


class OperationCancelledError(OCISignError):
    """Raised when the cancellation signal is observed at an I/O boundary.

    Attributes:
        stage: The pipeline stage that observed the cancellation.
        exit_code: CLI exit code (130).
    """

    exit_code: int = 130

    def __init__(self, stage: str) -> None:
        self.stage = stage
        super().__init__(f"operation cancelled before {stage}")


__all__ = [
    "REFERRERS_INDEX_CLEANUP_MARKER",
    "ArtifactNotFoundError",
    "AuthenticationError",
    "DigestMismatchError",
    "InvalidArgumentError",
    "InvalidDigestError",
    "InvalidFlagError",
    "InvalidReferenceError",
    "OCISignError",
    "OperationCancelledError",
    "ReferenceResolutionError",
    "ReferrersIndexCleanupError",
    "RegistryUnavailableError",
    "SignaturePushError",
    "SignerConfigError",
    "SigningFailedError",
    "UnsupportedEnvelopeFormatError",
]
