"""Signing request construction.

Everything here is pure: argument checks that can fail run before the
repository is opened, so a bad flag never causes network or file I/O.

Example:
    >>> inputs = prepare_signing_inputs(
    ...     envelope_format="jws",
    ...     expiry=timedelta(hours=24),
    ...     plugin_config=[],
    ...     user_metadata=["build=1234"],
    ... )
    >>> request = build_signing_request(
    ...     "registry.example.com/repo@sha256:...",
    ...     envelope_format="jws",
    ...     expiry=inputs.expiry,
    ...     plugin_config=inputs.plugin_config,
    ...     user_metadata=inputs.user_metadata,
    ... )
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import timedelta

from pydantic import BaseModel, ConfigDict, Field

from ocisign.errors import InvalidArgumentError
from ocisign.oci.media_types import RESERVED_ANNOTATION_PREFIX, get_envelope_media_type
from ocisign.schemas.signing import SigningRequest
from ocisign.signing.flags import parse_flag_map

PLUGIN_CONFIG_FLAG = "--plugin-config"
USER_METADATA_FLAG = "--user-metadata"


class SigningInputs(BaseModel):
    """Validated option values, ready to build a SigningRequest."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    media_type: str = Field(..., min_length=1)
    plugin_config: dict[str, str] = Field(default_factory=dict)
    user_metadata: dict[str, str] = Field(default_factory=dict)
    expiry: timedelta = Field(default=timedelta(0))


def validate_expiry(expiry: timedelta) -> timedelta:
    """Reject negative and sub-second expiry durations.

    Raises:
        InvalidArgumentError: If the duration is negative or not whole seconds.
    """
    if expiry < timedelta(0):
        raise InvalidArgumentError(f"expiry duration must not be negative, got {expiry}")
    if expiry.microseconds:
        raise InvalidArgumentError(
            f"expiry duration supports only seconds granularity, got {expiry}"
        )
    return expiry


def validate_user_metadata(user_metadata: Mapping[str, str]) -> None:
    """Reject user metadata keys in the reserved annotation namespace."""
    reserved = sorted(key for key in user_metadata if key.startswith(RESERVED_ANNOTATION_PREFIX))
    if reserved:
        raise InvalidArgumentError(
            f"user metadata keys {', '.join(reserved)} use the reserved prefix "
            f"{RESERVED_ANNOTATION_PREFIX!r}"
        )


def prepare_signing_inputs(
    *,
    envelope_format: str,
    expiry: timedelta,
    plugin_config: Iterable[str],
    user_metadata: Iterable[str],
) -> SigningInputs:
    """Run every option check that needs no I/O.

    Args:
        envelope_format: ``jws`` or ``cose``.
        expiry: Signature validity period; zero means none.
        plugin_config: Raw ``--plugin-config`` entries.
        user_metadata: Raw ``--user-metadata`` entries.

    Raises:
        UnsupportedEnvelopeFormatError: If the format is unknown.
        InvalidArgumentError: If a flag entry, the expiry, or a metadata key
            is rejected.
    """
    media_type = get_envelope_media_type(envelope_format)
    parsed_plugin_config = parse_flag_map(plugin_config, PLUGIN_CONFIG_FLAG)
    parsed_user_metadata = parse_flag_map(user_metadata, USER_METADATA_FLAG)
    validate_user_metadata(parsed_user_metadata)
    return SigningInputs(
        media_type=media_type,
        plugin_config=parsed_plugin_config,
        user_metadata=parsed_user_metadata,
        expiry=validate_expiry(expiry),
    )


def build_signing_request(
    target_reference: str,
    *,
    envelope_format: str,
    expiry: timedelta,
    plugin_config: Mapping[str, str],
    user_metadata: Mapping[str, str],
) -> SigningRequest:
    """Build the request handed to the signer.

    Args:
        target_reference: Digest-pinned reference of the artifact.
        envelope_format: ``jws`` or ``cose``.
        expiry: Signature validity period; zero means none.
        plugin_config: Parsed plugin configuration.
        user_metadata: Parsed user metadata.

    Returns:
        Frozen SigningRequest.

    Raises:
        UnsupportedEnvelopeFormatError: If the format is unknown.
        InvalidArgumentError: If the expiry or a metadata key is rejected.
    """
    validate_user_metadata(user_metadata)
    return SigningRequest(
        artifact_reference=target_reference,
        signature_media_type=get_envelope_media_type(envelope_format),
        expiry=validate_expiry(expiry),
        plugin_config=dict(plugin_config),
        user_metadata=dict(user_metadata),
    )


__all__ = [
    "SigningInputs",
    "build_signing_request",
    "prepare_signing_inputs",
    "validate_expiry",
    "validate_user_metadata",
]
