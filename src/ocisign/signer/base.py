"""Signer capability."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ocisign.schemas.reference import Descriptor
    from ocisign.schemas.signing import SignatureEnvelope, SigningRequest


@runtime_checkable
class Signer(Protocol):
    """Produces a signature envelope over a payload descriptor."""

    def sign(self, descriptor: Descriptor, request: SigningRequest) -> SignatureEnvelope:
        """Sign ``descriptor`` according to ``request``.

        Args:
            descriptor: Target manifest descriptor, user metadata in its
                annotations.
            request: Envelope media type, expiry and plugin configuration.

        Returns:
            Envelope bytes plus annotations for the signature manifest.

        Raises:
            SigningFailedError: If no envelope can be produced.
            UnsupportedEnvelopeFormatError: If the signer cannot emit the
                requested envelope format.
        """
        ...


__all__ = ["Signer"]
