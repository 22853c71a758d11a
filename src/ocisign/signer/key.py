"""Local key signer producing Notary Project JWS envelopes.

Envelope (JWS JSON serialization)::

    {
      "payload": b64url({"targetArtifact": <descriptor>}),
      "protected": b64url({"alg", "cty", "crit", "io.cncf.notary.*"}),
      "header": {"x5c": [<b64 DER certs>], "io.cncf.notary.signingAgent": ...},
      "signature": b64url(<signature over protected.payload>)
    }

Supported keys:
    RSA 2048/3072/4096 -> PS256/PS384/PS512 (RSASSA-PSS)
    EC P-256/P-384/P-521 -> ES256/ES384/ES512 (raw r||s)
"""

from __future__ import annotations

import base64
import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Union

import structlog
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from ocisign.errors import SigningFailedError, UnsupportedEnvelopeFormatError
from ocisign.oci.manifest import canonical_json
from ocisign.oci.media_types import (
    ANNOTATION_THUMBPRINT,
    JWS_MEDIA_TYPE,
    SIGNATURE_PAYLOAD_TYPE,
    get_envelope_format,
)
from ocisign.schemas.reference import Descriptor
from ocisign.schemas.signing import SignatureEnvelope, SigningRequest

logger = structlog.get_logger(__name__)

PrivateKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]

HEADER_SIGNING_SCHEME = "io.cncf.notary.signingScheme"
HEADER_SIGNING_TIME = "io.cncf.notary.signingTime"
HEADER_EXPIRY = "io.cncf.notary.expiry"
HEADER_SIGNING_AGENT = "io.cncf.notary.signingAgent"
SIGNING_SCHEME_X509 = "notary.x509"

_RSA_ALGORITHMS: dict[int, tuple[str, hashes.HashAlgorithm]] = {
    2048: ("PS256", hashes.SHA256()),
    3072: ("PS384", hashes.SHA384()),
    4096: ("PS512", hashes.SHA512()),
}

_EC_ALGORITHMS: dict[str, tuple[str, hashes.HashAlgorithm, int]] = {
    "secp256r1": ("ES256", hashes.SHA256(), 32),
    "secp384r1": ("ES384", hashes.SHA384(), 48),
    "secp521r1": ("ES512", hashes.SHA512(), 66),
}


def b64url(data: bytes) -> str:
    """Base64url without padding (RFC 7515)."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _rfc3339(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def _signing_agent() -> str:
    from ocisign import __version__

    return f"ocisign/{__version__}"


class KeySigner:
    """Signer backed by a PEM private key and its certificate chain.

    Example:
        >>> signer = KeySigner.from_files(Path("release.key"), Path("release.crt"))
        >>> envelope = signer.sign(descriptor, request)
        >>> envelope.media_type
        'application/jose+json'
    """

    def __init__(self, private_key: PrivateKey, certificates: list[x509.Certificate]) -> None:
        """Initialize KeySigner.

        Args:
            private_key: RSA or EC private key.
            certificates: Chain with the signing certificate first.

        Raises:
            SigningFailedError: If the chain is empty, the leaf certificate
                does not match the key, or the key type is unsupported.
        """
        if not certificates:
            raise SigningFailedError("certificate chain is empty")
        leaf_public = certificates[0].public_key().public_bytes(
            serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
        )
        key_public = private_key.public_key().public_bytes(
            serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
        )
        if leaf_public != key_public:
            raise SigningFailedError("signing certificate does not match the private key")

        self._private_key = private_key
        self._certificates = certificates
        self._algorithm = self._select_algorithm()

    @classmethod
    def from_files(cls, key_path: Path, cert_path: Path) -> KeySigner:
        """Load the key and chain from PEM files.

        Raises:
            SigningFailedError: If either file cannot be read or parsed.
        """
        try:
            private_key = serialization.load_pem_private_key(key_path.read_bytes(), password=None)
            certificates = x509.load_pem_x509_certificates(cert_path.read_bytes())
        except (OSError, ValueError, TypeError) as e:
            raise SigningFailedError(f"failed to load signing key {key_path}: {e}") from e

        if not isinstance(private_key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
            raise SigningFailedError(
                f"unsupported key type {type(private_key).__name__}; use RSA or EC"
            )
        logger.debug("signing_key_loaded", key_path=str(key_path), chain_length=len(certificates))
        return cls(private_key, certificates)

    @property
    def algorithm(self) -> str:
        """JWS ``alg`` value for the key."""
        return self._algorithm

    def _select_algorithm(self) -> str:
        key = self._private_key
        if isinstance(key, rsa.RSAPrivateKey):
            if key.key_size not in _RSA_ALGORITHMS:
                raise SigningFailedError(f"unsupported RSA key size {key.key_size}")
            return _RSA_ALGORITHMS[key.key_size][0]
        if isinstance(key, ec.EllipticCurvePrivateKey):
            if key.curve.name not in _EC_ALGORITHMS:
                raise SigningFailedError(f"unsupported EC curve {key.curve.name}")
            return _EC_ALGORITHMS[key.curve.name][0]
        raise SigningFailedError(f"unsupported key type {type(key).__name__}")

    def _raw_sign(self, signing_input: bytes) -> bytes:
        key = self._private_key
        if isinstance(key, rsa.RSAPrivateKey):
            _, hash_algorithm = _RSA_ALGORITHMS[key.key_size]
            return key.sign(
                signing_input,
                padding.PSS(mgf=padding.MGF1(hash_algorithm), salt_length=hash_algorithm.digest_size),
                hash_algorithm,
            )
        _, hash_algorithm, size = _EC_ALGORITHMS[key.curve.name]
        r, s = decode_dss_signature(key.sign(signing_input, ec.ECDSA(hash_algorithm)))
        return r.to_bytes(size, "big") + s.to_bytes(size, "big")

    def certificate_thumbprints(self) -> list[str]:
        """SHA-256 hex of each certificate in the chain, leaf first."""
        return [
            hashlib.sha256(cert.public_bytes(serialization.Encoding.DER)).hexdigest()
            for cert in self._certificates
        ]

    def sign(self, descriptor: Descriptor, request: SigningRequest) -> SignatureEnvelope:
        """Produce a JWS envelope over ``descriptor``.

        Raises:
            UnsupportedEnvelopeFormatError: If the request asks for COSE.
        """
        if request.signature_media_type != JWS_MEDIA_TYPE:
            raise UnsupportedEnvelopeFormatError(
                get_envelope_format(request.signature_media_type),
                ["jws"],
            )

        signing_time = datetime.now(timezone.utc).replace(microsecond=0)
        protected: dict[str, Any] = {
            "alg": self._algorithm,
            "cty": SIGNATURE_PAYLOAD_TYPE,
            "crit": [HEADER_SIGNING_SCHEME],
            HEADER_SIGNING_SCHEME: SIGNING_SCHEME_X509,
            HEADER_SIGNING_TIME: _rfc3339(signing_time),
        }
        if request.has_expiry:
            protected["crit"].append(HEADER_EXPIRY)
            protected[HEADER_EXPIRY] = _rfc3339(signing_time + request.expiry)

        payload_b64 = b64url(canonical_json({"targetArtifact": descriptor.to_oci()}))
        protected_b64 = b64url(canonical_json(protected))
        signature = self._raw_sign(f"{protected_b64}.{payload_b64}".encode("ascii"))

        envelope = {
            "payload": payload_b64,
            "protected": protected_b64,
            "header": {
                "x5c": [
                    base64.b64encode(cert.public_bytes(serialization.Encoding.DER)).decode("ascii")
                    for cert in self._certificates
                ],
                HEADER_SIGNING_AGENT: _signing_agent(),
            },
            "signature": b64url(signature),
        }

        logger.debug(
            "jws_envelope_created",
            alg=self._algorithm,
            digest=descriptor.digest,
            expiry=protected.get(HEADER_EXPIRY),
        )
        return SignatureEnvelope(
            content=json.dumps(envelope, separators=(",", ":")).encode("utf-8"),
            media_type=JWS_MEDIA_TYPE,
            annotations={
                ANNOTATION_THUMBPRINT: json.dumps(
                    self.certificate_thumbprints(), separators=(",", ":")
                )
            },
        )


__all__ = ["KeySigner", "b64url"]
