"""Fixtures for signer tests: throwaway keys and self-signed certificates."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID


def self_signed_certificate(private_key: Any, common_name: str = "ocisign test") -> x509.Certificate:
    """Issue a one-day self-signed certificate for private_key."""
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=1))
        .not_valid_after(now + timedelta(days=1))
        .sign(private_key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def ec_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def certificate_factory() -> Any:
    """self_signed_certificate() for tests needing extra certificates."""
    return self_signed_certificate


@pytest.fixture
def key_files(tmp_path: Path, ec_key: ec.EllipticCurvePrivateKey) -> tuple[Path, Path]:
    """PEM key and certificate files for ec_key."""
    key_path = tmp_path / "release.key"
    cert_path = tmp_path / "release.crt"
    key_path.write_bytes(
        ec_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    cert_path.write_bytes(
        self_signed_certificate(ec_key).public_bytes(serialization.Encoding.PEM)
    )
    return key_path, cert_path
