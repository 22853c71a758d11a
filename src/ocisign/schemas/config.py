"""Configuration schemas for registries and signing keys.

Registry settings come from CLI options and environment variables; signing
keys come from ``signingkeys.yaml`` in the ocisign config directory.

Example ``signingkeys.yaml``::

    default: release
    keys:
      - name: release
        key_path: /etc/ocisign/keys/release.key
        cert_path: /etc/ocisign/keys/release.crt
      - name: kms
        plugin: azure-kv
        id: https://vault.example.net/keys/release/1
        plugin_config:
          self_signed: "false"
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator

# =============================================================================
# Registry Configuration
# =============================================================================


class AuthType(str, Enum):
    """Authentication types for OCI registries."""

    ANONYMOUS = "anonymous"
    BASIC = "basic"
    TOKEN = "token"


class RegistryAuth(BaseModel):
    """Authentication configuration for a registry.

    Credentials are never stored in the model; ``username`` is optional
    because token auth uses a fixed placeholder user.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: AuthType = Field(default=AuthType.ANONYMOUS)
    username: str | None = Field(default=None)


class RetryConfig(BaseModel):
    """Retry policy configuration for transient registry failures.

    Examples:
        >>> config = RetryConfig(max_attempts=5, initial_delay_ms=500)
        >>> config.initial_delay_ms
        500
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int = Field(default=3, ge=1, le=10)
    initial_delay_ms: int = Field(default=500, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0, le=5.0)
    max_delay_ms: int = Field(default=10000, ge=0)
    jitter: bool = Field(default=True)


class RegistryConfig(BaseModel):
    """Connection settings for one remote registry.

    Examples:
        >>> config = RegistryConfig(host="registry.example.com")
        >>> config.scheme
        'https'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    host: str = Field(..., min_length=1, description="Registry host[:port]")
    plain_http: bool = Field(
        default=False,
        description="Talk HTTP instead of HTTPS (--insecure-registry)",
    )
    tls_verify: bool = Field(default=True, description="Verify TLS certificates")
    auth: RegistryAuth = Field(default_factory=RegistryAuth)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    @property
    def scheme(self) -> str:
        """Return the URL scheme for registry requests."""
        return "http" if self.plain_http else "https"


# =============================================================================
# Signing Key Configuration
# =============================================================================


class SigningKey(BaseModel):
    """One named signing key.

    Either a local key (``key_path`` + ``cert_path``) or a plugin key
    (``plugin`` + ``id``).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    key_path: Path | None = Field(default=None)
    cert_path: Path | None = Field(default=None)
    plugin: str | None = Field(default=None)
    id: str | None = Field(default=None)
    plugin_config: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_key_source(self) -> SigningKey:
        """Validate that exactly one key source is configured."""
        local = self.key_path is not None or self.cert_path is not None
        if local and self.plugin is not None:
            raise ValueError(f"key {self.name!r}: key_path/cert_path and plugin are exclusive")
        if local and (self.key_path is None or self.cert_path is None):
            raise ValueError(f"key {self.name!r}: key_path and cert_path are both required")
        if self.plugin is not None and not self.id:
            raise ValueError(f"key {self.name!r}: id required for plugin keys")
        if not local and self.plugin is None:
            raise ValueError(f"key {self.name!r}: no key_path/cert_path or plugin configured")
        return self


class SigningKeysConfig(BaseModel):
    """Contents of ``signingkeys.yaml``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    default: str | None = Field(default=None)
    keys: list[SigningKey] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_names(self) -> SigningKeysConfig:
        """Validate key names are unique and the default exists."""
        names = [key.name for key in self.keys]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate signing key names: {', '.join(duplicates)}")
        if self.default is not None and self.default not in names:
            raise ValueError(f"default signing key {self.default!r} is not configured")
        return self

    def get(self, name: str) -> SigningKey | None:
        """Return the key with the given name, if configured."""
        for key in self.keys:
            if key.name == name:
                return key
        return None


__all__ = [
    "AuthType",
    "RegistryAuth",
    "RegistryConfig",
    "RetryConfig",
    "SigningKey",
    "SigningKeysConfig",
]
