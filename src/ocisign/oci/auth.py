"""Authentication providers for registry operations.

Supported Authentication Types:
- AnonymousAuthProvider: No credentials (public registries, local test registries)
- BasicAuthProvider: Username/password from CLI options or environment
- TokenAuthProvider: Bearer/identity token from the environment

Credential Sources (first match wins):
    1. --username / --password options
    2. OCISIGN_USERNAME / OCISIGN_PASSWORD environment variables
    3. OCISIGN_TOKEN environment variable
    4. Anonymous

Example:
    >>> provider = create_auth_provider("registry.example.com", auth_config)
    >>> creds = provider.get_credentials()
    >>> client.login(hostname="registry.example.com", username=creds.username,
    ...              password=creds.password)
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass

import structlog

from ocisign.errors import AuthenticationError
from ocisign.schemas.config import AuthType, RegistryAuth

logger = structlog.get_logger(__name__)

ENV_USERNAME = "OCISIGN_USERNAME"
ENV_PASSWORD = "OCISIGN_PASSWORD"
ENV_TOKEN = "OCISIGN_TOKEN"


@dataclass(frozen=True)
class Credentials:
    """Container for registry credentials.

    Attributes:
        username: Username for basic auth (placeholder for token auth).
        password: Password or token.
    """

    username: str
    password: str

    @property
    def is_empty(self) -> bool:
        """Check if there is nothing to log in with."""
        return not self.username or not self.password


class AuthProvider(ABC):
    """Abstract base class for registry authentication providers."""

    @abstractmethod
    def get_credentials(self) -> Credentials:
        """Retrieve credentials for registry authentication.

        Raises:
            AuthenticationError: If credentials cannot be retrieved.
        """
        ...

    @property
    @abstractmethod
    def auth_type(self) -> AuthType:
        """Return the authentication type for this provider."""
        ...


class AnonymousAuthProvider(AuthProvider):
    """Provider for registries that need no login."""

    @property
    def auth_type(self) -> AuthType:
        """Return the authentication type."""
        return AuthType.ANONYMOUS

    def get_credentials(self) -> Credentials:
        """Return empty credentials."""
        return Credentials(username="", password="")


class BasicAuthProvider(AuthProvider):
    """Provider for username/password authentication.

    Example:
        >>> provider = BasicAuthProvider("registry.example.com", "admin", "s3cret")
        >>> provider.get_credentials().username
        'admin'
    """

    def __init__(self, registry: str, username: str, password: str) -> None:
        """Initialize BasicAuthProvider.

        Args:
            registry: Registry host for error messages.
            username: Registry username.
            password: Registry password.
        """
        self._registry = registry
        self._username = username
        self._password = password

    @property
    def auth_type(self) -> AuthType:
        """Return the authentication type."""
        return AuthType.BASIC

    def get_credentials(self) -> Credentials:
        """Return the configured username and password.

        Raises:
            AuthenticationError: If either value is missing.
        """
        if not self._username or not self._password:
            raise AuthenticationError(
                self._registry,
                "basic auth requires both username and password",
            )
        logger.debug("basic_auth_credentials_loaded", registry=self._registry)
        return Credentials(username=self._username, password=self._password)


class TokenAuthProvider(AuthProvider):
    """Provider for token authentication.

    The token is sent as the password of a fixed placeholder user, which is
    what registries issuing identity tokens expect.
    """

    TOKEN_USERNAME = "<token>"

    def __init__(self, registry: str, token: str) -> None:
        """Initialize TokenAuthProvider.

        Args:
            registry: Registry host for error messages.
            token: Identity or bearer token.
        """
        self._registry = registry
        self._token = token

    @property
    def auth_type(self) -> AuthType:
        """Return the authentication type."""
        return AuthType.TOKEN

    def get_credentials(self) -> Credentials:
        """Return the token credentials.

        Raises:
            AuthenticationError: If the token is empty.
        """
        if not self._token:
            raise AuthenticationError(self._registry, f"{ENV_TOKEN} is empty")
        logger.debug("token_auth_credentials_loaded", registry=self._registry)
        return Credentials(username=self.TOKEN_USERNAME, password=self._token)


def resolve_registry_auth(
    username: str | None = None,
    password: str | None = None,
) -> RegistryAuth:
    """Decide the auth type from explicit options and the environment.

    Args:
        username: Value of --username, if given.
        password: Value of --password, if given.

    Returns:
        RegistryAuth describing which provider to build.
    """
    username = username or os.environ.get(ENV_USERNAME, "")
    password = password or os.environ.get(ENV_PASSWORD, "")
    if username or password:
        return RegistryAuth(type=AuthType.BASIC, username=username or None)
    if os.environ.get(ENV_TOKEN):
        return RegistryAuth(type=AuthType.TOKEN)
    return RegistryAuth(type=AuthType.ANONYMOUS)


def create_auth_provider(
    registry: str,
    auth_config: RegistryAuth,
    *,
    password: str | None = None,
) -> AuthProvider:
    """Factory function to create the auth provider for a registry.

    Args:
        registry: Registry host.
        auth_config: Authentication configuration.
        password: Explicit password (--password); falls back to the environment.

    Returns:
        AuthProvider instance for the configured auth type.

    Raises:
        ValueError: If auth type is unknown.
    """
    auth_type = auth_config.type

    if auth_type == AuthType.ANONYMOUS:
        return AnonymousAuthProvider()

    if auth_type == AuthType.BASIC:
        return BasicAuthProvider(
            registry,
            auth_config.username or os.environ.get(ENV_USERNAME, ""),
            password or os.environ.get(ENV_PASSWORD, ""),
        )

    if auth_type == AuthType.TOKEN:
        return TokenAuthProvider(registry, os.environ.get(ENV_TOKEN, ""))

    raise ValueError(f"Unknown auth type: {auth_type}")


__all__ = [
    "AnonymousAuthProvider",
    "AuthProvider",
    "BasicAuthProvider",
    "Credentials",
    "TokenAuthProvider",
    "create_auth_provider",
    "resolve_registry_auth",
]
