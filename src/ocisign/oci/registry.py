"""Remote registry backend.

RegistryRepository implements the Repository protocol against an OCI
distribution registry. Requests go through the ORAS Python SDK's registry
session, which handles login and bearer-token negotiation.

Signature storage:
    1. Upload the envelope blob (and the empty config blob for image manifests)
    2. PUT the signature manifest by digest
    3. If the registry does not confirm the subject with an ``OCI-Subject``
       header, maintain the referrers index under the ``<alg>-<hex>`` tag
       and delete the superseded index

Step 3's final DELETE is best effort. Registries that refuse manifest
deletion leave the old index behind; that is reported as
ReferrersIndexCleanupError, which carries the already stored signature.

Example:
    >>> repo = RegistryRepository(
    ...     "registry.example.com", "net-monitor", SignatureManifestKind.IMAGE
    ... )
    >>> desc = repo.resolve("v1")
    >>> desc.digest
    'sha256:...'
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode, urljoin

import requests
import structlog
from opentelemetry import trace
from oras.client import OrasClient

from ocisign.errors import (
    ArtifactNotFoundError,
    AuthenticationError,
    DigestMismatchError,
    OCISignError,
    OperationCancelledError,
    ReferrersIndexCleanupError,
    RegistryUnavailableError,
    SignaturePushError,
)
from ocisign.oci.auth import AuthProvider, create_auth_provider
from ocisign.oci.digest import calculate_digest, is_digest
from ocisign.oci.manifest import (
    EMPTY_CONFIG_DESCRIPTOR,
    build_referrers_index,
    build_signature_manifest,
    parse_referrers_index,
    referrers_tag,
)
from ocisign.oci.media_types import (
    MANIFEST_ACCEPT_TYPES,
    OCI_EMPTY_CONFIG_BYTES,
    OCI_IMAGE_INDEX,
)
from ocisign.oci.resilience import RetryPolicy
from ocisign.schemas.config import AuthType, RegistryConfig
from ocisign.schemas.reference import Descriptor
from ocisign.schemas.signing import SignatureEnvelope, SignatureManifestKind

if TYPE_CHECKING:
    from ocisign.cancellation import CancellationToken

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

HEADER_DIGEST = "Docker-Content-Digest"
HEADER_SUBJECT = "OCI-Subject"


class RegistryRepository:
    """Repository backed by a remote OCI registry.

    Attributes:
        registry: Registry host[:port].
        repository: Repository path inside the registry.
    """

    def __init__(
        self,
        registry: str,
        repository: str,
        manifest_kind: SignatureManifestKind,
        *,
        config: RegistryConfig | None = None,
        auth_provider: AuthProvider | None = None,
        retry_policy: RetryPolicy | None = None,
        oras_client: OrasClient | None = None,
    ) -> None:
        """Initialize RegistryRepository with dependency injection.

        Args:
            registry: Registry host[:port].
            repository: Repository path.
            manifest_kind: Manifest type for stored signatures.
            config: Connection settings. Defaults to HTTPS, anonymous.
            auth_provider: Optional pre-configured auth provider.
                If None, created from config.auth.
            retry_policy: Optional retry policy. If None, created from config.retry.
            oras_client: Optional pre-configured ORAS client (tests).
        """
        self.registry = registry
        self.repository = repository
        self._manifest_kind = manifest_kind
        self._config = config or RegistryConfig(host=registry)
        self._auth_provider = auth_provider
        self._retry_policy = retry_policy or RetryPolicy(self._config.retry)
        self._oras_client = oras_client

        logger.debug(
            "registry_repository_initialized",
            registry=registry,
            repository=repository,
            manifest_kind=manifest_kind.value,
            plain_http=self._config.plain_http,
        )

    @property
    def manifest_kind(self) -> SignatureManifestKind:
        """Manifest type used when storing signatures."""
        return self._manifest_kind

    @property
    def location(self) -> str:
        """Return registry/repository."""
        return f"{self.registry}/{self.repository}"

    @property
    def auth_provider(self) -> AuthProvider:
        """Get or create the authentication provider."""
        if self._auth_provider is None:
            self._auth_provider = create_auth_provider(self.registry, self._config.auth)
        return self._auth_provider

    @property
    def client(self) -> OrasClient:
        """Get or create the authenticated ORAS client."""
        if self._oras_client is None:
            self._oras_client = self._create_oras_client()
        return self._oras_client

    def _create_oras_client(self) -> OrasClient:
        """Create and authenticate the ORAS client.

        Raises:
            AuthenticationError: If login fails.
        """
        # Basic auth needs the 'basic' backend, otherwise the default 'token'
        auth_backend = "basic" if self.auth_provider.auth_type == AuthType.BASIC else "token"

        oras_client = OrasClient(
            hostname=self.registry,
            insecure=self._config.plain_http,
            tls_verify=self._config.tls_verify,
            auth_backend=auth_backend,
        )

        credentials = self.auth_provider.get_credentials()

        # Skip login for anonymous access; ORAS would prompt otherwise
        if not credentials.is_empty:
            try:
                oras_client.login(
                    hostname=self.registry,
                    username=credentials.username,
                    password=credentials.password,
                )
            except Exception as e:
                raise AuthenticationError(
                    self.registry,
                    f"Failed to authenticate with registry: {e}",
                ) from e

        return oras_client

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self._config.scheme}://{self.registry}/v2/{self.repository}/{path}"

    def _request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        data: bytes | None = None,
        cancellation: CancellationToken | None = None,
        operation: str,
    ) -> requests.Response:
        """Send one request with retries on transient failures.

        Returns the response for any status below 500. Connection errors and
        server errors become RegistryUnavailableError after retries.
        """

        def _send() -> requests.Response:
            try:
                response: requests.Response = self.client.remote.do_request(
                    url,
                    method,
                    data=data,
                    headers=dict(headers or {}),
                )
            except requests.RequestException as e:
                raise RegistryUnavailableError(self.registry, f"{method} {url}: {e}") from e
            if response.status_code >= 500:
                raise RegistryUnavailableError(
                    self.registry,
                    f"{method} {url}: {response.status_code} {response.reason}",
                )
            return response

        return self._retry_policy.call(_send, cancellation=cancellation, operation=operation)

    def _check_auth(self, response: requests.Response) -> None:
        if response.status_code in (401, 403):
            raise AuthenticationError(
                self.registry,
                f"{response.status_code} {response.reason} for {self.repository}",
            )

    # ------------------------------------------------------------------
    # Resolve
    # ------------------------------------------------------------------

    def resolve(
        self,
        reference: str,
        *,
        cancellation: CancellationToken | None = None,
    ) -> Descriptor:
        """Resolve a tag or digest with a manifest HEAD request.

        Falls back to GET when the registry omits the digest or size headers.

        Raises:
            ArtifactNotFoundError: If the registry answers 404.
            AuthenticationError: If the registry answers 401/403.
            DigestMismatchError: If a digest reference resolves to other content.
        """
        log = logger.bind(registry=self.registry, repository=self.repository, reference=reference)
        log.debug("resolve_started")

        with tracer.start_as_current_span("ocisign.registry.resolve") as span:
            span.set_attribute("ocisign.registry", self.registry)
            span.set_attribute("ocisign.reference", reference)

            headers = {"Accept": ", ".join(MANIFEST_ACCEPT_TYPES)}
            url = self._url(f"manifests/{reference}")
            response = self._request(
                "HEAD", url, headers=headers, cancellation=cancellation, operation="resolve"
            )
            self._raise_for_resolve(response, reference)

            media_type = _content_type(response)
            digest = response.headers.get(HEADER_DIGEST, "")
            size_header = response.headers.get("Content-Length", "")

            if not digest or not size_header.isdigit() or not media_type:
                response = self._request(
                    "GET", url, headers=headers, cancellation=cancellation, operation="resolve"
                )
                self._raise_for_resolve(response, reference)
                media_type = _content_type(response) or _media_type_from_body(response.content)
                digest = calculate_digest(response.content)
                size_header = str(len(response.content))

            if is_digest(reference) and digest != reference:
                raise DigestMismatchError(reference, digest, self.location)

            descriptor = Descriptor(media_type=media_type, digest=digest, size=int(size_header))
            span.set_attribute("ocisign.digest", descriptor.digest)

        log.debug("resolve_completed", digest=descriptor.digest, media_type=descriptor.media_type)
        return descriptor

    def _raise_for_resolve(self, response: requests.Response, reference: str) -> None:
        if response.status_code == 404:
            raise ArtifactNotFoundError(reference, self.location)
        self._check_auth(response)
        if response.status_code != 200:
            raise OCISignError(
                f"unexpected response resolving {self.location}:{reference}: "
                f"{response.status_code} {response.reason}"
            )

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    def push_signature(
        self,
        envelope: SignatureEnvelope,
        subject: Descriptor,
        *,
        cancellation: CancellationToken | None = None,
    ) -> Descriptor:
        """Push a signature envelope as a referrer of ``subject``.

        Raises:
            SignaturePushError: If any blob, manifest or index upload fails.
            ReferrersIndexCleanupError: If only the stale index deletion fails.
        """
        log = logger.bind(registry=self.registry, repository=self.repository, subject=subject.digest)

        with tracer.start_as_current_span("ocisign.registry.push_signature") as span:
            span.set_attribute("ocisign.registry", self.registry)
            span.set_attribute("ocisign.subject.digest", subject.digest)
            span.set_attribute("ocisign.manifest_kind", self._manifest_kind.value)

            try:
                signature = self._push_signature_manifest(envelope, subject, cancellation)
                log.info(
                    "signature_manifest_pushed",
                    digest=signature.digest,
                )
            except (SignaturePushError, OperationCancelledError):
                raise
            except Exception as e:
                log.error("signature_push_failed", error=str(e))
                raise SignaturePushError(self.location, str(e)) from e

            span.set_attribute("ocisign.signature.digest", signature.digest)
        return signature

    def _push_signature_manifest(
        self,
        envelope: SignatureEnvelope,
        subject: Descriptor,
        cancellation: CancellationToken | None,
    ) -> Descriptor:
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

        if self._manifest_kind is SignatureManifestKind.IMAGE:
            self._push_blob(OCI_EMPTY_CONFIG_BYTES, EMPTY_CONFIG_DESCRIPTOR, cancellation)
        self._push_blob(envelope.content, envelope_descriptor, cancellation)

        response = self._put_manifest(
            manifest.content,
            manifest.descriptor.media_type,
            manifest.descriptor.digest,
            cancellation,
        )

        if response.headers.get(HEADER_SUBJECT) == subject.digest:
            logger.debug("referrers_api_supported", registry=self.registry)
            return manifest.descriptor

        self._update_referrers_index(subject, manifest.descriptor, cancellation)
        return manifest.descriptor

    def _push_blob(
        self,
        content: bytes,
        descriptor: Descriptor,
        cancellation: CancellationToken | None,
    ) -> None:
        """Upload a blob unless the registry already has it."""
        head = self._request(
            "HEAD",
            self._url(f"blobs/{descriptor.digest}"),
            cancellation=cancellation,
            operation="blob_exists",
        )
        if head.status_code == 200:
            return
        self._check_auth(head)

        start = self._request(
            "POST",
            self._url("blobs/uploads/"),
            cancellation=cancellation,
            operation="blob_upload",
        )
        self._check_auth(start)
        location = start.headers.get("Location")
        if start.status_code != 202 or not location:
            raise SignaturePushError(
                self.location,
                f"blob upload not accepted: {start.status_code} {start.reason}",
            )

        upload_url = urljoin(f"{self._config.scheme}://{self.registry}/", location)
        separator = "&" if "?" in upload_url else "?"
        upload_url = f"{upload_url}{separator}{urlencode({'digest': descriptor.digest})}"

        put = self._request(
            "PUT",
            upload_url,
            headers={
                "Content-Type": "application/octet-stream",
                "Content-Length": str(len(content)),
            },
            data=content,
            cancellation=cancellation,
            operation="blob_upload",
        )
        self._check_auth(put)
        if put.status_code != 201:
            raise SignaturePushError(
                self.location,
                f"blob {descriptor.digest} upload failed: {put.status_code} {put.text}",
            )
        logger.debug("blob_pushed", digest=descriptor.digest, size=descriptor.size)

    def _put_manifest(
        self,
        content: bytes,
        media_type: str,
        reference: str,
        cancellation: CancellationToken | None,
    ) -> requests.Response:
        response = self._request(
            "PUT",
            self._url(f"manifests/{reference}"),
            headers={"Content-Type": media_type, "Content-Length": str(len(content))},
            data=content,
            cancellation=cancellation,
            operation="manifest_push",
        )
        self._check_auth(response)
        if response.status_code != 201:
            raise SignaturePushError(
                self.location,
                f"manifest {reference} push failed: {response.status_code} {response.text}",
            )
        return response

    def _update_referrers_index(
        self,
        subject: Descriptor,
        signature: Descriptor,
        cancellation: CancellationToken | None,
    ) -> None:
        """Add ``signature`` to the referrers index kept under the fallback tag."""
        tag = referrers_tag(subject.digest)
        log = logger.bind(registry=self.registry, repository=self.repository, tag=tag)

        response = self._request(
            "GET",
            self._url(f"manifests/{tag}"),
            headers={"Accept": OCI_IMAGE_INDEX},
            cancellation=cancellation,
            operation="referrers_fetch",
        )
        self._check_auth(response)
        old_digest: str | None = None
        referrers: list[Descriptor] = []
        if response.status_code == 200:
            old_digest = calculate_digest(response.content)
            referrers = parse_referrers_index(response.content)
        elif response.status_code != 404:
            raise SignaturePushError(
                self.location,
                f"referrers index {tag} fetch failed: {response.status_code} {response.reason}",
            )

        if any(referrer.digest == signature.digest for referrer in referrers):
            log.debug("referrers_index_unchanged", digest=old_digest)
            return

        index = build_referrers_index([*referrers, signature])
        self._put_manifest(index.content, OCI_IMAGE_INDEX, tag, cancellation)
        log.info("referrers_index_updated", digest=index.descriptor.digest, count=len(referrers) + 1)

        if old_digest is None or old_digest == index.descriptor.digest:
            return

        reason = self._delete_manifest(old_digest, cancellation)
        if reason is not None:
            log.warning("referrers_index_cleanup_failed", stale_digest=old_digest, reason=reason)
            raise ReferrersIndexCleanupError(self.location, signature, old_digest, reason)

    def _delete_manifest(self, digest: str, cancellation: CancellationToken | None) -> str | None:
        """Delete a manifest by digest; return why it failed, or None.

        Any failure counts, including server errors and lost connections
        after retries.
        """
        try:
            response = self._request(
                "DELETE",
                self._url(f"manifests/{digest}"),
                cancellation=cancellation,
                operation="referrers_cleanup",
            )
        except (RegistryUnavailableError, AuthenticationError) as e:
            return str(e)
        if response.status_code not in (200, 202):
            return f"{response.status_code} {response.reason}"
        return None

    def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._oras_client is not None:
            session = getattr(self._oras_client.remote, "session", None)
            if session is not None:
                session.close()
            self._oras_client = None


def _content_type(response: requests.Response) -> str:
    """Return the media type from Content-Type, without parameters."""
    return response.headers.get("Content-Type", "").split(";", 1)[0].strip()


def _media_type_from_body(content: bytes) -> str:
    """Read ``mediaType`` from a manifest body."""
    try:
        data: dict[str, Any] = json.loads(content)
    except ValueError as e:
        raise OCISignError(f"manifest is not valid JSON: {e}") from e
    media_type = data.get("mediaType")
    if not isinstance(media_type, str) or not media_type:
        raise OCISignError("manifest has no mediaType")
    return media_type


__all__ = ["RegistryRepository"]
