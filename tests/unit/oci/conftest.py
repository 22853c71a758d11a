"""Fixtures for registry backend tests.

The ORAS client is a MagicMock whose ``remote.do_request`` is served by
FakeRegistry, an in-memory distribution API with just enough behavior for
blob uploads, manifest pushes, tag lookups and deletes.
"""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from ocisign.oci.digest import calculate_digest
from ocisign.oci.registry import RegistryRepository
from ocisign.oci.resilience import RetryPolicy
from ocisign.schemas.config import RegistryConfig, RetryConfig
from ocisign.schemas.signing import SignatureManifestKind

REGISTRY = "registry.example.com"
REPOSITORY = "net-monitor"


def make_response(
    status_code: int,
    headers: dict[str, str] | None = None,
    content: bytes = b"",
    reason: str = "",
) -> requests.Response:
    """Build a requests.Response without a network round trip."""
    response = requests.Response()
    response.status_code = status_code
    response.headers = CaseInsensitiveDict(headers or {})
    response._content = content
    response.reason = reason
    response.encoding = "utf-8"
    return response


class FakeRegistry:
    """In-memory registry answering ORAS ``do_request`` calls.

    Attributes:
        blobs: digest -> content.
        manifests: tag or digest -> content.
        referrers_api: Answer manifest pushes with an OCI-Subject header.
        delete_status: Status returned for manifest DELETE.
        delete_error: Raised instead of answering a manifest DELETE.
        overrides: (method, url fragment) -> response, checked first.
        calls: (method, url) for every request.
    """

    def __init__(self, repository: str = REPOSITORY) -> None:
        self.repository = repository
        self.blobs: dict[str, bytes] = {}
        self.manifests: dict[str, bytes] = {}
        self.referrers_api = False
        self.delete_status = 202
        self.delete_error: Exception | None = None
        self.overrides: dict[tuple[str, str], requests.Response] = {}
        self.calls: list[tuple[str, str]] = []

    def add_manifest(self, content: bytes, tag: str | None = None) -> str:
        digest = calculate_digest(content)
        self.manifests[digest] = content
        if tag:
            self.manifests[tag] = content
        return digest

    def requests_for(self, method: str, fragment: str = "") -> list[str]:
        return [url for m, url in self.calls if m == method and fragment in url]

    def __call__(
        self,
        url: str,
        method: str,
        data: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        self.calls.append((method, url))
        for (override_method, fragment), response in self.overrides.items():
            if override_method == method and fragment in url:
                return response

        parsed = urlparse(url)
        rest = parsed.path[len(f"/v2/{self.repository}/") :]

        if rest.startswith("blobs/uploads/"):
            if method == "POST":
                return make_response(
                    202, {"Location": f"/v2/{self.repository}/blobs/uploads/session-1"}
                )
            digest = parse_qs(parsed.query)["digest"][0]
            self.blobs[digest] = data or b""
            return make_response(201)

        if rest.startswith("blobs/"):
            return make_response(200 if rest[len("blobs/") :] in self.blobs else 404)

        reference = rest[len("manifests/") :]
        if method == "PUT":
            content = data or b""
            self.manifests[reference] = content
            self.manifests[calculate_digest(content)] = content
            response_headers = {}
            subject = json.loads(content).get("subject")
            if self.referrers_api and subject:
                response_headers["OCI-Subject"] = subject["digest"]
            return make_response(201, response_headers)

        if method == "DELETE":
            if self.delete_error is not None:
                raise self.delete_error
            if self.delete_status in (200, 202):
                self.manifests.pop(reference, None)
            return make_response(self.delete_status, reason="Method Not Allowed")

        content = self.manifests.get(reference)
        if content is None:
            return make_response(404, reason="Not Found")
        return make_response(
            200,
            {
                "Content-Type": json.loads(content).get("mediaType", ""),
                "Docker-Content-Digest": calculate_digest(content),
                "Content-Length": str(len(content)),
            },
            content if method == "GET" else b"",
        )


@pytest.fixture
def fake_registry() -> FakeRegistry:
    """Empty FakeRegistry for REPOSITORY."""
    return FakeRegistry()


@pytest.fixture
def mock_oras_client(fake_registry: FakeRegistry) -> MagicMock:
    """ORAS client mock routing requests to fake_registry."""
    client = MagicMock()
    client.remote.do_request.side_effect = fake_registry
    return client


@pytest.fixture
def make_registry_repository(mock_oras_client: MagicMock) -> Any:
    """Factory for RegistryRepository wired to the mock ORAS client."""

    def _make(
        manifest_kind: SignatureManifestKind = SignatureManifestKind.IMAGE,
        *,
        max_attempts: int = 1,
        plain_http: bool = False,
    ) -> RegistryRepository:
        retry = RetryConfig(max_attempts=max_attempts, initial_delay_ms=0, jitter=False)
        return RegistryRepository(
            REGISTRY,
            REPOSITORY,
            manifest_kind,
            config=RegistryConfig(host=REGISTRY, plain_http=plain_http, retry=retry),
            retry_policy=RetryPolicy(retry),
            oras_client=mock_oras_client,
        )

    return _make


@pytest.fixture
def response_factory() -> Any:
    """make_response() for tests overriding single registry answers."""
    return make_response
