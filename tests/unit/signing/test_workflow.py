"""Unit tests for the end-to-end sign workflow with in-memory fakes."""

from __future__ import annotations

from datetime import timedelta
from typing import Any
from unittest.mock import MagicMock

import pytest

from ocisign.errors import (
    InvalidArgumentError,
    InvalidFlagError,
    InvalidReferenceError,
    ReferrersIndexCleanupError,
    SignaturePushError,
    SignerConfigError,
)
from ocisign.oci.media_types import OCI_IMAGE_MANIFEST
from ocisign.schemas.reference import Descriptor, LocalReference, RemoteReference
from ocisign.schemas.signing import SignatureManifestKind
from ocisign.signing.notifier import RecordingNotifier
from ocisign.signing.outcome import (
    ARTIFACT_MANIFEST_GUIDANCE,
    STALE_REFERRERS_INDEX_WARNING,
    SigningFailure,
    SigningSuccess,
    SigningSuccessWithWarning,
)
from ocisign.signing.resolver import MUTABLE_TAG_WARNING
from ocisign.signing.workflow import (
    SignOptions,
    render_outcome,
    run_sign,
    validate_signature_manifest,
)

LOCATION = "registry.example.com/net-monitor"


class _Factories:
    """Repository and signer factories recording how they were called."""

    def __init__(self, repository: Any, signer: Any) -> None:
        self.repository = repository
        self.signer = signer
        self.opened: list[tuple[Any, SignatureManifestKind]] = []
        self.signer_calls = 0

    def open(self, reference: Any, kind: SignatureManifestKind) -> Any:
        self.opened.append((reference, kind))
        return self.repository

    def get_signer(self) -> Any:
        self.signer_calls += 1
        return self.signer


@pytest.fixture
def factories(fake_repository: Any, fake_signer: Any) -> _Factories:
    return _Factories(fake_repository, fake_signer)


def _run(options: SignOptions, factories: _Factories, notifier: RecordingNotifier) -> Any:
    return run_sign(
        options,
        repository_factory=factories.open,
        signer_factory=factories.get_signer,
        notifier=notifier,
    )


class TestRunSign:
    """Tests for run_sign."""

    @pytest.mark.requirement("workflow-tag")
    def test_tag_reference(
        self,
        factories: _Factories,
        manifest_descriptor: Descriptor,
        notifier: RecordingNotifier,
    ) -> None:
        """Test signing by tag warns once and reports the digest-pinned reference."""
        outcome = _run(SignOptions(reference=f"{LOCATION}:v1"), factories, notifier)

        assert isinstance(outcome, SigningSuccess)
        assert outcome.reference == f"{LOCATION}@{manifest_descriptor.digest}"
        assert notifier.warnings == [MUTABLE_TAG_WARNING.format(tag="v1")]
        assert factories.repository.closed
        assert len(factories.repository.pushed) == 1

        reference, kind = factories.opened[0]
        assert isinstance(reference, RemoteReference)
        assert kind is SignatureManifestKind.IMAGE

    @pytest.mark.requirement("workflow-digest")
    def test_digest_reference(
        self,
        factories: _Factories,
        manifest_descriptor: Descriptor,
        notifier: RecordingNotifier,
    ) -> None:
        """Test signing by digest produces no warning."""
        reference = f"{LOCATION}@{manifest_descriptor.digest}"
        outcome = _run(SignOptions(reference=reference), factories, notifier)

        assert outcome == SigningSuccess(
            reference=reference,
            signature_descriptor=outcome.signature_descriptor,
        )
        assert notifier.warnings == []

    @pytest.mark.requirement("workflow-local")
    def test_local_content(
        self,
        factories: _Factories,
        manifest_descriptor: Descriptor,
        notifier: RecordingNotifier,
    ) -> None:
        """Test --local-content parses the reference as a layout path."""
        outcome = _run(
            SignOptions(reference="./layout:v1", local_content=True), factories, notifier
        )
        assert outcome.succeeded
        assert isinstance(factories.opened[0][0], LocalReference)
        assert outcome.reference == f"./layout@{manifest_descriptor.digest}"

    @pytest.mark.requirement("workflow-request")
    def test_request_carries_options(
        self,
        factories: _Factories,
        manifest_descriptor: Descriptor,
        notifier: RecordingNotifier,
    ) -> None:
        """Test expiry, plugin config and metadata reach the signer."""
        _run(
            SignOptions(
                reference=f"{LOCATION}@{manifest_descriptor.digest}",
                expiry=timedelta(hours=2),
                plugin_config=("region=eu",),
                user_metadata=("build=42",),
            ),
            factories,
            notifier,
        )
        payload, request = factories.signer.calls[0]
        assert request.artifact_reference == f"{LOCATION}@{manifest_descriptor.digest}"
        assert request.expiry == timedelta(hours=2)
        assert request.plugin_config == {"region": "eu"}
        assert payload.annotations == {"build": "42"}

    @pytest.mark.requirement("workflow-stale-index")
    def test_stale_index_is_success_with_warning(
        self,
        factories: _Factories,
        manifest_descriptor: Descriptor,
        notifier: RecordingNotifier,
    ) -> None:
        """Test a cleanup failure on image manifests still succeeds."""
        signature = Descriptor(media_type=OCI_IMAGE_MANIFEST, digest="sha256:" + "5" * 64, size=1)
        factories.repository.push_error = ReferrersIndexCleanupError(
            LOCATION, signature, "sha256:" + "6" * 64, "405 Method Not Allowed"
        )
        reference = f"{LOCATION}@{manifest_descriptor.digest}"

        outcome = _run(SignOptions(reference=reference), factories, notifier)

        assert isinstance(outcome, SigningSuccessWithWarning)
        assert outcome.warning == STALE_REFERRERS_INDEX_WARNING
        assert outcome.reference == reference
        assert factories.repository.closed

    @pytest.mark.requirement("workflow-artifact-guidance")
    def test_artifact_push_failure_has_guidance(
        self,
        fake_signer: Any,
        make_repository: Any,
        manifest_descriptor: Descriptor,
        notifier: RecordingNotifier,
    ) -> None:
        """Test an artifact manifest push failure suggests image manifests."""
        repository = make_repository(SignatureManifestKind.ARTIFACT)
        repository.push_error = SignaturePushError(LOCATION, "unsupported media type")
        factories = _Factories(repository, fake_signer)

        outcome = _run(
            SignOptions(
                reference=f"{LOCATION}@{manifest_descriptor.digest}",
                signature_manifest="artifact",
            ),
            factories,
            notifier,
        )

        assert isinstance(outcome, SigningFailure)
        assert outcome.guidance == ARTIFACT_MANIFEST_GUIDANCE
        assert factories.opened[0][1] is SignatureManifestKind.ARTIFACT
        assert repository.closed

    @pytest.mark.requirement("workflow-validation")
    @pytest.mark.parametrize("value", ["Image", "oci", ""])
    def test_invalid_signature_manifest(
        self, value: str, factories: _Factories, notifier: RecordingNotifier
    ) -> None:
        """Test an unknown manifest kind fails before any I/O."""
        outcome = _run(
            SignOptions(reference=f"{LOCATION}:v1", signature_manifest=value), factories, notifier
        )
        assert isinstance(outcome, SigningFailure)
        assert isinstance(outcome.cause, InvalidArgumentError)
        assert outcome.exit_code == 5
        assert factories.signer_calls == 0
        assert factories.opened == []

    @pytest.mark.requirement("workflow-validation")
    def test_invalid_flag(self, factories: _Factories, notifier: RecordingNotifier) -> None:
        """Test a malformed --user-metadata entry fails before any I/O."""
        outcome = _run(
            SignOptions(reference=f"{LOCATION}:v1", user_metadata=("novalue",)),
            factories,
            notifier,
        )
        assert isinstance(outcome, SigningFailure)
        assert isinstance(outcome.cause, InvalidFlagError)
        assert "could not parse flag --user-metadata" in outcome.message
        assert factories.opened == []

    @pytest.mark.requirement("workflow-validation")
    def test_signer_selected_before_repository(self, notifier: RecordingNotifier) -> None:
        """Test a signer configuration error does not open the repository."""
        repository_factory = MagicMock()
        outcome = run_sign(
            SignOptions(reference=f"{LOCATION}:v1"),
            repository_factory=repository_factory,
            signer_factory=MagicMock(side_effect=SignerConfigError("no default key")),
            notifier=notifier,
        )
        assert isinstance(outcome, SigningFailure)
        assert outcome.exit_code == 10
        repository_factory.assert_not_called()

    @pytest.mark.requirement("workflow-validation")
    def test_invalid_reference(self, factories: _Factories, notifier: RecordingNotifier) -> None:
        """Test a malformed reference never opens a repository."""
        outcome = _run(SignOptions(reference="localhost"), factories, notifier)
        assert isinstance(outcome, SigningFailure)
        assert isinstance(outcome.cause, InvalidReferenceError)
        assert factories.opened == []

    @pytest.mark.requirement("workflow-validation")
    def test_missing_tag_closes_repository(
        self, factories: _Factories, notifier: RecordingNotifier
    ) -> None:
        """Test the repository is closed when resolution is rejected."""
        outcome = _run(SignOptions(reference=LOCATION), factories, notifier)
        assert isinstance(outcome, SigningFailure)
        assert isinstance(outcome.cause, InvalidReferenceError)
        assert factories.repository.closed
        assert factories.repository.pushed == []


class TestRenderOutcome:
    """Tests for render_outcome."""

    @pytest.mark.requirement("workflow-render")
    def test_success(self, notifier: RecordingNotifier) -> None:
        """Test success prints one line."""
        render_outcome(SigningSuccess(reference="r/repo@sha256:x"), notifier)
        assert notifier.reports == ["Successfully signed r/repo@sha256:x"]
        assert notifier.warnings == []

    @pytest.mark.requirement("workflow-render")
    def test_warning_before_success(self, notifier: RecordingNotifier) -> None:
        """Test the warning is shown before the success line."""
        render_outcome(
            SigningSuccessWithWarning(reference="r/repo@sha256:x", warning="gc needed"), notifier
        )
        assert notifier.warnings == ["gc needed"]
        assert notifier.reports == ["Successfully signed r/repo@sha256:x"]

    @pytest.mark.requirement("workflow-render")
    def test_failure_not_rendered(self, notifier: RecordingNotifier) -> None:
        """Test failures are left to the caller."""
        render_outcome(SigningFailure(cause=InvalidArgumentError("bad")), notifier)
        assert notifier.reports == []


class TestValidateSignatureManifest:
    """Tests for validate_signature_manifest."""

    @pytest.mark.requirement("workflow-validation")
    def test_exact_values(self) -> None:
        """Test both supported values map to their kinds."""
        assert validate_signature_manifest("image") is SignatureManifestKind.IMAGE
        assert validate_signature_manifest("artifact") is SignatureManifestKind.ARTIFACT

    @pytest.mark.requirement("workflow-validation")
    def test_error_lists_options(self) -> None:
        """Test the error lists the supported values."""
        with pytest.raises(InvalidArgumentError, match='"image", "artifact"'):
            validate_signature_manifest("IMAGE")
