"""Signing workflow.

Key Components:
- resolve_reference: tag or digest -> digest-pinned ResolvedTarget
- prepare_signing_inputs / build_signing_request: pure request construction
- sign: signer call and signature push through a Repository
- classify_outcome: success, success with warning, or failure
- run_sign: the whole pipeline behind ``ocisign sign``

Example:
    >>> outcome = run_sign(
    ...     SignOptions(reference="registry.example.com/repo@sha256:..."),
    ...     repository_factory=open_repository,
    ...     signer_factory=get_signer,
    ...     notifier=ConsoleNotifier(),
    ... )
    >>> outcome.succeeded
    True
"""

from __future__ import annotations

from ocisign.signing.flags import parse_flag_map
from ocisign.signing.notifier import ConsoleNotifier, Notifier, RecordingNotifier
from ocisign.signing.orchestrator import sign
from ocisign.signing.outcome import (
    SigningFailure,
    SigningOutcome,
    SigningSuccess,
    SigningSuccessWithWarning,
    classify_outcome,
)
from ocisign.signing.request import (
    SigningInputs,
    build_signing_request,
    prepare_signing_inputs,
)
from ocisign.signing.resolver import MUTABLE_TAG_WARNING, resolve_reference
from ocisign.signing.workflow import (
    SignOptions,
    render_outcome,
    run_sign,
    validate_signature_manifest,
)

__all__: list[str] = [
    "MUTABLE_TAG_WARNING",
    "ConsoleNotifier",
    "Notifier",
    "RecordingNotifier",
    "SignOptions",
    "SigningFailure",
    "SigningInputs",
    "SigningOutcome",
    "SigningSuccess",
    "SigningSuccessWithWarning",
    "build_signing_request",
    "classify_outcome",
    "parse_flag_map",
    "prepare_signing_inputs",
    "render_outcome",
    "resolve_reference",
    "run_sign",
    "sign",
    "validate_signature_manifest",
]
