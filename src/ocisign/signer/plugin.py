"""Signing plugin invocation.

A plugin is an executable at ``<config>/plugins/<name>/ocisign-<name>``. It is
run as ``ocisign-<name> generate-envelope`` with a JSON request on stdin and
must print a JSON response on stdout.

Request::

    {
      "contractVersion": "1.0",
      "keyId": "<key id>",
      "payload": "<base64 payload JSON>",
      "payloadType": "application/vnd.cncf.notary.payload.v1+json",
      "signatureEnvelopeType": "application/jose+json",
      "pluginConfig": {...},
      "expiryDurationInSeconds": 86400
    }

Response::

    {
      "signatureEnvelope": "<base64 envelope>",
      "signatureEnvelopeType": "application/jose+json",
      "annotations": {...}
    }
"""

from __future__ import annotations

import base64
import binascii
import json
import subprocess
from pathlib import Path
from typing import Any

import structlog

from ocisign.errors import SigningFailedError
from ocisign.oci.manifest import canonical_json
from ocisign.oci.media_types import SIGNATURE_PAYLOAD_TYPE
from ocisign.schemas.reference import Descriptor
from ocisign.schemas.signing import SignatureEnvelope, SigningRequest

logger = structlog.get_logger(__name__)

CONTRACT_VERSION = "1.0"
GENERATE_ENVELOPE = "generate-envelope"


class PluginSigner:
    """Signer delegating envelope generation to a plugin executable."""

    def __init__(
        self,
        plugin_name: str,
        key_id: str,
        *,
        plugin_dir: Path,
        plugin_config: dict[str, str] | None = None,
        timeout: float = 60.0,
    ) -> None:
        """Initialize PluginSigner.

        Args:
            plugin_name: Plugin name (directory under plugin_dir).
            key_id: Key identifier understood by the plugin.
            plugin_dir: Directory containing installed plugins.
            plugin_config: Configuration from signingkeys.yaml; request-level
                ``--plugin-config`` values override it.
            timeout: Seconds to wait for the plugin.
        """
        self.plugin_name = plugin_name
        self.key_id = key_id
        self._plugin_dir = plugin_dir
        self._plugin_config = dict(plugin_config or {})
        self._timeout = timeout

    @property
    def executable(self) -> Path:
        """Path of the plugin executable."""
        return self._plugin_dir / self.plugin_name / f"ocisign-{self.plugin_name}"

    def build_request(self, descriptor: Descriptor, request: SigningRequest) -> dict[str, Any]:
        """Build the generate-envelope request document."""
        payload = canonical_json({"targetArtifact": descriptor.to_oci()})
        plugin_request: dict[str, Any] = {
            "contractVersion": CONTRACT_VERSION,
            "keyId": self.key_id,
            "payload": base64.b64encode(payload).decode("ascii"),
            "payloadType": SIGNATURE_PAYLOAD_TYPE,
            "signatureEnvelopeType": request.signature_media_type,
            "pluginConfig": {**self._plugin_config, **request.plugin_config},
        }
        if request.has_expiry:
            plugin_request["expiryDurationInSeconds"] = int(request.expiry.total_seconds())
        return plugin_request

    def sign(self, descriptor: Descriptor, request: SigningRequest) -> SignatureEnvelope:
        """Run the plugin and return the envelope it produced.

        Raises:
            SigningFailedError: If the plugin is missing, fails, times out or
                returns an unusable response.
        """
        executable = self.executable
        if not executable.is_file():
            raise SigningFailedError(f"plugin {self.plugin_name!r} not found at {executable}")

        log = logger.bind(plugin=self.plugin_name, key_id=self.key_id, digest=descriptor.digest)
        log.debug("plugin_invoked", executable=str(executable))

        try:
            result = subprocess.run(
                [str(executable), GENERATE_ENVELOPE],
                input=json.dumps(self.build_request(descriptor, request)),
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise SigningFailedError(
                f"plugin {self.plugin_name!r} timed out after {self._timeout:g} seconds"
            ) from e
        except OSError as e:
            raise SigningFailedError(f"plugin {self.plugin_name!r} could not be run: {e}") from e

        if result.returncode != 0:
            log.error("plugin_failed", returncode=result.returncode)
            raise SigningFailedError(
                f"plugin {self.plugin_name!r} failed with exit code {result.returncode}: "
                f"{result.stderr.strip()}"
            )

        try:
            response: dict[str, Any] = json.loads(result.stdout)
            content = base64.b64decode(response["signatureEnvelope"], validate=True)
        except (ValueError, KeyError, TypeError, binascii.Error) as e:
            raise SigningFailedError(
                f"plugin {self.plugin_name!r} returned an invalid response: {e}"
            ) from e

        envelope_type = response.get("signatureEnvelopeType")
        if envelope_type != request.signature_media_type:
            raise SigningFailedError(
                f"plugin {self.plugin_name!r} returned envelope type {envelope_type!r}, "
                f"expected {request.signature_media_type!r}"
            )

        annotations = response.get("annotations") or {}
        log.info("plugin_envelope_generated", size=len(content))
        return SignatureEnvelope(
            content=content,
            media_type=envelope_type,
            annotations={str(k): str(v) for k, v in annotations.items()},
        )


__all__ = ["PluginSigner"]
