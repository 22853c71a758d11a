"""Signers and signer selection.

Key Components:
- Signer: protocol the orchestrator calls
- KeySigner: local PEM key + certificate chain, JWS envelopes
- PluginSigner: external plugin executable, JWS or COSE envelopes
- get_signer: picks one from CLI options and signingkeys.yaml

Selection order:
    1. --plugin NAME --id KEY_ID (on-demand plugin key)
    2. --key NAME from signingkeys.yaml
    3. ``default`` from signingkeys.yaml
"""

from __future__ import annotations

from pathlib import Path

import structlog

from ocisign.errors import SignerConfigError
from ocisign.signer.base import Signer
from ocisign.signer.config import (
    config_dir,
    load_signing_keys,
    plugin_dir,
    plugin_timeout,
)
from ocisign.signer.key import KeySigner
from ocisign.signer.plugin import PluginSigner

logger = structlog.get_logger(__name__)


def get_signer(
    *,
    key_name: str | None = None,
    plugin: str | None = None,
    key_id: str | None = None,
    config_path: Path | None = None,
) -> Signer:
    """Select the signer for this invocation.

    Args:
        key_name: ``--key`` value.
        plugin: ``--plugin`` value.
        key_id: ``--id`` value.
        config_path: Explicit signingkeys.yaml path (tests).

    Raises:
        SignerConfigError: If the options conflict or no key is configured.
        SigningFailedError: If a local key cannot be loaded.
    """
    if plugin or key_id:
        if key_name:
            raise SignerConfigError("--key cannot be combined with --plugin/--id")
        if not (plugin and key_id):
            raise SignerConfigError("--plugin and --id must be given together")
        logger.debug("signer_selected", source="plugin", plugin=plugin)
        return PluginSigner(plugin, key_id, plugin_dir=plugin_dir(), timeout=plugin_timeout())

    config = load_signing_keys(config_path)
    name = key_name or config.default
    if not name:
        raise SignerConfigError("no signing key given and no default key configured")

    key = config.get(name)
    if key is None:
        raise SignerConfigError(f"signing key {name!r} is not configured")

    logger.debug("signer_selected", source="key", key=name, plugin=key.plugin)
    if key.plugin is not None and key.id is not None:
        return PluginSigner(
            key.plugin,
            key.id,
            plugin_dir=plugin_dir(),
            plugin_config=key.plugin_config,
            timeout=plugin_timeout(),
        )
    if key.key_path is None or key.cert_path is None:
        raise SignerConfigError(f"signing key {name!r} has no key_path/cert_path")
    return KeySigner.from_files(key.key_path, key.cert_path)


__all__ = [
    "KeySigner",
    "PluginSigner",
    "Signer",
    "config_dir",
    "get_signer",
    "load_signing_keys",
]
