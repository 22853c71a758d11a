"""Signer configuration loading.

Config directory resolution:
    1. OCISIGN_CONFIG_DIR environment variable
    2. ~/.config/ocisign

Layout:
    <config>/signingkeys.yaml               named keys and the default key
    <config>/plugins/<name>/ocisign-<name>  signing plugin executables
"""

from __future__ import annotations

import os
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from ocisign.errors import SignerConfigError
from ocisign.schemas.config import SigningKeysConfig

logger = structlog.get_logger(__name__)

ENV_CONFIG_DIR = "OCISIGN_CONFIG_DIR"
ENV_PLUGIN_TIMEOUT = "OCISIGN_PLUGIN_TIMEOUT"

SIGNING_KEYS_FILE = "signingkeys.yaml"
PLUGINS_DIR = "plugins"
DEFAULT_PLUGIN_TIMEOUT = 60.0


def config_dir() -> Path:
    """Return the ocisign configuration directory."""
    configured = os.environ.get(ENV_CONFIG_DIR)
    if configured:
        return Path(configured)
    return Path.home() / ".config" / "ocisign"


def plugin_dir() -> Path:
    """Return the directory holding signing plugins."""
    return config_dir() / PLUGINS_DIR


def plugin_timeout() -> float:
    """Return the plugin call timeout in seconds.

    Raises:
        SignerConfigError: If OCISIGN_PLUGIN_TIMEOUT is not a positive number.
    """
    raw = os.environ.get(ENV_PLUGIN_TIMEOUT)
    if not raw:
        return DEFAULT_PLUGIN_TIMEOUT
    try:
        timeout = float(raw)
    except ValueError as e:
        raise SignerConfigError(f"{ENV_PLUGIN_TIMEOUT}={raw!r} is not a number") from e
    if timeout <= 0:
        raise SignerConfigError(f"{ENV_PLUGIN_TIMEOUT} must be positive, got {raw}")
    return timeout


def load_signing_keys(path: Path | None = None) -> SigningKeysConfig:
    """Load ``signingkeys.yaml``.

    A missing file is an empty configuration.

    Args:
        path: Explicit file path. Defaults to the config directory's file.

    Raises:
        SignerConfigError: If the file is not valid YAML or fails validation.
    """
    path = path or config_dir() / SIGNING_KEYS_FILE
    if not path.is_file():
        logger.debug("signing_keys_missing", path=str(path))
        return SigningKeysConfig()

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise SignerConfigError(f"{path}: invalid YAML: {e}") from e

    try:
        config = SigningKeysConfig.model_validate(data)
    except ValidationError as e:
        raise SignerConfigError(f"{path}: {e}") from e

    logger.debug("signing_keys_loaded", path=str(path), count=len(config.keys))
    return config


__all__ = [
    "ENV_CONFIG_DIR",
    "ENV_PLUGIN_TIMEOUT",
    "config_dir",
    "load_signing_keys",
    "plugin_dir",
    "plugin_timeout",
]
