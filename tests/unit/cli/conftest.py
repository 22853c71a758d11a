"""Unit test fixtures for the CLI module.

CLI unit tests:
- Run without a registry (repository and signer factories are patched)
- Never touch the user's config directory or credentials
- Leave structlog unconfigured (CliRunner swaps stderr per invocation)
"""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import structlog
from click.testing import CliRunner

from ocisign.telemetry import configure_logging


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Point config at tmp_path and drop registry credentials."""
    monkeypatch.setenv("OCISIGN_CONFIG_DIR", str(tmp_path / "config"))
    for name in ("OCISIGN_USERNAME", "OCISIGN_PASSWORD", "OCISIGN_TOKEN"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def no_logging_setup() -> Generator[MagicMock, None, None]:
    """Wrap configure_logging in a pass-through mock; yields the mock."""
    with patch(
        "ocisign.cli.sign.configure_logging", side_effect=configure_logging
    ) as configure:
        yield configure
    structlog.reset_defaults()
