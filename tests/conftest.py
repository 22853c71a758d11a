"""Root-level test configuration for ocisign.

Unit tests live in tests/unit/ and run without network access: the ORAS
client is mocked and OCI layouts are built under tmp_path.
"""

from __future__ import annotations

import pytest


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "requirement(id): Mark test as covering a specific requirement",
    )
