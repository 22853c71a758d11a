"""Unit tests for duration parsing used by --expiry."""

from __future__ import annotations

from datetime import timedelta

import click
import pytest

from ocisign.cli.options import DURATION, parse_duration


class TestParseDuration:
    """Tests for parse_duration."""

    @pytest.mark.requirement("cli-expiry")
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("24h", timedelta(hours=24)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("90m", timedelta(minutes=90)),
            ("3600s", timedelta(hours=1)),
            ("1.5h", timedelta(minutes=90)),
            ("500ms", timedelta(milliseconds=500)),
            ("0", timedelta(0)),
            ("-1h", timedelta(hours=-1)),
            (" 8760h ", timedelta(days=365)),
        ],
    )
    def test_valid(self, value: str, expected: timedelta) -> None:
        """Test Go-style duration strings are accepted."""
        assert parse_duration(value) == expected

    @pytest.mark.requirement("cli-expiry")
    @pytest.mark.parametrize("value", ["", "h", "10", "1d", "1h 30m", "h1"])
    def test_invalid(self, value: str) -> None:
        """Test strings without a unit or with unknown units are rejected."""
        with pytest.raises(ValueError, match="invalid duration"):
            parse_duration(value)


class TestDurationParamType:
    """Tests for the click DURATION type."""

    @pytest.mark.requirement("cli-expiry")
    def test_convert(self) -> None:
        """Test strings convert and timedeltas pass through."""
        assert DURATION.convert("2h", None, None) == timedelta(hours=2)
        assert DURATION.convert(timedelta(minutes=5), None, None) == timedelta(minutes=5)

    @pytest.mark.requirement("cli-expiry")
    def test_convert_failure(self) -> None:
        """Test invalid values raise click.BadParameter with examples."""
        with pytest.raises(click.BadParameter, match="examples: 24h"):
            DURATION.convert("soon", None, None)
