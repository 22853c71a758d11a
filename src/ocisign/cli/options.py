"""Custom Click parameter types."""

from __future__ import annotations

import re
from datetime import timedelta
from typing import Any

import click

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")

_UNIT_SECONDS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: str) -> timedelta:
    """Parse a duration such as ``24h``, ``90m``, ``3600s`` or ``1h30m``.

    A leading ``-`` gives a negative duration; ``0`` alone is zero.

    Raises:
        ValueError: If the string is not a duration.

    Example:
        >>> parse_duration("1h30m")
        datetime.timedelta(seconds=5400)
    """
    text = value.strip()
    sign = 1
    if text and text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f"invalid duration {value!r}")

    seconds = 0.0
    position = 0
    for match in _DURATION_PART_RE.finditer(text):
        if match.start() != position:
            break
        seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()
    if position != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return timedelta(seconds=sign * seconds)


class DurationParamType(click.ParamType):
    """Click type converting duration strings to timedelta."""

    name = "duration"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> Any:
        if isinstance(value, timedelta):
            return value
        try:
            return parse_duration(str(value))
        except ValueError as e:
            self.fail(f"{e} (examples: 24h, 90m, 3600s, 1h30m)", param, ctx)


DURATION = DurationParamType()


__all__ = ["DURATION", "DurationParamType", "parse_duration"]
