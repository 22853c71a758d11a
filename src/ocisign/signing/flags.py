"""KEY=VALUE flag parsing for --plugin-config and --user-metadata."""

from __future__ import annotations

from collections.abc import Iterable

from ocisign.errors import InvalidFlagError


def parse_flag_map(entries: Iterable[str], flag_name: str) -> dict[str, str]:
    """Parse repeated ``KEY=VALUE`` entries into a dict.

    Each entry is split at its first ``=``, so values may contain ``=``.

    Args:
        entries: Raw flag values in command-line order.
        flag_name: Flag name used in error messages.

    Returns:
        Mapping of keys to values.

    Raises:
        InvalidFlagError: If an entry has no ``=``, an empty key, or repeats
            a key.

    Example:
        >>> parse_flag_map(["a=1", "b=x=y"], "--user-metadata")
        {'a': '1', 'b': 'x=y'}
    """
    result: dict[str, str] = {}
    for entry in entries:
        key, sep, value = entry.partition("=")
        if not sep:
            raise InvalidFlagError(flag_name, entry, f"{entry!r} is not in KEY=VALUE form")
        if not key:
            raise InvalidFlagError(flag_name, entry, f"{entry!r} has an empty key")
        if key in result:
            raise InvalidFlagError(flag_name, entry, f"duplicate key {key!r}")
        result[key] = value
    return result


__all__ = ["parse_flag_map"]
