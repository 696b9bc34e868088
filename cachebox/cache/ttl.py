"""
CacheBox — TTL Parsing

Converts human-readable durations such as ``"30s"``, ``"5m"``, ``"2h"`` or
``"1d"`` into whole seconds. Every driver goes through parse_ttl() so that
TTL semantics are identical across backends.
"""

import re

from ..errors import InvalidTtlFormatError

UNIT_SECONDS: dict[str, int] = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
}

_TTL_PATTERN = re.compile(r"(\d+)([smhd])", re.IGNORECASE | re.ASCII)


def parse_ttl(ttl: str | None) -> int | None:
    """
    Parse a TTL string into seconds.

    Args:
        ttl: Duration as ``<digits><unit>`` with unit in s/m/h/d
            (case-insensitive), or None for no expiration

    Returns:
        Number of seconds, or None when ttl is None

    Raises:
        InvalidTtlFormatError: If ttl is not a valid duration string
    """
    if ttl is None:
        return None

    if not isinstance(ttl, str):
        raise InvalidTtlFormatError(str(ttl))

    match = _TTL_PATTERN.fullmatch(ttl)
    if match is None:
        raise InvalidTtlFormatError(ttl)

    magnitude, unit = match.groups()
    return int(magnitude) * UNIT_SECONDS[unit.lower()]
