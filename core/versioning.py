"""
Core Module - Version Comparison.

============================================================
RESPONSIBILITY
============================================================
Compares dotted version strings to gate helper loading.

- Trailing all-zero segments are insignificant ("1.2.0" == "1.2")
- A version never strips below one segment ("0.0" -> "0")
- With equal prefixes the longer version is greater
- Malformed segments raise InvalidVersionFormat

============================================================
"""

import re
from typing import List

from .exceptions import InvalidVersionFormat


_TRAILING_ZEROS = re.compile(r"(\.0+)+$")


def _segments(version: str) -> List[int]:
    """Strip trailing zero segments and parse the rest as integers."""
    if not isinstance(version, str):
        raise InvalidVersionFormat(version)

    stripped = _TRAILING_ZEROS.sub("", version.strip())
    parts = stripped.split(".")

    segments = []
    for part in parts:
        if not (part.isascii() and part.isdigit()):
            raise InvalidVersionFormat(version, segment=part)
        segments.append(int(part))
    return segments


def compare_versions(a: str, b: str) -> int:
    """
    Compare two dotted version strings.

    Args:
        a: First version
        b: Second version

    Returns:
        Negative if a < b, zero if equal, positive if a > b

    Raises:
        InvalidVersionFormat: If either version has a malformed segment
    """
    segments_a = _segments(a)
    segments_b = _segments(b)

    for left, right in zip(segments_a, segments_b):
        diff = left - right
        if diff:
            return diff

    return len(segments_a) - len(segments_b)


def is_version_satisfied(current: str, minimum: str) -> bool:
    """Check that the current version is at least the minimum."""
    return compare_versions(current, minimum) >= 0


__all__ = [
    "compare_versions",
    "is_version_satisfied",
]
