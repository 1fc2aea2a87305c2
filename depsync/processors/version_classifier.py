"""Version comparison and classification.

Pure functions over version strings as they appear in manifests. Comparison
is positional over the numeric segments only: pre-release and build suffixes
are ignored, so ``1.2.3-beta.1`` orders the same as ``1.2.3``. This is a
known limitation rather than an oversight.

Example:
    >>> classify("^1.2.3", "1.2.9")
    <UpdateType.PATCH: 'patch'>
    >>> is_in_range("~2.0.0", "2.1.0")
    False
"""

import re
from collections.abc import Iterable

from depsync.enums import UpdateType

_PREFIX_RE = re.compile(r"^[\s^~><=v@]+")
_OPERATOR_RE = re.compile(r"^\s*(\^|~|>=|<=|>|<|=)")
_SUFFIX_RE = re.compile(r"[-+].*$")


def strip_range_prefix(version: str) -> str:
    """Remove range operators, a leading ``v`` and whitespace."""
    return _PREFIX_RE.sub("", version.strip())


def range_prefix(version: str) -> str:
    """Return the range operator a constraint starts with, or ``""``."""
    match = _OPERATOR_RE.match(version)
    return match.group(1) if match else ""


def apply_range_prefix(current: str, proposed: str) -> str:
    """Carry the range operator of ``current`` over to ``proposed``.

    A proposed value that already has an operator is returned unchanged.

    >>> apply_range_prefix("^1.2.3", "1.2.9")
    '^1.2.9'
    """
    if range_prefix(proposed):
        return proposed
    return f"{range_prefix(current)}{proposed}"


def version_tuple(version: str) -> tuple[int, ...]:
    """Split a version into integer segments.

    Non-numeric segments count as zero.
    """
    core = _SUFFIX_RE.sub("", strip_range_prefix(version))
    if not core:
        return ()
    parts = []
    for segment in core.split("."):
        digits = re.match(r"\d+", segment)
        parts.append(int(digits.group(0)) if digits else 0)
    return tuple(parts)


def _padded(a: str, b: str) -> tuple[tuple[int, ...], tuple[int, ...]]:
    left, right = version_tuple(a), version_tuple(b)
    width = max(len(left), len(right), 3)
    return left + (0,) * (width - len(left)), right + (0,) * (width - len(right))


def classify(current: str, target: str) -> UpdateType:
    """Classify the change from ``current`` to ``target``.

    A difference in the first segment is major, in the second minor,
    anything else patch. Missing trailing segments are treated as zero.
    """
    left, right = _padded(current, target)
    if left[0] != right[0]:
        return UpdateType.MAJOR
    if left[1] != right[1]:
        return UpdateType.MINOR
    return UpdateType.PATCH


def is_newer(current: str, target: str) -> bool:
    """Return True iff ``target`` strictly exceeds ``current``."""
    left, right = _padded(current, target)
    return right > left


def is_in_range(version_range: str, version: str) -> bool:
    """Check whether ``version`` satisfies ``version_range``.

    Supports ``^`` (same major, at least the given minor.patch) and ``~``
    (same major.minor, at least the given patch). Any other operator
    degrades to exact positional equality.
    """
    operator = range_prefix(version_range)
    base, candidate = _padded(version_range, version)

    if operator == "^":
        return candidate[0] == base[0] and candidate[1:3] >= base[1:3]
    if operator == "~":
        return candidate[:2] == base[:2] and candidate[2] >= base[2]
    return candidate == base


def highest_update_type(types: Iterable[UpdateType]) -> UpdateType:
    """Return the most severe type, or patch for an empty input."""
    return max(types, key=lambda t: t.severity, default=UpdateType.PATCH)
