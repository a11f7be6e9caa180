"""
Semantic Version Resolution.

Parses, bumps and compares release versions and resolves the version of
the first scheduled release so a tenant's versions never go backwards.

Exports:
    parse_version: "v1.2.3-rc1" -> (1, 2, 3)
    format_version: (1, 2, 3) -> "1.2.3"
    bump_version: Apply a MAJOR/MINOR/HOTFIX bump
    compare_versions: -1, 0 or 1
    resolve_first_scheduled_version: max(initial, bump(latest))
    is_valid_version: Non-raising parse check
    latest_version: Highest valid version of a collection
    VersionResolver: The functions above as an injectable object
"""

from typing import Iterable, Optional, Tuple, Union

from exceptions import InvalidVersionFormatError
from ..models.enums import ReleaseType

VersionTuple = Tuple[int, int, int]


def parse_version(version: str) -> VersionTuple:
    """
    Parse a version string into its numeric (major, minor, patch).

    Strips an optional leading "v" and anything from the first "-" or
    "+" on. At least three dot-separated numeric components are
    required; only the first three are used.

    Raises:
        InvalidVersionFormatError: Fewer than three numeric components

    Example:
        >>> parse_version("v2.10.3-beta.1")
        (2, 10, 3)
    """
    if not isinstance(version, str):
        raise InvalidVersionFormatError(str(version))

    core = version.strip()
    if core[:1] in ("v", "V"):
        core = core[1:]
    core = core.split("-", 1)[0].split("+", 1)[0]

    parts = core.split(".")
    if len(parts) < 3 or not all(part.isascii() and part.isdigit() for part in parts[:3]):
        raise InvalidVersionFormatError(version)

    return int(parts[0]), int(parts[1]), int(parts[2])


def format_version(major: int, minor: int, patch: int) -> str:
    return f"{major}.{minor}.{patch}"


def bump_version(version: str, release_type: Union[ReleaseType, str]) -> str:
    """
    Bump a version by release type.

    Example:
        >>> bump_version("1.2.3", ReleaseType.MINOR)
        '1.3.0'
    """
    major, minor, patch = parse_version(version)
    release_type = ReleaseType(release_type.lower()) if isinstance(release_type, str) else release_type

    if release_type == ReleaseType.MAJOR:
        return format_version(major + 1, 0, 0)
    if release_type == ReleaseType.MINOR:
        return format_version(major, minor + 1, 0)
    return format_version(major, minor, patch + 1)


def compare_versions(v1: str, v2: str) -> int:
    """Lexicographic comparison over (major, minor, patch)."""
    left, right = parse_version(v1), parse_version(v2)
    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def resolve_first_scheduled_version(
    initial_version: str,
    latest_known_version: Optional[str],
    release_type: Union[ReleaseType, str]
) -> str:
    """
    Version for the first release a schedule creates.

    With no prior version the configured initial version is used as is.
    Otherwise the bumped latest version wins only when it is strictly
    higher; ties keep initial_version.

    Examples:
        >>> resolve_first_scheduled_version("1.0.0", None, ReleaseType.MINOR)
        '1.0.0'
        >>> resolve_first_scheduled_version("1.0.0", "1.2.0", ReleaseType.MINOR)
        '1.3.0'
        >>> resolve_first_scheduled_version("2.0.0", "1.2.0", ReleaseType.MINOR)
        '2.0.0'
    """
    parse_version(initial_version)
    if latest_known_version is None:
        return initial_version

    bumped = bump_version(latest_known_version, release_type)
    if compare_versions(initial_version, bumped) >= 0:
        return initial_version
    return bumped


def is_valid_version(version: str) -> bool:
    try:
        parse_version(version)
    except InvalidVersionFormatError:
        return False
    return True


def latest_version(versions: Iterable[str]) -> Optional[str]:
    """Highest of the given versions; unparseable ones are skipped."""
    valid = [v for v in versions if is_valid_version(v)]
    if not valid:
        return None
    return max(valid, key=parse_version)


class VersionResolver:
    """Injectable wrapper so collaborators can be handed a resolver object."""

    parse = staticmethod(parse_version)
    format = staticmethod(format_version)
    bump = staticmethod(bump_version)
    compare = staticmethod(compare_versions)
    resolve_first_scheduled_version = staticmethod(resolve_first_scheduled_version)
    is_valid = staticmethod(is_valid_version)
    latest = staticmethod(latest_version)


__all__ = [
    'VersionTuple',
    'parse_version',
    'format_version',
    'bump_version',
    'compare_versions',
    'resolve_first_scheduled_version',
    'is_valid_version',
    'latest_version',
    'VersionResolver',
]
