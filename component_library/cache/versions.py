"""Version priority ordering.

Priority, highest first:
1. "main"
2. "master"
3. Semantic versions (v?X.Y.Z...), by major*1_000_000 + minor*1_000 + patch
4. Everything else, reverse-lexicographic
"""

from __future__ import annotations

import re
from collections.abc import Iterable

SEMVER_PATTERN = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)")
SEMVER_MAJOR_MULTIPLIER = 1_000_000
SEMVER_MINOR_MULTIPLIER = 1_000

LATEST_ALIAS = "latest"

_TIER_MAIN = 3
_TIER_MASTER = 2
_TIER_SEMVER = 1
_TIER_OTHER = 0


def semver_score(version: str) -> int | None:
    """Numeric score of a semantic version label, or None if it isn't one."""
    match = SEMVER_PATTERN.match(version)
    if not match:
        return None
    major, minor, patch = (int(part) for part in match.groups())
    return major * SEMVER_MAJOR_MULTIPLIER + minor * SEMVER_MINOR_MULTIPLIER + patch


def version_priority(version: str) -> tuple[int, int, str]:
    """Sort key for a version label; larger sorts first."""
    if version == "main":
        return (_TIER_MAIN, 0, "")
    if version == "master":
        return (_TIER_MASTER, 0, "")
    score = semver_score(version)
    if score is not None:
        return (_TIER_SEMVER, score, "")
    return (_TIER_OTHER, 0, version)


def sort_versions(versions: Iterable[str]) -> list[str]:
    """Return versions ordered by descending priority.

    Labels with equal semantic scores (e.g. "1.0.0" and "v1.0.0") keep their
    input order. "latest" is an ordinary label here.
    """
    return sorted(versions, key=version_priority, reverse=True)


def highest_semver(versions: Iterable[str]) -> str | None:
    """Highest semantic version among versions, or None."""
    candidates = [v for v in versions if semver_score(v) is not None]
    if not candidates:
        return None
    return sort_versions(candidates)[0]


def resolve_latest(versions: Iterable[str]) -> list[str]:
    """Drop the "latest" alias from a version set and sort it.

    The alias stands for the highest real semantic version, which is already
    part of the set, so only the concrete labels remain.
    """
    return sort_versions(dict.fromkeys(v for v in versions if v != LATEST_ALIAS))


def resolve_version_alias(version: str, available: Iterable[str], fallback: str = "main") -> str:
    """Map "latest" to the highest semantic version in available.

    Other labels are returned unchanged. With no semantic version available,
    "latest" resolves to fallback.
    """
    if version != LATEST_ALIAS:
        return version
    return highest_semver(available) or fallback
