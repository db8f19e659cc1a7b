"""
Unit tests for version priority ordering.

Tests branch precedence, semantic version scoring, and alias resolution.
"""

import pytest

from component_library.cache import versions


@pytest.mark.unit
class TestSortVersions:
    """Test sort_versions ordering."""

    def test_sort_is_idempotent(self) -> None:
        """Sorting an already sorted list changes nothing."""
        labels = ["feature-x", "v1.2.0", "master", "0.9.1", "main", "release", "v10.0.0"]
        once = versions.sort_versions(labels)
        assert versions.sort_versions(once) == once

    def test_semantic_versions_ordered_numerically(self) -> None:
        """v1.10.0 outranks v1.9.0 (not lexicographic)."""
        assert versions.sort_versions(["v1.9.0", "v1.10.0"]) == ["v1.10.0", "v1.9.0"]

    def test_higher_semver_precedes_lower(self) -> None:
        """Higher major/minor/patch always comes first."""
        result = versions.sort_versions(["1.0.1", "2.0.0", "1.1.0", "v0.0.9"])
        assert result == ["2.0.0", "1.1.0", "1.0.1", "v0.0.9"]

    def test_main_precedes_master_precedes_semver(self) -> None:
        """Branch precedence: main, master, then tags."""
        result = versions.sort_versions(["v99.0.0", "master", "main"])
        assert result == ["main", "master", "v99.0.0"]

    def test_main_outranks_any_tag(self) -> None:
        assert versions.sort_versions(["v1.0.0", "main"])[0] == "main"

    def test_non_semver_after_semver_reverse_lexicographic(self) -> None:
        """Other labels come last, reverse-lexicographically."""
        result = versions.sort_versions(["alpha", "v0.1.0", "beta", "gamma"])
        assert result == ["v0.1.0", "gamma", "beta", "alpha"]

    def test_equal_scores_keep_input_order(self) -> None:
        """Labels with equal semantic scores keep their relative order."""
        assert versions.sort_versions(["1.0.0", "v1.0.0"]) == ["1.0.0", "v1.0.0"]
        assert versions.sort_versions(["v1.0.0", "1.0.0"]) == ["v1.0.0", "1.0.0"]

    def test_prerelease_suffix_scored_by_prefix(self) -> None:
        """Only the leading X.Y.Z counts toward the score."""
        assert versions.semver_score("v1.2.3-rc1") == 1_002_003

    def test_latest_is_ordinary_label(self) -> None:
        """The sorter treats "latest" like any other non-semver label."""
        assert versions.sort_versions(["latest", "v1.0.0"]) == ["v1.0.0", "latest"]

    def test_empty_input(self) -> None:
        assert versions.sort_versions([]) == []


@pytest.mark.unit
class TestLatestAlias:
    """Test alias handling helpers."""

    def test_resolve_latest_drops_alias_and_dedupes(self) -> None:
        result = versions.resolve_latest(["latest", "main", "v1.0.0", "main", "v2.0.0"])
        assert result == ["main", "v2.0.0", "v1.0.0"]

    def test_resolve_version_alias_picks_highest_semver(self) -> None:
        assert versions.resolve_version_alias("latest", ["main", "v1.2.0", "v1.10.0"]) == "v1.10.0"

    def test_resolve_version_alias_falls_back_without_semver(self) -> None:
        assert versions.resolve_version_alias("latest", ["main", "develop"]) == "main"

    def test_resolve_version_alias_leaves_concrete_versions(self) -> None:
        assert versions.resolve_version_alias("v1.0.0", ["v2.0.0"]) == "v1.0.0"

    def test_highest_semver_none_without_tags(self) -> None:
        assert versions.highest_semver(["main", "master"]) is None
