"""Tests for bump classification and version arithmetic."""

import pytest
from packaging.version import InvalidVersion, Version

from shipit.config.labels import get_version_map, normalize_labels
from shipit.semver import (
    SemVer,
    calculate_bump,
    determine_next_version,
    inc_prerelease,
    inc_version,
    is_version,
    split_version,
    strip_prefix,
)


VERSION_MAP = get_version_map()


class TestCalculateBump:
    """Tests for calculate_bump()."""

    def test_major_beats_patch(self):
        """The highest release type wins."""
        assert calculate_bump([["major"], ["patch"]], VERSION_MAP) == SemVer.MAJOR

    def test_minor_beats_patch(self):
        assert calculate_bump([["patch"], ["minor"], ["patch"]], VERSION_MAP) == SemVer.MINOR

    def test_labels_on_one_commit(self):
        """Several version labels on one commit still resolve to the highest."""
        assert calculate_bump([["patch", "major"]], VERSION_MAP) == SemVer.MAJOR

    def test_no_labels(self):
        """Commits without version labels release nothing."""
        assert calculate_bump([[], []], VERSION_MAP) == SemVer.NO_VERSION

    def test_only_none_and_unknown_labels(self):
        """none-typed and unknown labels are not version labels."""
        assert calculate_bump([["documentation"], ["internal", "ui"]], VERSION_MAP) == SemVer.NO_VERSION

    def test_empty(self):
        assert calculate_bump([], VERSION_MAP) == SemVer.NO_VERSION

    def test_skip_excludes_commit(self):
        """A skip label removes the commit's other labels from the calculation."""
        assert calculate_bump([["skip-release", "major"], ["patch"]], VERSION_MAP) == SemVer.PATCH

    def test_all_skipped(self):
        """Only skipped commits means nothing is released."""
        result = calculate_bump([["skip-release", "minor"], ["skip-release"]], VERSION_MAP)

        assert result == SemVer.SKIPPED
        assert not result.is_release

    def test_release_overrides_skip(self):
        """A release label on the same commit keeps it in the calculation."""
        assert calculate_bump([["skip-release", "release", "minor"]], VERSION_MAP) == SemVer.MINOR

    def test_only_publish_without_release_label(self):
        """With only_publish_with_release_label nothing ships without a release label."""
        assert calculate_bump([["major"]], VERSION_MAP, only_publish_with_release_label=True) == SemVer.NO_VERSION

    def test_only_publish_with_release_label(self):
        """A release label on any commit makes the range releasable."""
        result = calculate_bump([["major"], ["release"]], VERSION_MAP, only_publish_with_release_label=True)

        assert result == SemVer.MAJOR

    def test_release_label_alone_is_patch(self):
        assert calculate_bump([["release"]], VERSION_MAP) == SemVer.PATCH

    def test_same_type_counts_once(self):
        """Two names of one type resolve to that type, not something higher."""
        version_map = get_version_map(normalize_labels([{"name": "bug", "release_type": "patch"}]))

        assert calculate_bump([["patch", "bug"], ["bug"]], version_map) == SemVer.PATCH

    def test_custom_label_names(self):
        version_map = get_version_map(normalize_labels([{"name": "breaking", "release_type": "major"}]))

        assert calculate_bump([["breaking"]], version_map) == SemVer.MAJOR

    def test_str(self):
        assert str(SemVer.NO_VERSION) == "none"
        assert str(SemVer.MINOR) == "minor"


class TestIncVersion:
    """Tests for inc_version()."""

    @pytest.mark.parametrize(
        "version,bump,expected",
        [
            ("1.2.3", SemVer.PATCH, "1.2.4"),
            ("1.2.3", SemVer.MINOR, "1.3.0"),
            ("1.2.3", SemVer.MAJOR, "2.0.0"),
            ("v1.2.3", SemVer.PATCH, "v1.2.4"),
            ("v1.3.0-next.2", SemVer.MINOR, "v1.3.0"),
        ],
    )
    def test_bumps(self, version, bump, expected):
        assert inc_version(version, bump) == expected

    def test_non_release_bump(self):
        assert inc_version("1.2.3", SemVer.NO_VERSION) is None
        assert inc_version("1.2.3", SemVer.SKIPPED) is None

    def test_invalid_version(self):
        assert inc_version("abcdef1", SemVer.PATCH) is None


class TestPrerelease:
    """Tests for prerelease versions."""

    def test_first_prerelease(self):
        assert inc_prerelease("1.2.3", SemVer.MINOR) == "1.3.0-next.0"

    def test_next_prerelease(self):
        assert inc_prerelease("v1.3.0-next.0", SemVer.PATCH) == "v1.3.0-next.1"

    def test_other_channel(self):
        assert inc_prerelease("1.3.0-beta.4", SemVer.PATCH, preid="next") == "1.3.0-next.0"

    def test_determine_continues_prerelease(self):
        """An ongoing prerelease keeps counting."""
        assert determine_next_version("v1.2.3", "v1.3.0-next.0", SemVer.MINOR) == "v1.3.0-next.1"

    def test_determine_restarts_for_bigger_bump(self):
        """A bigger bump than the ongoing prerelease starts a new one."""
        assert determine_next_version("v1.2.3", "v1.3.0-next.4", SemVer.MAJOR) == "v2.0.0-next.0"

    def test_determine_from_release(self):
        assert determine_next_version("1.2.3", "1.2.3", SemVer.PATCH, "alpha") == "1.2.4-alpha.0"


class TestParsing:
    """Tests for version parsing helpers."""

    def test_split_version(self):
        assert split_version("v1.2.3-next.0") == ("v", Version("1.2.3"), "next.0")

    def test_split_rejects_pep440_prerelease(self):
        with pytest.raises(InvalidVersion):
            split_version("1.2.3rc1")

    def test_is_version(self):
        assert is_version("v1.0.0")
        assert not is_version("5a1b2c3")
        assert not is_version(None)

    def test_strip_prefix(self):
        assert strip_prefix("v1.0.0") == "1.0.0"
        assert strip_prefix("1.0.0") == "1.0.0"
