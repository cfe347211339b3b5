from __future__ import annotations

import pytest

from fridamgr.exceptions import VersionFormatError
from fridamgr.utils.version_utils import (
    SemVer,
    parse_bound_version,
    parse_semver,
    python_major_minor,
    python_tag,
    sort_versions_desc,
    try_parse_semver,
)


@pytest.mark.unit
class TestParseSemver:
    """Tests for parse_semver and try_parse_semver."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("16.6.6", SemVer(16, 6, 6)),
            ("v17.0.0", SemVer(17, 0, 0)),
            ("  15.2.2 ", SemVer(15, 2, 2)),
            ("17.0.0-rc.1", SemVer(17, 0, 0, ("rc", "1"))),
            ("17.0.0-snapshot.1", SemVer(17, 0, 0, ("snapshot", "1"))),
            ("1.2.3+build.5", SemVer(1, 2, 3)),
        ],
    )
    def test_valid_versions(self, value: str, expected: SemVer) -> None:
        """Test strict semantic versions parse, with or without ``v``."""
        assert parse_semver(value) == expected

    @pytest.mark.parametrize(
        "value",
        ["16.6", "nightly", "", "1.2.3.4", "01.2.3", "16.6.x"],
    )
    def test_invalid_versions_raise(self, value: str) -> None:
        """Test anything that is not MAJOR.MINOR.PATCH is rejected."""
        with pytest.raises(VersionFormatError) as exc_info:
            parse_semver(value)

        assert exc_info.value.value == value

    def test_build_metadata_kept_for_display(self) -> None:
        version = parse_semver("v1.2.3-x.7.z.92+build.5")

        assert version.prerelease == ("x", "7", "z", "92")
        assert str(version) == "1.2.3-x.7.z.92+build.5"

    def test_prerelease_detection(self) -> None:
        """Test pre-release components are detected after parsing."""
        assert parse_semver("17.0.0-beta.2").is_prerelease
        assert not parse_semver("17.0.0").is_prerelease

    @pytest.mark.parametrize("value", ["2.0.0-1", "2.0.0-post1", "2.0.0-r2", "2.0.0-rev3"])
    def test_any_hyphen_suffix_is_prerelease(self, value: str) -> None:
        assert parse_semver(value).is_prerelease

    def test_try_parse_returns_none(self) -> None:
        """Test try_parse_semver never raises."""
        assert try_parse_semver(None) is None
        assert try_parse_semver("nightly") is None
        assert try_parse_semver("16.6.6") == SemVer(16, 6, 6)


@pytest.mark.unit
class TestParseBoundVersion:
    """Tests for parse_bound_version."""

    def test_accepts_short_versions(self) -> None:
        """Test bound versions only need to be PEP 440."""
        assert parse_bound_version("16.0") == SemVer(16, 0, 0)
        assert parse_bound_version(" v17 ") == SemVer(17, 0, 0)

    def test_pep440_prerelease_bound(self) -> None:
        """Test PEP 440 pre-releases order below the release they precede."""
        bound = parse_bound_version("17.0.0rc1")

        assert bound == SemVer(17, 0, 0, ("rc", "1"))
        assert parse_semver("17.0.0-beta.2") < bound < parse_semver("17.0.0")

    def test_semver_bound_taken_as_is(self) -> None:
        assert parse_bound_version("17.0.0-snapshot.1") == SemVer(17, 0, 0, ("snapshot", "1"))

    def test_rejects_garbage(self) -> None:
        assert parse_bound_version("not-a-version") is None


@pytest.mark.unit
class TestPythonTag:
    """Tests for interpreter version reduction."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("3.11.4", "3.11"),
            ("3.12", "3.12"),
            ("3", None),
            ("three.eleven", None),
            ("", None),
        ],
    )
    def test_python_major_minor(self, value: str, expected: str) -> None:
        assert python_major_minor(value) == expected

    def test_python_tag_unknown_sentinel(self) -> None:
        """Test unparsable interpreter versions map to ``unknown``."""
        assert python_tag("3.10.1") == "3.10"
        assert python_tag("garbage") == "unknown"


@pytest.mark.unit
class TestSortVersionsDesc:
    """Tests for sort_versions_desc."""

    def test_semantic_order(self) -> None:
        """Test versions sort numerically, not lexically."""
        keys = ["16.4.0", "16.10.0", "16.6.6", "9.0.0"]
        assert sort_versions_desc(keys) == ["16.10.0", "16.6.6", "16.4.0", "9.0.0"]

    def test_prerelease_below_release(self) -> None:
        assert sort_versions_desc(["17.0.0-rc.1", "17.0.0"]) == ["17.0.0", "17.0.0-rc.1"]

    def test_numeric_prerelease_below_release(self) -> None:
        assert sort_versions_desc(["1.0.0-1", "1.0.0", "0.9.9"]) == ["1.0.0", "1.0.0-1", "0.9.9"]

    def test_prerelease_precedence(self) -> None:
        """Test numeric identifiers compare numerically and below alphanumeric ones."""
        keys = [
            "1.0.0-alpha",
            "1.0.0-beta.11",
            "1.0.0-alpha.1",
            "1.0.0-rc.1",
            "1.0.0-beta.2",
            "1.0.0-alpha.beta",
            "1.0.0-beta",
        ]
        assert sort_versions_desc(keys) == [
            "1.0.0-rc.1",
            "1.0.0-beta.11",
            "1.0.0-beta.2",
            "1.0.0-beta",
            "1.0.0-alpha.beta",
            "1.0.0-alpha.1",
            "1.0.0-alpha",
        ]

    def test_non_semver_keys_follow(self) -> None:
        """Test keys that do not parse go last, in descending lexical order."""
        assert sort_versions_desc(["dev", "1.0.0", "nightly"]) == [
            "1.0.0",
            "nightly",
            "dev",
        ]

    def test_empty(self) -> None:
        assert sort_versions_desc([]) == []
