"""Tests for semantic version parsing and ordering."""

import pytest

from versioning.semver import SemanticVersion, VersionParseError, compare, compare_versions


class TestParse:
    """Parsing of version strings."""

    @pytest.mark.parametrize("text", ["0.0.0", "1.2.3", "10.20.30", "4.17.21"])
    def test_round_trip(self, text):
        """str(parse(x)) reproduces x and compares equal."""
        parsed = SemanticVersion.parse(text)
        assert str(parsed) == text
        assert compare(SemanticVersion.parse(str(parsed)), parsed) == 0

    def test_missing_components_default_to_zero(self):
        assert SemanticVersion.parse("1").key() == (1, 0, 0)
        assert SemanticVersion.parse("1.2").key() == (1, 2, 0)

    def test_prerelease_is_kept(self):
        version = SemanticVersion.parse("2.0.0-beta.1")
        assert version.prerelease == "beta.1"
        assert version.is_prerelease
        assert str(version) == "2.0.0-beta.1"

    def test_surrounding_whitespace_ignored(self):
        assert SemanticVersion.parse("  1.2.3 ").key() == (1, 2, 3)

    @pytest.mark.parametrize("text", ["", "abc", "1.2.3.4", "v1.2.3", "1..2", "-1.0.0"])
    def test_invalid_raises(self, text):
        with pytest.raises(VersionParseError):
            SemanticVersion.parse(text)

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            SemanticVersion.parse("nope")

    def test_try_parse_returns_none(self):
        assert SemanticVersion.try_parse("nope") is None
        assert SemanticVersion.try_parse(None) is None
        assert SemanticVersion.try_parse("1.0.0") == SemanticVersion(1, 0, 0)


class TestOrdering:
    """Ordering and equality over the numeric triple."""

    def test_numeric_not_lexicographic(self):
        assert SemanticVersion.parse("1.10.0") > SemanticVersion.parse("1.9.0")
        assert SemanticVersion.parse("2.0.0") > SemanticVersion.parse("1.99.99")

    def test_prerelease_ignored_for_equality(self):
        assert SemanticVersion.parse("1.0.0-beta") == SemanticVersion.parse("1.0.0")
        assert hash(SemanticVersion.parse("1.0.0-beta")) == hash(SemanticVersion.parse("1.0.0"))

    def test_sorting(self):
        versions = [SemanticVersion.parse(v) for v in ["1.2.0", "0.9.9", "1.10.1", "1.2.10"]]
        assert [str(v) for v in sorted(versions)] == ["0.9.9", "1.2.0", "1.2.10", "1.10.1"]

    def test_compare_signs(self):
        a, b = SemanticVersion.parse("1.0.0"), SemanticVersion.parse("1.0.1")
        assert compare(a, b) < 0
        assert compare(b, a) > 0
        assert compare(a, a) == 0

    def test_immutable(self):
        version = SemanticVersion.parse("1.0.0")
        with pytest.raises(AttributeError):
            version.major = 2


class TestCompareVersions:
    """String-level comparison used for update detection."""

    def test_newer(self):
        assert compare_versions("1.2.0", "1.1.9") > 0

    def test_unparseable_compares_equal(self):
        assert compare_versions("1.2.0", "unknown") == 0
        assert compare_versions(None, "1.0.0") == 0
