"""Tests for npm-style range expressions."""

import pytest

from versioning.semver import SemanticVersion
from versioning.version_range import VersionRange


def _sat(expression, version):
    return VersionRange(expression).is_satisfied_by(version)


class TestCaretAndTilde:
    """Caret and tilde ranges."""

    def test_caret_major(self):
        assert _sat("^1.2.3", "1.2.3")
        assert _sat("^1.2.3", "1.9.9")
        assert not _sat("^1.2.3", "2.0.0")
        assert not _sat("^1.2.3", "1.2.2")

    def test_caret_zero_major(self):
        assert _sat("^0.2.3", "0.2.9")
        assert not _sat("^0.2.3", "0.3.0")

    def test_caret_zero_minor(self):
        assert _sat("^0.0.3", "0.0.3")
        assert not _sat("^0.0.3", "0.0.4")

    def test_tilde_full(self):
        assert _sat("~1.2.3", "1.2.9")
        assert not _sat("~1.2.3", "1.3.0")
        assert not _sat("~1.2.3", "1.2.2")

    def test_tilde_partial(self):
        assert _sat("~1.2", "1.2.0")
        assert not _sat("~1.2", "1.3.0")
        assert _sat("~1", "1.9.0")
        assert not _sat("~1", "2.0.0")


class TestComparisons:
    """Comparison operators, AND and OR."""

    def test_and(self):
        assert _sat(">=1.0.0 <2.0.0", "1.5.0")
        assert not _sat(">=1.0.0 <2.0.0", "2.0.0")

    def test_or(self):
        assert _sat("1.0.0 || 2.0.0", "2.0.0")
        assert not _sat("1.0.0 || 2.0.0", "1.5.0")

    def test_operator_whitespace(self):
        assert _sat(">= 1.0.0 < 2.0.0", "1.5.0")

    def test_strict_operators(self):
        assert _sat(">1.0.0", "1.0.1")
        assert not _sat(">1.0.0", "1.0.0")
        assert _sat("<=1.0.0", "1.0.0")

    def test_exact_with_prefix(self):
        assert _sat("=1.2.3", "1.2.3")
        assert _sat("v1.2.3", "1.2.3")
        assert not _sat("1.2.3", "1.2.4")


class TestWildcardAndHyphen:
    """Wildcards and hyphen ranges."""

    @pytest.mark.parametrize("expression", [None, "", "*", "x"])
    def test_match_anything(self, expression):
        assert _sat(expression, "0.0.1")
        assert VersionRange(expression).matches_any

    def test_dotted_wildcards(self):
        assert _sat("1.2.x", "1.2.7")
        assert not _sat("1.2.x", "1.3.0")
        assert _sat("1.x", "1.9.0")
        assert _sat("1.*", "1.0.0")
        assert not _sat("1.*", "2.0.0")

    def test_hyphen_inclusive(self):
        assert _sat("1.0.0 - 2.0.0", "1.0.0")
        assert _sat("1.0.0 - 2.0.0", "2.0.0")
        assert not _sat("1.0.0 - 2.0.0", "2.0.1")

    @pytest.mark.parametrize("expression", ["^", "~x.y", ">=abc", "1.x.3", "garbage"])
    def test_malformed_fails_closed(self, expression):
        assert not _sat(expression, "1.0.0")

    def test_unparseable_version_never_satisfies(self):
        assert not _sat("*", "unknown")
        assert not _sat("^1.0.0", None)


class TestSelectBestVersion:
    """Choosing the highest satisfying candidate."""

    def test_highest_in_range(self):
        candidates = ["1.0.0", "1.2.0", "1.9.9", "2.0.0"]
        assert VersionRange("^1.0.0").select_best_version(candidates) == "1.9.9"

    def test_no_match(self):
        assert VersionRange("^3.0.0").select_best_version(["1.0.0", "2.0.0"]) is None

    def test_returns_original_candidate(self):
        candidates = [SemanticVersion.parse("1.0.0"), SemanticVersion.parse("1.1.0")]
        assert VersionRange("^1.0.0").select_best_version(candidates) is candidates[1]

    def test_release_preferred_over_prerelease(self):
        assert VersionRange("*").select_best_version(["1.0.0-rc.1", "1.0.0"]) == "1.0.0"
        assert VersionRange("*").select_best_version(["1.0.0", "1.0.0-rc.1"]) == "1.0.0"

    def test_unparseable_candidates_ignored(self):
        assert VersionRange("*").select_best_version(["latest", "0.1.0"]) == "0.1.0"


class TestIntersects:
    """Range intersection over a candidate set."""

    def test_disjoint(self):
        assert not VersionRange("^1.0.0").intersects(VersionRange("^2.0.0"), ["1.0.0", "2.0.0"])

    def test_overlap(self):
        assert VersionRange("^1.2.0").intersects(VersionRange(">=1.0.0 <2.0.0"), ["1.5.0"])
