"""Semantic version parsing and ordering.

Versions are ``major.minor.patch[-prerelease]``; missing minor/patch parts
default to 0. Ordering and equality consider only the numeric triple, so
``1.0.0`` and ``1.0.0-beta`` compare equal. The prerelease tag is kept for
display and as a tie-break when picking between otherwise equal candidates.
"""

from __future__ import annotations

import re
from functools import total_ordering
from typing import Optional, Tuple

_VERSION_RE = re.compile(r"^(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:-(.+))?$")


class VersionParseError(ValueError):
    """Raised when a string is not a valid semantic version."""


@total_ordering
class SemanticVersion:
    """Immutable parsed version."""

    __slots__ = ("_major", "_minor", "_patch", "_prerelease")

    def __init__(self, major: int, minor: int = 0, patch: int = 0, prerelease: Optional[str] = None):
        if major < 0 or minor < 0 or patch < 0:
            raise VersionParseError(f"Version components must be non-negative: {major}.{minor}.{patch}")
        object.__setattr__(self, "_major", int(major))
        object.__setattr__(self, "_minor", int(minor))
        object.__setattr__(self, "_patch", int(patch))
        object.__setattr__(self, "_prerelease", prerelease or None)

    def __setattr__(self, name, value):
        raise AttributeError("SemanticVersion is immutable")

    @classmethod
    def parse(cls, text: str) -> "SemanticVersion":
        """Parse a version string.

        Raises:
            VersionParseError: if text does not match ``\\d+(\\.\\d+)?(\\.\\d+)?(-.+)?``.
        """
        if not isinstance(text, str):
            raise VersionParseError(f"Version must be a string, got {type(text).__name__}")
        match = _VERSION_RE.match(text.strip())
        if not match:
            raise VersionParseError(f"Invalid version format: {text!r}")
        major, minor, patch, prerelease = match.groups()
        return cls(int(major), int(minor or 0), int(patch or 0), prerelease)

    @classmethod
    def try_parse(cls, text: Optional[str]) -> Optional["SemanticVersion"]:
        """Parse a version string, returning None instead of raising."""
        if text is None:
            return None
        try:
            return cls.parse(text)
        except VersionParseError:
            return None

    @property
    def major(self) -> int:
        return self._major

    @property
    def minor(self) -> int:
        return self._minor

    @property
    def patch(self) -> int:
        return self._patch

    @property
    def prerelease(self) -> Optional[str]:
        return self._prerelease

    @property
    def is_prerelease(self) -> bool:
        return self._prerelease is not None

    def key(self) -> Tuple[int, int, int]:
        """The numeric triple used for ordering and equality."""
        return (self._major, self._minor, self._patch)

    def compare(self, other: "SemanticVersion") -> int:
        """Return negative, zero or positive as self is lower, equal or higher."""
        a, b = self.key(), other.key()
        return (a > b) - (a < b)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self.key() == other.key()

    def __lt__(self, other: "SemanticVersion") -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self.key() < other.key()

    def __hash__(self) -> int:
        return hash(self.key())

    def __str__(self) -> str:
        text = f"{self._major}.{self._minor}.{self._patch}"
        if self._prerelease:
            text += f"-{self._prerelease}"
        return text

    def __repr__(self) -> str:
        return f"SemanticVersion('{self}')"


def compare(a: SemanticVersion, b: SemanticVersion) -> int:
    """Three-way comparison of two parsed versions."""
    return a.compare(b)


def compare_versions(left: Optional[str], right: Optional[str]) -> int:
    """Three-way comparison of two version strings.

    Unparseable or missing values compare equal to anything, which keeps
    derived flags such as "has update" false rather than guessing.
    """
    a = SemanticVersion.try_parse(left)
    b = SemanticVersion.try_parse(right)
    if a is None or b is None:
        return 0
    return a.compare(b)
