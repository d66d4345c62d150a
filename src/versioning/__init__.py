"""Semantic versions, npm-style ranges and request parsing."""

from .semver import SemanticVersion, VersionParseError, compare, compare_versions
from .version_range import VersionRange

__all__ = [
    "SemanticVersion",
    "VersionParseError",
    "VersionRange",
    "compare",
    "compare_versions",
]
