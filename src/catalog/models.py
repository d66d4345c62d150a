"""Catalog data model.

``PackageInfo`` objects are long-lived: the catalog hands the same instance to
every caller and operations update it in place by applying ``InstallState``
snapshots, so views holding a reference always see the current state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from constants import Constants
from versioning.semver import compare_versions


class DependencySource(Enum):
    """Where a dependency is expected to come from."""

    UNKNOWN = "unknown"
    NATIVE_HOST_PACKAGE = "host"
    MANAGED_PACKAGE = "managed"
    GIT_PACKAGE = "git"


@dataclass
class VersionInfo:
    """One published version of a package."""

    version: str
    publish_date: Optional[str] = None
    changelog: Optional[str] = None
    is_installed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "publish_date": self.publish_date,
            "changelog": self.changelog,
            "is_installed": self.is_installed,
        }


@dataclass(frozen=True)
class InstallState:
    """Immutable snapshot of a package's local install status."""

    is_installed: bool = False
    local_version: Optional[str] = None
    has_update: bool = False

    @classmethod
    def not_installed(cls) -> "InstallState":
        return cls()

    @classmethod
    def for_version(cls, local_version: Optional[str], newest_version: Optional[str]) -> "InstallState":
        """Build the installed state for a local version.

        An unknown local version is recorded as ``Constants.UNKNOWN_VERSION``
        so that an installed package always carries a version string.
        """
        local = local_version or Constants.UNKNOWN_VERSION
        return cls(
            is_installed=True,
            local_version=local,
            has_update=bool(newest_version) and compare_versions(newest_version, local) > 0,
        )


@dataclass(eq=False)
class PackageInfo:
    """Metadata and local install status for one catalog package."""

    name: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    author_url: Optional[str] = None
    documentation_url: Optional[str] = None
    changelog_url: Optional[str] = None
    newest_version: Optional[str] = None
    versions: List[VersionInfo] = field(default_factory=list)
    dependencies: Dict[str, str] = field(default_factory=dict)
    is_installed: bool = False
    local_version: Optional[str] = None
    has_update: bool = False

    def __post_init__(self):
        if not self.display_name:
            self.display_name = self.name
        self.dependencies.pop(self.name, None)

    def installed_state(self, local_version: Optional[str]) -> InstallState:
        """Return the InstallState this package would have at ``local_version``."""
        return InstallState.for_version(local_version, self.newest_version)

    def apply_install_state(self, state: InstallState) -> None:
        """Transition to ``state``, keeping per-version flags consistent."""
        self.is_installed = state.is_installed
        self.local_version = state.local_version if state.is_installed else None
        self.has_update = state.has_update if state.is_installed else False
        for info in self.versions:
            info.is_installed = self.is_installed and info.version == self.local_version

    def version_strings(self) -> List[str]:
        """Every known version, newest_version first, without duplicates."""
        seen: List[str] = []
        if self.newest_version:
            seen.append(self.newest_version)
        for info in self.versions:
            if info.version not in seen:
                seen.append(info.version)
        return seen

    def merge_details(self, detail: "PackageInfo") -> None:
        """Copy registry detail fields from ``detail`` into this instance."""
        self.display_name = detail.display_name or self.display_name
        self.description = detail.description or self.description
        self.author = detail.author or self.author
        self.author_url = detail.author_url or self.author_url
        self.documentation_url = detail.documentation_url or self.documentation_url
        self.changelog_url = detail.changelog_url or self.changelog_url
        self.newest_version = detail.newest_version or self.newest_version
        self.versions = list(detail.versions)
        self.dependencies = {k: v for k, v in detail.dependencies.items() if k != self.name}
        if self.is_installed:
            self.apply_install_state(self.installed_state(self.local_version))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "author": self.author,
            "author_url": self.author_url,
            "documentation_url": self.documentation_url,
            "changelog_url": self.changelog_url,
            "newest_version": self.newest_version,
            "local_version": self.local_version,
            "is_installed": self.is_installed,
            "has_update": self.has_update,
            "dependencies": dict(self.dependencies),
            "versions": [v.to_dict() for v in self.versions],
        }


@dataclass
class DependencyStatus:
    """Status of one dependency requirement relative to the local install."""

    package_name: str
    required_version: str
    installed_version: Optional[str] = None
    is_installed: bool = False
    is_compatible: bool = False
    source: DependencySource = DependencySource.UNKNOWN
    package: Optional[PackageInfo] = None
    resolved_version: Optional[str] = None

    @property
    def status_text(self) -> str:
        """Display text such as ``managed (installed 1.0.0)``."""
        if not self.is_installed:
            detail = "not installed"
        elif not self.is_compatible:
            detail = f"incompatible: installed {self.installed_version}, requires {self.required_version}"
        else:
            detail = f"installed {self.installed_version}"
        return f"{self.source.value} ({detail})"


@dataclass
class DependencyAnalysis:
    """Summary of what a package still needs before it can be installed."""

    missing_host_packages: List[DependencyStatus] = field(default_factory=list)
    missing_managed_packages: List[DependencyStatus] = field(default_factory=list)
    incompatible_dependencies: List[DependencyStatus] = field(default_factory=list)

    @property
    def has_missing_or_incompatible(self) -> bool:
        return bool(self.missing_host_packages or self.missing_managed_packages or self.incompatible_dependencies)


@dataclass(frozen=True)
class DependencyConflict:
    """Two requirements on one dependency that share no satisfying version."""

    dependency_name: str
    package_a: str
    range_a: str
    package_b: str
    range_b: str

    def describe(self) -> str:
        return f"{self.dependency_name}: {self.package_a} needs {self.range_a}, {self.package_b} needs {self.range_b}"
