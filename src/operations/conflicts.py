"""Pairwise dependency conflict detection.

The check is greedy and non-transitive: two requirements conflict when no
version of the dependency known to the catalog satisfies both. It does not
look for alternative versions of other packages that would make the conflict
go away.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional

from constants import Constants
from catalog.models import DependencyConflict, PackageInfo
from install.host import is_git_spec
from versioning.version_range import VersionRange

logger = logging.getLogger(__name__)

INSTALLED_SUFFIX = " (installed)"


def _default_is_host_package(name: str) -> bool:
    return any(name.startswith(prefix) for prefix in Constants.HOST_PACKAGE_PREFIXES)


def requirements_compatible(range_a: str, range_b: str, dependency: Optional[PackageInfo]) -> bool:
    """True if some catalog version of ``dependency`` satisfies both ranges.

    A dependency missing from the catalog has no versions and is therefore
    never compatible.
    """
    if dependency is None:
        return False
    return VersionRange(range_a).intersects(VersionRange(range_b), dependency.version_strings())


def detect_conflicts(
    package: PackageInfo,
    catalog_packages: Iterable[PackageInfo],
    installed,
    is_host_package: Optional[Callable[[str], bool]] = None,
) -> List[DependencyConflict]:
    """Find requirements of ``package`` that clash with the current install.

    Args:
        package: Package about to be installed.
        catalog_packages: Every package known to the catalog.
        installed: Object offering ``is_installed(name)`` and
            ``get_installed_version(name)`` for the local install root.
        is_host_package: Predicate for dependencies owned by the host; those
            are skipped, as are git specs. Defaults to the configured name
            prefixes.

    Returns:
        Conflicts in dependency order, one per clashing requirement pair.
    """
    is_host = is_host_package or _default_is_host_package
    packages = list(catalog_packages)
    by_name = {p.name: p for p in packages}
    installed_packages = [p for p in packages if p.is_installed and p.name != package.name]
    conflicts: List[DependencyConflict] = []

    for dep_name, range_a in package.dependencies.items():
        if is_host(dep_name) or is_git_spec(range_a):
            continue

        for other in installed_packages:
            range_b = other.dependencies.get(dep_name)
            if range_b is None or is_git_spec(range_b):
                continue
            if not requirements_compatible(range_a, range_b, by_name.get(dep_name)):
                conflicts.append(DependencyConflict(dep_name, package.name, range_a, other.name, range_b))

        if installed.is_installed(dep_name):
            local = installed.get_installed_version(dep_name)
            required = VersionRange(range_a)
            if not (required.matches_any or required.is_satisfied_by(local)):
                conflicts.append(
                    DependencyConflict(
                        dep_name,
                        package.name,
                        range_a,
                        dep_name + INSTALLED_SUFFIX,
                        local or Constants.UNKNOWN_VERSION,
                    )
                )

    if conflicts:
        logger.warning("%d dependency conflict(s) for %s", len(conflicts), package.name)
    return conflicts


def generate_conflict_report(conflicts: Iterable[DependencyConflict]) -> str:
    """One ``"<dep>: <pkgA> needs <rangeA>, <pkgB> needs <rangeB>"`` line per conflict."""
    return "\n".join(conflict.describe() for conflict in conflicts)
