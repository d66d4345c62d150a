"""In-memory catalog of registry packages and their local install status."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Iterable, List, Optional

from constants import Constants
from common.errors import CatalogError
from common.events import EventHook
from common.logging_utils import extra_context, Timer
from catalog.models import (
    DependencyAnalysis,
    DependencySource,
    DependencyStatus,
    InstallState,
    PackageInfo,
)
from versioning.resolver import resolve_version
from versioning.version_range import VersionRange

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def is_version_compatible(installed_version: Optional[str], required: Optional[str]) -> bool:
    """True if an installed version satisfies a requirement.

    Nothing installed is never compatible; an empty or ``*`` requirement
    accepts any installed version.
    """
    if not installed_version:
        return False
    range_ = VersionRange(required)
    if range_.matches_any:
        return True
    return range_.is_satisfied_by(installed_version)


class PackageCatalog:
    """The set of known packages, keyed by name.

    ``PackageInfo`` instances are created once and then updated in place, so
    references handed out by ``find`` stay valid across reloads.

    Args:
        registry: object with ``get_all_packages()`` and ``get_package_detail(name)``
        installer: object with ``is_installed(name)`` and ``get_installed_version(name)``
        host_index: HostIndex used to classify dependencies the host owns
        max_concurrency: bound on concurrent detail requests
    """

    def __init__(self, registry, installer, host_index, max_concurrency: int = Constants.MAX_CONCURRENCY):
        self.registry = registry
        self.installer = installer
        self.host_index = host_index
        self.max_concurrency = max(1, int(max_concurrency))
        self._packages: Dict[str, PackageInfo] = {}
        self.on_loaded = EventHook("catalog_loaded")

    @property
    def packages(self) -> List[PackageInfo]:
        return list(self._packages.values())

    def __len__(self) -> int:
        return len(self._packages)

    def __contains__(self, name: str) -> bool:
        return name in self._packages

    def find(self, name: str) -> Optional[PackageInfo]:
        return self._packages.get(name)

    def installed(self) -> List[PackageInfo]:
        return [p for p in self._packages.values() if p.is_installed]

    def add(self, package: PackageInfo) -> PackageInfo:
        """Insert ``package`` or merge it into the existing entry of that name."""
        existing = self._packages.get(package.name)
        if existing is None:
            self._packages[package.name] = package
            return package
        existing.merge_details(package)
        return existing

    def replace_all(self, packages: Iterable[PackageInfo]) -> None:
        """Reset the catalog to ``packages``, keeping existing instances for known names."""
        fresh: Dict[str, PackageInfo] = {}
        for package in packages:
            existing = self._packages.get(package.name)
            if existing is not None:
                existing.merge_details(package)
                fresh[package.name] = existing
            else:
                fresh[package.name] = package
        self._packages = fresh

    def clear(self) -> None:
        self._packages = {}

    async def load_from_registry(self, on_progress: Optional[ProgressCallback] = None) -> List[PackageInfo]:
        """Fetch the package list, then every package's details concurrently.

        ``on_progress(completed, total)`` is called after each detail request.
        On any CatalogError the catalog is emptied and the error re-raised.
        """
        with Timer() as timer:
            try:
                summaries = await asyncio.to_thread(self.registry.get_all_packages)
                self.replace_all(summaries)
                await self._load_details(on_progress)
            except CatalogError:
                self.clear()
                raise
            self.refresh_installed_status()

        logger.info(
            "Catalog loaded: %d packages",
            len(self._packages),
            extra=extra_context(
                event="catalog_load", component="catalog", outcome="success", duration_ms=timer.duration_ms()
            ),
        )
        self.on_loaded.fire(self.packages)
        return self.packages

    async def _load_details(self, on_progress: Optional[ProgressCallback]) -> None:
        semaphore = asyncio.Semaphore(self.max_concurrency)
        names = list(self._packages)
        total = len(names)
        completed = 0

        async def load_one(name: str) -> None:
            nonlocal completed
            async with semaphore:
                detail = await asyncio.to_thread(self.registry.get_package_detail, name)
            self._packages[name].merge_details(detail)
            completed += 1
            if on_progress is not None:
                on_progress(completed, total)

        results = await asyncio.gather(*(load_one(n) for n in names), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result

    def refresh_installed_status(self) -> None:
        """Recompute install state for every package from the install root."""
        for package in self._packages.values():
            self.refresh_package(package)

    def refresh_package(self, package: PackageInfo) -> InstallState:
        """Recompute and apply the install state of one package."""
        if self.installer.is_installed(package.name):
            state = package.installed_state(self.installer.get_installed_version(package.name))
        else:
            state = InstallState.not_installed()
        package.apply_install_state(state)
        return state

    def check_dependency(self, name: str, required: str) -> DependencyStatus:
        """Classify one dependency requirement.

        Lookup order: catalog package, then host manifest entry, then host
        name prefix. Anything else is an unknown, uninstalled dependency.
        """
        status = DependencyStatus(package_name=name, required_version=required)

        package = self.find(name)
        if package is not None:
            status.source = DependencySource.MANAGED_PACKAGE
            status.package = package
            status.is_installed = package.is_installed
            status.installed_version = package.local_version
            status.is_compatible = is_version_compatible(package.local_version, required)
            status.resolved_version = resolve_version(
                name, required, package.version_strings(), package.newest_version
            ).resolved_version
            return status

        if self.host_index.is_registered(name):
            status.source = (
                DependencySource.GIT_PACKAGE if self.host_index.is_git_package(name)
                else DependencySource.NATIVE_HOST_PACKAGE
            )
            status.is_installed = True
            status.installed_version = self.host_index.installed_version(name)
            status.is_compatible = status.source == DependencySource.GIT_PACKAGE or is_version_compatible(
                status.installed_version, required
            )
            return status

        if self.host_index.is_host_package(name):
            status.source = DependencySource.NATIVE_HOST_PACKAGE
        return status

    def analyze_dependencies(self, package: PackageInfo) -> DependencyAnalysis:
        """Collect missing and incompatible dependencies of ``package``."""
        analysis = DependencyAnalysis()
        for name, required in package.dependencies.items():
            status = self.check_dependency(name, required)
            if not status.is_installed:
                if status.source == DependencySource.NATIVE_HOST_PACKAGE:
                    analysis.missing_host_packages.append(status)
                else:
                    analysis.missing_managed_packages.append(status)
            elif not status.is_compatible:
                analysis.incompatible_dependencies.append(status)
        return analysis
