"""Install and uninstall orchestration.

An install walks the target's dependency map depth first: every dependency
(with its own dependencies) is installed before the package that needs it.
Sibling dependencies are installed concurrently. Installer calls share one
semaphore, and each package name has a lock so concurrent requests for the
same package collapse into one install.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from constants import Constants
from common.errors import (
    DependencyCycleError,
    OperationCancelledError,
    PackageManagerError,
    ResolutionError,
    StateError,
)
from common.events import EventHook
from common.logging_utils import extra_context, is_debug_enabled, Timer
from catalog.models import DependencyAnalysis, DependencyConflict, InstallState, PackageInfo
from catalog.store import is_version_compatible
from install.host import is_git_spec
from operations.conflicts import detect_conflicts, generate_conflict_report
from operations.policy import AutoApprovePolicy, ConflictResolutionPolicy, Decision
from versioning.resolver import resolve_version

logger = logging.getLogger(__name__)


class OperationState(Enum):
    """Lifecycle of an install or uninstall operation."""

    IDLE = "idle"
    RESOLVING = "resolving"
    CONFLICTS_FOUND = "conflicts_found"
    AWAITING_DECISION = "awaiting_decision"
    INSTALLING = "installing"
    UNINSTALLING = "uninstalling"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass
class OperationResult:
    """What an operation did.

    ``installed`` lists package names in the order their install step ran.
    ``failed`` maps dependency names to the error that stopped them.
    ``host_requested`` lists host packages the host was asked to add.
    """

    package_name: str
    version: Optional[str] = None
    state: OperationState = OperationState.IDLE
    installed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    delegated: List[str] = field(default_factory=list)
    host_requested: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    conflicts: List[DependencyConflict] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state == OperationState.COMPLETED


def _append_unique(bucket: List[str], name: str) -> None:
    if name not in bucket:
        bucket.append(name)


class PackageOperationManager:
    """Run installs and uninstalls against a catalog and an installer.

    Args:
        catalog: PackageCatalog holding the PackageInfo objects to update
        installer: PackageInstaller (or compatible) performing filesystem work
        policy: decision provider for conflicts, dependencies and uninstalls
        max_concurrency: bound on concurrent installer calls
    """

    def __init__(
        self,
        catalog,
        installer,
        policy: Optional[ConflictResolutionPolicy] = None,
        max_concurrency: int = Constants.MAX_CONCURRENCY,
    ):
        self.catalog = catalog
        self.installer = installer
        self.policy = policy or AutoApprovePolicy()
        self.max_concurrency = max(1, int(max_concurrency))
        self._semaphore = asyncio.Semaphore(self.max_concurrency)
        self._locks: Dict[str, asyncio.Lock] = {}
        self._state = OperationState.IDLE
        self._current_operation = ""
        self._active = 0

        self.on_operation_started = EventHook("operation_started")
        self.on_operation_completed = EventHook("operation_completed")
        self.on_package_updated = EventHook("package_updated")
        self.on_progress = EventHook("progress")
        self.on_error = EventHook("error")
        self.on_state_changed = EventHook("state_changed")

    @property
    def state(self) -> OperationState:
        return self._state

    @property
    def is_operating(self) -> bool:
        return self._active > 0

    @property
    def current_operation(self) -> str:
        return self._current_operation

    def _set_state(self, state: OperationState) -> None:
        if state != self._state:
            if is_debug_enabled(logger):
                logger.debug(
                    "Operation state change",
                    extra=extra_context(event="state", component="manager", outcome=state.value),
                )
            self._state = state
            self.on_state_changed.fire(state)

    def _begin(self, description: str) -> None:
        self._active += 1
        self._current_operation = description
        self.on_operation_started.fire(description)

    def _finish(self, result: OperationResult, state: OperationState, error: Optional[str] = None) -> OperationResult:
        result.state = state
        if error:
            result.error = error
        self._active -= 1
        if not self._active:
            self._current_operation = ""
        self._set_state(state)
        self.on_operation_completed.fire(result)
        return result

    def _report_error(self, message: str) -> None:
        logger.error(message)
        self.on_error.fire(message)

    def _lock_for(self, name: str) -> asyncio.Lock:
        lock = self._locks.get(name)
        if lock is None:
            lock = self._locks[name] = asyncio.Lock()
        return lock

    def is_delegated(self, name: str, spec: Optional[str] = None) -> bool:
        """True for dependencies the host package system owns or git specs."""
        return is_git_spec(spec) or self.catalog.host_index.is_host_package(name)

    def _is_satisfied(self, name: str, required: Optional[str]) -> bool:
        if not self.installer.is_installed(name):
            return False
        return is_version_compatible(self.installer.get_installed_version(name), required)

    def _is_installed_at(self, name: str, version: Optional[str]) -> bool:
        if not version or not self.installer.is_installed(name):
            return False
        return self.installer.get_installed_version(name) == version

    async def install_package(
        self,
        package: PackageInfo,
        version: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> OperationResult:
        """Install ``package`` (default: its newest version) with its dependencies.

        Never raises for operation failures; the outcome is in the returned
        OperationResult and every failure is also sent to ``on_error``.
        """
        target_version = version or package.newest_version
        result = OperationResult(package_name=package.name, version=target_version)
        self._begin(f"Installing {package.display_name} v{target_version}")

        self._set_state(OperationState.RESOLVING)
        if not target_version:
            self._report_error(f"No version available for {package.name}")
            return self._finish(result, OperationState.FAILED, f"no version available for {package.name}")

        conflicts = detect_conflicts(
            package, self.catalog.packages, self.installer, self.catalog.host_index.is_host_package
        )
        if conflicts:
            result.conflicts = conflicts
            self._set_state(OperationState.CONFLICTS_FOUND)
            logger.warning("Dependency conflicts:\n%s", generate_conflict_report(conflicts))
            self._set_state(OperationState.AWAITING_DECISION)
            if self.policy.resolve_conflicts(package, conflicts) == Decision.ABORT:
                logger.info("Install of %s aborted because of conflicts", package.name)
                return self._finish(result, OperationState.ABORTED, "aborted: dependency conflicts")

        analysis = self.catalog.analyze_dependencies(package)
        if analysis.has_missing_or_incompatible:
            self._set_state(OperationState.AWAITING_DECISION)
            if self.policy.confirm_dependencies(package, analysis) == Decision.ABORT:
                logger.info("Install of %s aborted at dependency confirmation", package.name)
                return self._finish(result, OperationState.ABORTED, "aborted: dependencies not confirmed")
            await self._request_host_installs(analysis, result)

        self._set_state(OperationState.INSTALLING)
        with Timer() as timer:
            try:
                await self._install_tree(package, target_version, None, result, (), cancel_event)
            except OperationCancelledError as exc:
                self._report_error(f"Install of {package.name} cancelled: {exc}")
                return self._finish(result, OperationState.ABORTED, str(exc))
            except PackageManagerError as exc:
                self._report_error(f"Install of {package.name} v{target_version} failed: {exc}")
                return self._finish(result, OperationState.FAILED, str(exc))

        logger.info(
            "Installed %s v%s (%d installed, %d skipped, %d failed)",
            package.name,
            target_version,
            len(result.installed),
            len(result.skipped),
            len(result.failed),
            extra=extra_context(
                event="operation", component="manager", package=package.name, duration_ms=timer.duration_ms()
            ),
        )
        return self._finish(result, OperationState.COMPLETED)

    async def _request_host_installs(self, analysis: DependencyAnalysis, result: OperationResult) -> None:
        """Ask the host for each missing host package; failures do not stop the install."""
        host_index = self.catalog.host_index
        for status in analysis.missing_host_packages:
            name, spec = status.package_name, status.required_version
            try:
                requested = await asyncio.to_thread(host_index.request_install, name, spec)
            except PackageManagerError as exc:
                message = f"Host install of {name}@{spec} failed: {exc}"
                logger.warning(message)
                self.on_error.fire(message)
                result.failed[name] = str(exc)
                continue
            if requested:
                _append_unique(result.host_requested, name)

    async def _install_tree(
        self,
        package: PackageInfo,
        version: str,
        required: Optional[str],
        result: OperationResult,
        ancestors: Tuple[str, ...],
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        chain = ancestors + (package.name,)
        await self._install_dependencies(package, result, chain, cancel_event)
        await self._install_single(package, version, required, result, cancel_event)

    async def _install_dependencies(
        self,
        package: PackageInfo,
        result: OperationResult,
        chain: Tuple[str, ...],
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        pending = []
        for dep_name, dep_range in package.dependencies.items():
            if self.is_delegated(dep_name, dep_range):
                logger.info("Dependency %s@%s is managed by the host; not installing", dep_name, dep_range)
                _append_unique(result.delegated, dep_name)
                continue
            pending.append(self._install_dependency(dep_name, dep_range, result, chain, cancel_event))
        if pending:
            await asyncio.gather(*pending)

    async def _install_dependency(
        self,
        name: str,
        required: str,
        result: OperationResult,
        chain: Tuple[str, ...],
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        try:
            # A back-edge to an installed compatible version is not a cycle.
            if self._is_satisfied(name, required):
                logger.debug("Dependency %s already satisfies %s", name, required)
                _append_unique(result.skipped, name)
                return
            if name in chain:
                raise DependencyCycleError(chain + (name,))
            dependency = self.catalog.find(name)
            if dependency is None:
                raise StateError(f"dependency {name} is not in the catalog")
            version = self._resolve_dependency_version(dependency, required)
            await self._install_tree(dependency, version, required, result, chain, cancel_event)
        except OperationCancelledError:
            raise
        except PackageManagerError as exc:
            message = f"Dependency {name}@{required} of {chain[-1]} failed: {exc}"
            logger.warning(message)
            self.on_error.fire(message)
            result.failed[name] = str(exc)

    @staticmethod
    def _resolve_dependency_version(dependency: PackageInfo, required: str) -> str:
        resolution = resolve_version(
            dependency.name, required, dependency.version_strings(), dependency.newest_version
        )
        if resolution.resolved_version is None:
            raise ResolutionError(resolution.error or f"no version of {dependency.name} satisfies {required}")
        return resolution.resolved_version

    async def _install_single(
        self,
        package: PackageInfo,
        version: str,
        required: Optional[str],
        result: OperationResult,
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        """Install one package unless it is already in the wanted state.

        A dependency (``required`` set) is satisfied by any compatible
        installed version; the target needs exactly ``version``. The check
        runs under the package lock, so a duplicate request that waited on
        the lock finds the work done.
        """
        async with self._lock_for(package.name):
            if required is None:
                done = self._is_installed_at(package.name, version)
            else:
                done = self._is_satisfied(package.name, required)
            if done:
                logger.info("%s v%s already installed; skipping", package.name, version)
                _append_unique(result.skipped, package.name)
                return

            def progress(fraction: float) -> None:
                self.on_progress.fire(f"Downloading {package.display_name} v{version}", fraction)

            self._current_operation = f"Installing {package.display_name} v{version}"
            async with self._semaphore:
                await self.installer.install(package.name, version, on_progress=progress, cancel_event=cancel_event)

            package.apply_install_state(package.installed_state(version))
            result.installed.append(package.name)
        self.on_package_updated.fire(package)

    async def uninstall_package(self, package: PackageInfo) -> OperationResult:
        """Remove ``package`` after the policy confirms."""
        result = OperationResult(package_name=package.name, version=package.local_version)
        self._begin(f"Uninstalling {package.display_name}")

        self._set_state(OperationState.AWAITING_DECISION)
        if self.policy.confirm_uninstall(package) == Decision.ABORT:
            logger.info("Uninstall of %s cancelled", package.name)
            return self._finish(result, OperationState.ABORTED, "aborted: uninstall not confirmed")

        self._set_state(OperationState.UNINSTALLING)
        try:
            async with self._lock_for(package.name):
                async with self._semaphore:
                    await self.installer.uninstall(package.name)
                package.apply_install_state(InstallState.not_installed())
        except PackageManagerError as exc:
            self._report_error(f"Uninstall of {package.name} failed: {exc}")
            return self._finish(result, OperationState.FAILED, str(exc))

        logger.info("Uninstalled %s", package.name)
        self.on_package_updated.fire(package)
        return self._finish(result, OperationState.COMPLETED)
