"""Command handlers for the pkgwright CLI.

Each handler receives the parsed arguments and an EngineContext and returns
an ExitCodes member. Errors from the engine propagate to the entrypoint,
which maps them to exit codes.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Callable, List, Optional, TextIO

from constants import ExitCodes
from common.errors import ConflictError, ResolutionError, StateError
from catalog.models import DependencyAnalysis, DependencyConflict, PackageInfo
from operations.conflicts import detect_conflicts, generate_conflict_report
from operations.manager import OperationResult, OperationState
from operations.policy import ConflictResolutionPolicy, Decision
from versioning.parser import parse_cli_token
from versioning.resolver import resolve_version

logger = logging.getLogger(__name__)


class ConsolePolicy(ConflictResolutionPolicy):
    """Ask the operator on the terminal; ``assume_yes`` answers yes to everything."""

    def __init__(
        self,
        assume_yes: bool = False,
        input_fn: Callable[[str], str] = input,
        stream: Optional[TextIO] = None,
    ):
        self.assume_yes = assume_yes
        self._input = input_fn
        self._stream = stream

    def _write(self, text: str) -> None:
        print(text, file=self._stream or sys.stderr)

    def _ask(self, question: str) -> Decision:
        if self.assume_yes:
            return Decision.PROCEED
        try:
            answer = self._input(f"{question} [y/N] ")
        except EOFError:
            answer = ""
        return Decision.PROCEED if answer.strip().lower() in ("y", "yes") else Decision.ABORT

    def resolve_conflicts(self, package: PackageInfo, conflicts: List[DependencyConflict]) -> Decision:
        self._write(f"Dependency conflicts for {package.name}:")
        self._write(generate_conflict_report(conflicts))
        return self._ask("Continue installing anyway?")

    def confirm_dependencies(self, package: PackageInfo, analysis: DependencyAnalysis) -> Decision:
        self._write(format_dependency_analysis(package, analysis))
        return self._ask("Continue installing?")

    def confirm_uninstall(self, package: PackageInfo) -> Decision:
        return self._ask(f"Uninstall {package.display_name} ({package.local_version})?")


def format_dependency_analysis(package: PackageInfo, analysis: DependencyAnalysis) -> str:
    """Human readable summary of missing and incompatible dependencies."""
    lines = [f"{package.display_name} needs the following dependencies:"]
    if analysis.missing_host_packages:
        lines.append("Host packages (install them through the host package manager):")
        lines.extend(f"  {s.package_name}@{s.required_version}" for s in analysis.missing_host_packages)
    if analysis.incompatible_dependencies:
        lines.append("Version mismatch:")
        lines.extend(
            f"  {s.package_name} (requires {s.required_version}, installed {s.installed_version})"
            for s in analysis.incompatible_dependencies
        )
    if analysis.missing_managed_packages:
        lines.append("Packages that will be installed:")
        lines.extend(f"  {s.package_name}@{s.required_version}" for s in analysis.missing_managed_packages)
    return "\n".join(lines)


def _catalog_progress(completed: int, total: int) -> None:
    logger.debug("Loaded %d/%d package details", completed, total)


async def _load_catalog(ctx) -> None:
    await ctx.catalog.load_from_registry(on_progress=_catalog_progress)


def _require_package(ctx, name: str) -> PackageInfo:
    package = ctx.catalog.find(name)
    if package is None:
        raise StateError(f"package '{name}' is not in the catalog")
    return package


async def run_list(args, ctx) -> ExitCodes:
    await _load_catalog(ctx)
    packages = ctx.catalog.installed() if getattr(args, "INSTALLED_ONLY", False) else ctx.catalog.packages
    if getattr(args, "JSON", False):
        print(json.dumps([p.to_dict() for p in packages], indent=2))
        return ExitCodes.SUCCESS
    for package in packages:
        local = package.local_version or "-"
        marker = " (update available)" if package.has_update else ""
        print(f"{package.name:40} {package.newest_version or '-':12} {local:12}{marker}")
    return ExitCodes.SUCCESS


async def run_info(args, ctx) -> ExitCodes:
    await _load_catalog(ctx)
    package = _require_package(ctx, args.name)
    statuses = [ctx.catalog.check_dependency(n, r) for n, r in package.dependencies.items()]
    if getattr(args, "JSON", False):
        data = package.to_dict()
        data["dependency_status"] = {s.package_name: s.status_text for s in statuses}
        print(json.dumps(data, indent=2))
        return ExitCodes.SUCCESS

    print(f"{package.display_name} ({package.name})")
    if package.description:
        print(f"  {package.description}")
    if package.author:
        author = f"{package.author} <{package.author_url}>" if package.author_url else package.author
        print(f"Author:    {author}")
    print(f"Newest:    {package.newest_version or '-'}")
    print(f"Installed: {package.local_version or '-'}")
    if package.documentation_url:
        print(f"Docs:      {package.documentation_url}")
    if package.changelog_url:
        print(f"Changelog: {package.changelog_url}")
    if package.versions:
        print("Versions:")
        for info in package.versions:
            flag = " *" if info.is_installed else ""
            print(f"  {info.version:12} {info.publish_date or ''}{flag}")
    if statuses:
        print("Dependencies:")
        for status in statuses:
            print(f"  {status.package_name}@{status.required_version}: {status.status_text}")
    return ExitCodes.SUCCESS


def _result_exit_code(result: OperationResult) -> ExitCodes:
    if result.state == OperationState.COMPLETED:
        if result.failed:
            for name, error in result.failed.items():
                logger.warning("Dependency %s was not installed: %s", name, error)
        return ExitCodes.SUCCESS
    if result.state == OperationState.ABORTED:
        if result.conflicts:
            raise ConflictError(generate_conflict_report(result.conflicts), result.conflicts)
        return ExitCodes.ABORTED
    return ExitCodes.OPERATION_FAILED


async def run_install(args, ctx) -> ExitCodes:
    request = parse_cli_token(args.package)
    await _load_catalog(ctx)
    package = _require_package(ctx, request.identifier)

    resolution = resolve_version(
        package.name, request.requested_spec, package.version_strings(), package.newest_version
    )
    if resolution.resolved_version is None:
        raise ResolutionError(resolution.error or f"no version of {package.name} available")

    ctx.manager.on_progress.subscribe(lambda message, fraction: logger.debug("%s %.0f%%", message, fraction * 100))
    result = await ctx.manager.install_package(package, resolution.resolved_version)
    for name in result.host_requested:
        print(f"requested {name} from the host package manager")
    for name in result.installed:
        print(f"installed {name}@{ctx.catalog.find(name).local_version}")
    for name in result.delegated:
        print(f"delegated {name} to the host package manager")
    return _result_exit_code(result)


async def run_uninstall(args, ctx) -> ExitCodes:
    await _load_catalog(ctx)
    package = _require_package(ctx, args.name)
    result = await ctx.manager.uninstall_package(package)
    if result.succeeded:
        print(f"uninstalled {package.name}")
    return _result_exit_code(result)


async def run_conflicts(args, ctx) -> ExitCodes:
    await _load_catalog(ctx)
    package = _require_package(ctx, args.name)
    conflicts = detect_conflicts(
        package, ctx.catalog.packages, ctx.installer, ctx.host_index.is_host_package
    )
    if not conflicts:
        print(f"No conflicts for {package.name}")
        return ExitCodes.SUCCESS
    print(generate_conflict_report(conflicts))
    return ExitCodes.OPERATION_FAILED


HANDLERS = {
    "list": run_list,
    "info": run_info,
    "install": run_install,
    "uninstall": run_uninstall,
    "conflicts": run_conflicts,
}
