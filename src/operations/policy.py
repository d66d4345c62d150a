"""Decision points an operation needs from its caller.

The manager never prompts anyone itself. When it finds conflicts, missing
dependencies or is asked to uninstall, it asks a ``ConflictResolutionPolicy``
and proceeds or aborts on the answer.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, List, Optional

from catalog.models import DependencyAnalysis, DependencyConflict, PackageInfo


class Decision(Enum):
    """Outcome of a policy question."""

    PROCEED = "proceed"
    ABORT = "abort"


class ConflictResolutionPolicy:
    """Base policy: subclasses override the questions they care about.

    The base implementation proceeds everywhere.
    """

    def resolve_conflicts(self, package: PackageInfo, conflicts: List[DependencyConflict]) -> Decision:
        return Decision.PROCEED

    def confirm_dependencies(self, package: PackageInfo, analysis: DependencyAnalysis) -> Decision:
        return Decision.PROCEED

    def confirm_uninstall(self, package: PackageInfo) -> Decision:
        return Decision.PROCEED


class AutoApprovePolicy(ConflictResolutionPolicy):
    """Proceed with everything (non-interactive runs, ``--yes``)."""


class AutoRejectPolicy(ConflictResolutionPolicy):
    """Abort whenever a question is asked."""

    def resolve_conflicts(self, package, conflicts):
        return Decision.ABORT

    def confirm_dependencies(self, package, analysis):
        return Decision.ABORT

    def confirm_uninstall(self, package):
        return Decision.ABORT


def _as_decision(value) -> Decision:
    if isinstance(value, Decision):
        return value
    return Decision.PROCEED if value else Decision.ABORT


class CallbackPolicy(ConflictResolutionPolicy):
    """Route each question to a callable.

    Callables may return a ``Decision`` or a bool (True proceeds). A question
    without a callable proceeds.
    """

    def __init__(
        self,
        on_conflicts: Optional[Callable[[PackageInfo, List[DependencyConflict]], object]] = None,
        on_dependencies: Optional[Callable[[PackageInfo, DependencyAnalysis], object]] = None,
        on_uninstall: Optional[Callable[[PackageInfo], object]] = None,
    ):
        self._on_conflicts = on_conflicts
        self._on_dependencies = on_dependencies
        self._on_uninstall = on_uninstall

    def resolve_conflicts(self, package, conflicts):
        if self._on_conflicts is None:
            return Decision.PROCEED
        return _as_decision(self._on_conflicts(package, conflicts))

    def confirm_dependencies(self, package, analysis):
        if self._on_dependencies is None:
            return Decision.PROCEED
        return _as_decision(self._on_dependencies(package, analysis))

    def confirm_uninstall(self, package):
        if self._on_uninstall is None:
            return Decision.PROCEED
        return _as_decision(self._on_uninstall(package))
