"""Exception hierarchy for catalog, resolution and install failures."""

from __future__ import annotations


class PackageManagerError(Exception):
    """Base class for every error raised by the engine."""


class CatalogError(PackageManagerError):
    """Raised when registry metadata cannot be fetched or parsed."""


class CatalogSchemaError(CatalogError):
    """Raised when a registry payload fails schema validation."""


class ResolutionError(PackageManagerError):
    """Raised when no concrete version can be chosen for a requirement."""


class DependencyCycleError(ResolutionError):
    """Raised when a dependency chain leads back to one of its ancestors."""

    def __init__(self, chain):
        self.chain = tuple(chain)
        super().__init__("dependency cycle detected: " + " -> ".join(self.chain))


class ConflictError(PackageManagerError):
    """Raised when mutually unsatisfiable requirements block an operation."""

    def __init__(self, message, conflicts=None):
        super().__init__(message)
        self.conflicts = list(conflicts or [])


class InstallError(PackageManagerError):
    """Raised when a download, extract or copy step fails."""


class OperationCancelledError(InstallError):
    """Raised when a cancellation signal interrupts a download."""


class StateError(PackageManagerError):
    """Raised when an operation targets a package in the wrong state."""
