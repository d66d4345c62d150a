"""Data models for package requests and version resolution."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ResolutionMode(Enum):
    """Resolution strategy derived from the requested spec."""
    EXACT = "exact"
    RANGE = "range"
    LATEST = "latest"


@dataclass
class PackageRequest:
    """A package named by the user, optionally with a version spec."""
    identifier: str  # package name, scoped names keep their "@scope/" prefix
    requested_spec: Optional[str]
    mode: ResolutionMode
    source: str  # "cli"
    raw_token: Optional[str] = None


@dataclass
class ResolutionResult:
    """Outcome of resolving one requirement against the catalog."""
    identifier: str
    requested_spec: Optional[str]
    resolved_version: Optional[str]
    resolution_mode: ResolutionMode
    candidate_count: int
    fell_back_to_latest: bool = False
    error: Optional[str] = None
