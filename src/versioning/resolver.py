"""Pick a concrete version for a requirement from catalog candidates."""

import logging
from typing import List, Optional

from .models import ResolutionMode, ResolutionResult
from .parser import _determine_resolution_mode
from .semver import SemanticVersion
from .version_range import VersionRange

logger = logging.getLogger(__name__)


def resolve_version(
    identifier: str,
    spec: Optional[str],
    candidates: List[str],
    latest: Optional[str] = None,
) -> ResolutionResult:
    """Apply range rules to select a version.

    The highest satisfying candidate wins. When nothing satisfies the spec the
    resolver falls back to ``latest`` (when known) and flags the result, so
    callers can warn instead of aborting.

    Args:
        identifier: Package name, used for messages only
        spec: Range expression; None or "*" means latest
        candidates: Available version strings
        latest: The registry's dist-tags.latest

    Returns:
        ResolutionResult describing the pick
    """
    mode = _determine_resolution_mode(spec)
    pool = list(candidates)
    if latest and latest not in pool:
        pool.append(latest)

    if mode == ResolutionMode.LATEST:
        picked = latest or VersionRange("*").select_best_version(pool)
        return ResolutionResult(
            identifier=identifier,
            requested_spec=spec,
            resolved_version=picked,
            resolution_mode=mode,
            candidate_count=len(pool),
            error=None if picked else "No versions available",
        )

    best = VersionRange(spec).select_best_version(pool)
    if best is not None:
        return ResolutionResult(
            identifier=identifier,
            requested_spec=spec,
            resolved_version=best,
            resolution_mode=mode,
            candidate_count=len(pool),
        )

    message = f"No versions of {identifier} match spec '{spec}'"
    if latest and SemanticVersion.try_parse(latest) is not None:
        logger.warning("%s; falling back to latest %s", message, latest)
        return ResolutionResult(
            identifier=identifier,
            requested_spec=spec,
            resolved_version=latest,
            resolution_mode=mode,
            candidate_count=len(pool),
            fell_back_to_latest=True,
            error=message,
        )
    return ResolutionResult(
        identifier=identifier,
        requested_spec=spec,
        resolved_version=None,
        resolution_mode=mode,
        candidate_count=len(pool),
        error=message,
    )
