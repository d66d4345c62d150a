"""Token parsing utilities for package requests."""

from typing import Optional, Tuple

from .models import PackageRequest, ResolutionMode
from .semver import SemanticVersion


def tokenize_rightmost_at(s: str) -> Tuple[str, Optional[str]]:
    """Return (identifier, spec or None) using the rightmost-@ rule.

    A leading "@" belongs to a scoped name, so "@scope/pkg" has no spec while
    "@scope/pkg@^1.0.0" splits into ("@scope/pkg", "^1.0.0").
    """
    s = s.strip()
    at = s.rfind("@")
    if at <= 0:
        return s, None
    identifier = s[:at].strip()
    spec_part = s[at + 1:].strip()
    spec = spec_part if spec_part else None
    return identifier, spec


def _determine_resolution_mode(spec: Optional[str]) -> ResolutionMode:
    """Determine resolution mode from spec string."""
    if spec is None or spec.strip() in ("", "*", "latest"):
        return ResolutionMode.LATEST
    text = spec.strip()
    if text.startswith("="):
        text = text[1:]
    if SemanticVersion.try_parse(text) is not None:
        return ResolutionMode.EXACT
    return ResolutionMode.RANGE


def parse_cli_token(token: str) -> PackageRequest:
    """Parse a CLI token such as ``lodash@^4.17.0`` into a PackageRequest."""
    identifier, spec = tokenize_rightmost_at(token)
    if spec is not None and spec.lower() == "latest":
        spec = None
    return PackageRequest(
        identifier=identifier,
        requested_spec=spec,
        mode=_determine_resolution_mode(spec),
        source="cli",
        raw_token=token,
    )
