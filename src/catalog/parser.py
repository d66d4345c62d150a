"""Decode registry metadata into catalog models.

Two payload shapes are supported:

- ``GET /-/all``: an object keyed by package name. Keys beginning with ``_``
  (``_updated`` and friends) are bookkeeping and skipped.
- ``GET /<name>``: a packument with ``dist-tags``, ``versions`` and ``time``.
  Display name and dependencies come from the entry of the latest version.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from catalog.models import PackageInfo, VersionInfo
from catalog.schemas import ALL_PACKAGES_SCHEMA, PACKAGE_DETAIL_SCHEMA, validate_payload
from versioning.semver import SemanticVersion

logger = logging.getLogger(__name__)


def _parse_author(raw: Any) -> Tuple[Optional[str], Optional[str]]:
    """Return (name, url) from a string or ``{name, url}`` author field."""
    if isinstance(raw, str):
        return (raw or None), None
    if isinstance(raw, dict):
        return raw.get("name") or None, raw.get("url") or None
    return None, None


def _latest(payload: Dict[str, Any]) -> Optional[str]:
    tags = payload.get("dist-tags") or {}
    latest = tags.get("latest")
    return latest if isinstance(latest, str) and latest else None


def parse_all_packages(payload: Any) -> List[PackageInfo]:
    """Parse a ``/-/all`` response into summary PackageInfo objects.

    Raises:
        CatalogSchemaError: if the payload is malformed.
    """
    validate_payload(ALL_PACKAGES_SCHEMA, payload, "package list")
    packages: List[PackageInfo] = []
    for key, entry in payload.items():
        if key.startswith("_"):
            continue
        author, author_url = _parse_author(entry.get("author"))
        packages.append(
            PackageInfo(
                name=entry["name"],
                display_name=entry["name"],
                description=entry.get("description"),
                author=author,
                author_url=author_url,
                newest_version=_latest(entry),
            )
        )
    packages.sort(key=lambda p: p.name)
    return packages


def parse_package_detail(payload: Any) -> PackageInfo:
    """Parse a packument into a PackageInfo with every published version.

    Version keys that are not valid semantic versions are dropped with a
    warning. Versions are ordered newest first. When ``dist-tags.latest`` is
    absent the highest version is used as newest.

    Raises:
        CatalogSchemaError: if the payload is malformed.
    """
    validate_payload(PACKAGE_DETAIL_SCHEMA, payload, "package detail")
    name = payload["name"]
    latest = _latest(payload)
    author, author_url = _parse_author(payload.get("author"))
    times = payload.get("time") or {}

    parsed: List[Tuple[SemanticVersion, VersionInfo]] = []
    for key, data in (payload.get("versions") or {}).items():
        semver = SemanticVersion.try_parse(key)
        if semver is None:
            logger.warning("Dropping unparseable version '%s' of %s", key, name)
            continue
        parsed.append(
            (semver, VersionInfo(version=key, publish_date=times.get(key), changelog=data.get("changelog")))
        )
    parsed.sort(key=lambda item: item[0].key(), reverse=True)
    versions = [info for _, info in parsed]

    if latest is None and versions:
        latest = versions[0].version

    info = PackageInfo(
        name=name,
        display_name=name,
        description=payload.get("description"),
        author=author,
        author_url=author_url,
        newest_version=latest,
        versions=versions,
    )

    latest_data = (payload.get("versions") or {}).get(latest) if latest else None
    if latest_data:
        if latest_data.get("displayName"):
            info.display_name = latest_data["displayName"]
        if not info.description and latest_data.get("description"):
            info.description = latest_data["description"]
        info.documentation_url = latest_data.get("documentationUrl")
        info.changelog_url = latest_data.get("changelogUrl")
        for dep_name, dep_range in (latest_data.get("dependencies") or {}).items():
            if dep_name == name:
                logger.warning("Ignoring self-dependency declared by %s", name)
                continue
            info.dependencies[dep_name] = dep_range
    return info
