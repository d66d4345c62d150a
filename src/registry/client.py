"""Registry metadata client for npm-style (Verdaccio) registries."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple
from urllib.parse import quote

from constants import Constants
from common.errors import CatalogError
from common.http_client import get_json
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from catalog.models import PackageInfo
from catalog.parser import parse_all_packages, parse_package_detail

logger = logging.getLogger(__name__)


def package_path(name: str) -> str:
    """URL path segment for a package name; ``@scope/pkg`` keeps its ``@``."""
    return quote(name, safe="@")


class RegistryClient:
    """Fetch package listings and packuments from a registry.

    Calls are blocking (``requests``); async callers run them through
    ``asyncio.to_thread``.
    """

    def __init__(
        self,
        registry_url: str = Constants.REGISTRY_URL,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.registry_url = registry_url.rstrip("/")
        self._auth: Optional[Tuple[str, str]] = (username, password or "") if username else None
        self._timeout = timeout
        self._headers = {
            "Accept": "application/json",
            "User-Agent": Constants.USER_AGENT,
        }

    @property
    def auth(self) -> Optional[Tuple[str, str]]:
        return self._auth

    def all_packages_url(self) -> str:
        return self.registry_url + Constants.REGISTRY_ALL_PACKAGES_PATH

    def package_url(self, name: str) -> str:
        return f"{self.registry_url}/{package_path(name)}"

    def tarball_url(self, name: str, version: str) -> str:
        """Archive URL; scoped packages use the unscoped base in the file name."""
        base = name.rsplit("/", 1)[-1]
        return f"{self.registry_url}/{package_path(name)}/-/{base}-{version}.tgz"

    def _fetch(self, url: str, what: str):
        with Timer() as timer:
            status, _, data = get_json(url, headers=self._headers, auth=self._auth, timeout=self._timeout)
        if is_debug_enabled(logger):
            logger.debug(
                "Registry response",
                extra=extra_context(
                    event="registry_response",
                    component="registry",
                    action="GET",
                    target=safe_url(url),
                    status_code=status,
                    duration_ms=timer.duration_ms(),
                ),
            )
        if status == 0:
            raise CatalogError(f"Failed to fetch {what}: registry unreachable at {safe_url(self.registry_url)}")
        if status == 404:
            raise CatalogError(f"Failed to fetch {what}: not found")
        if status != 200:
            raise CatalogError(f"Failed to fetch {what}: HTTP {status}")
        if data is None:
            raise CatalogError(f"Failed to fetch {what}: response is not valid JSON")
        return data

    def get_all_packages(self) -> List[PackageInfo]:
        """Return summary entries for every package the registry knows.

        Raises:
            CatalogError: on transport, HTTP or payload errors.
        """
        data = self._fetch(self.all_packages_url(), "package list")
        packages = parse_all_packages(data)
        logger.info("Registry lists %d packages", len(packages))
        return packages

    def get_package_detail(self, name: str) -> PackageInfo:
        """Return the full packument for ``name``.

        Raises:
            CatalogError: on transport, HTTP or payload errors.
        """
        data = self._fetch(self.package_url(name), f"package '{name}'")
        return parse_package_detail(data)
