"""Download, extract and place packages under the install root."""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Callable, Optional, Union

from constants import Constants
from common.errors import InstallError, StateError
from common.logging_utils import extra_context, Timer
from install.extractor import TarballExtractor
from install.filesystem import copy_directory, delete_directory_with_sidecar, read_manifest_version
from install.host import HostIndex
from registry.client import RegistryClient
from registry.downloader import ArchiveFetcher

logger = logging.getLogger(__name__)


class PackageInstaller:
    """Filesystem side of install and uninstall.

    ``install`` runs download, extract, replace-in-place and host refresh in
    that order. A failure in any step raises ``InstallError`` naming the step;
    earlier steps are not rolled back.
    """

    def __init__(
        self,
        install_root: Union[str, Path],
        registry: RegistryClient,
        fetcher: Optional[ArchiveFetcher] = None,
        extractor: Optional[TarballExtractor] = None,
        host_index: Optional[HostIndex] = None,
        scratch_dir: Union[str, Path, None] = None,
        sidecar_suffix: str = Constants.SIDECAR_SUFFIX,
    ):
        self.install_root = Path(install_root)
        self.registry = registry
        self.fetcher = fetcher or ArchiveFetcher()
        self.extractor = extractor or TarballExtractor()
        self.host_index = host_index or HostIndex(manifest_path=None)
        self.scratch_dir = Path(scratch_dir) if scratch_dir else self.install_root.parent / Constants.SCRATCH_DIR_NAME
        self.sidecar_suffix = sidecar_suffix

    def package_path(self, name: str) -> Path:
        return self.install_root / name

    def is_installed(self, name: str) -> bool:
        return self.package_path(name).is_dir()

    def get_installed_version(self, name: str) -> Optional[str]:
        """Version from the installed package.json, None when not determinable."""
        if not self.is_installed(name):
            return None
        return read_manifest_version(self.package_path(name))

    def _scratch_for(self, name: str, version: str) -> Path:
        return self.scratch_dir / f"{name.replace('/', '__')}-{version}"

    async def install(
        self,
        name: str,
        version: str,
        on_progress: Optional[Callable[[float], None]] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Path:
        """Install ``name@version`` and return the package directory.

        Raises:
            OperationCancelledError: if cancelled during the download.
            InstallError: if download, extraction or copying fails.
        """
        scratch = self._scratch_for(name, version)
        archive = scratch.parent / (scratch.name + ".tgz")
        url = self.registry.tarball_url(name, version)
        target = self.package_path(name)

        with Timer() as timer:
            try:
                await self.fetcher.fetch(url, archive, on_progress=on_progress, cancel_event=cancel_event)
            except InstallError:
                raise
            except Exception as exc:  # pylint: disable=broad-exception-caught
                raise InstallError(f"download failed: {exc}") from exc

            try:
                content_root = await asyncio.to_thread(self.extractor.extract, archive, scratch)
            except InstallError:
                raise
            except Exception as exc:  # pylint: disable=broad-exception-caught
                raise InstallError(f"extract failed: {exc}") from exc

            try:
                await asyncio.to_thread(self._replace, content_root, target)
            except OSError as exc:
                raise InstallError(f"install failed: {exc}") from exc

            self.host_index.refresh()
            await asyncio.to_thread(self._cleanup, scratch, archive)

        logger.info(
            "Installed %s@%s",
            name,
            version,
            extra=extra_context(
                event="install",
                component="installer",
                package=name,
                version=version,
                target=str(target),
                outcome="success",
                duration_ms=timer.duration_ms(),
            ),
        )
        return target

    def _replace(self, source: Path, target: Path) -> None:
        delete_directory_with_sidecar(target, self.sidecar_suffix)
        target.parent.mkdir(parents=True, exist_ok=True)
        copy_directory(source, target)

    @staticmethod
    def _cleanup(scratch: Path, archive: Path) -> None:
        shutil.rmtree(scratch, ignore_errors=True)
        archive.unlink(missing_ok=True)

    async def uninstall(self, name: str) -> None:
        """Remove an installed package and its sidecar.

        Raises:
            StateError: if the package directory does not exist.
            InstallError: if the directory cannot be removed.
        """
        target = self.package_path(name)
        if not target.is_dir():
            raise StateError(f"package does not exist: {target}")
        try:
            await asyncio.to_thread(delete_directory_with_sidecar, target, self.sidecar_suffix)
        except OSError as exc:
            raise InstallError(f"uninstall failed: {exc}") from exc
        self.host_index.refresh()
        logger.info(
            "Uninstalled %s",
            name,
            extra=extra_context(event="uninstall", component="installer", package=name, outcome="success"),
        )

    async def close(self) -> None:
        await self.fetcher.close()
