"""Wiring of one engine instance: registry, installer, catalog and manager."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from cli_config import EngineConfig
from catalog.store import PackageCatalog
from install.host import HostIndex, command_install_hook
from install.installer import PackageInstaller
from operations.manager import PackageOperationManager
from operations.policy import ConflictResolutionPolicy
from registry.client import RegistryClient
from registry.downloader import ArchiveFetcher
from common.logging_utils import safe_url

logger = logging.getLogger(__name__)


@dataclass
class EngineContext:
    """Everything an operation needs, created once per process or test."""

    config: EngineConfig
    registry: RegistryClient
    host_index: HostIndex
    installer: PackageInstaller
    catalog: PackageCatalog
    manager: PackageOperationManager

    @classmethod
    def create(
        cls,
        config: Optional[EngineConfig] = None,
        policy: Optional[ConflictResolutionPolicy] = None,
    ) -> "EngineContext":
        config = config or EngineConfig()
        registry = RegistryClient(
            config.registry_url,
            username=config.username,
            password=config.password,
            timeout=config.request_timeout,
        )
        on_install = command_install_hook(config.host_install_command) if config.host_install_command else None
        host_index = HostIndex(config.host_manifest, config.host_package_prefixes, on_install=on_install)
        installer = PackageInstaller(
            install_root=Path(config.install_root),
            registry=registry,
            fetcher=ArchiveFetcher(username=config.username, password=config.password),
            host_index=host_index,
            scratch_dir=config.scratch_dir,
            sidecar_suffix=config.sidecar_suffix,
        )
        catalog = PackageCatalog(registry, installer, host_index, max_concurrency=config.max_concurrency)
        manager = PackageOperationManager(catalog, installer, policy=policy, max_concurrency=config.max_concurrency)
        logger.debug(
            "Engine created for registry %s, install root %s",
            safe_url(config.registry_url),
            config.install_root,
        )
        return cls(config, registry, host_index, installer, catalog, manager)

    async def close(self) -> None:
        await self.installer.close()
