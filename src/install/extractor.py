"""Gzip'd tarball extraction with path-traversal protection."""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
from pathlib import Path
from typing import List, Union

from constants import Constants
from common.errors import InstallError

logger = logging.getLogger(__name__)


class TarballExtractor:
    """Unpack npm-style ``.tgz`` archives into a scratch directory."""

    def __init__(self, root_dir_name: str = Constants.TARBALL_ROOT_DIR):
        self.root_dir_name = root_dir_name

    def extract(self, archive: Union[str, Path], destination: Union[str, Path]) -> Path:
        """Extract ``archive`` under ``destination`` and return the content root.

        ``destination`` is emptied first. npm tarballs wrap their contents in a
        ``package/`` directory; when present that directory is returned,
        otherwise ``destination`` itself.

        Raises:
            InstallError: if the archive is unreadable or a member would land
                outside ``destination``.
        """
        destination = Path(destination)
        if destination.exists():
            shutil.rmtree(destination)
        destination.mkdir(parents=True)

        try:
            with tarfile.open(archive, "r:gz") as tar:
                members = self._safe_members(tar, destination)
                if hasattr(tarfile, "data_filter"):
                    tar.extractall(destination, members=members, filter="data")
                else:
                    tar.extractall(destination, members=members)
        except InstallError:
            raise
        except (tarfile.TarError, OSError, EOFError) as exc:
            raise InstallError(f"extract failed: {exc}") from exc

        root = destination / self.root_dir_name
        if root.is_dir():
            return root
        logger.debug("Archive %s has no '%s/' root; using %s", archive, self.root_dir_name, destination)
        return destination

    @staticmethod
    def _safe_members(tar: tarfile.TarFile, destination: Path) -> List[tarfile.TarInfo]:
        base = os.path.realpath(destination)
        members = []
        for member in tar.getmembers():
            target = os.path.realpath(os.path.join(base, member.name))
            if os.path.commonpath([base, target]) != base:
                raise InstallError(f"extract failed: member '{member.name}' escapes the extraction directory")
            if member.issym() or member.islnk():
                link_base = os.path.dirname(target) if member.issym() else base
                link_target = os.path.realpath(os.path.join(link_base, member.linkname))
                if os.path.commonpath([base, link_target]) != base:
                    raise InstallError(f"extract failed: link '{member.name}' points outside the extraction directory")
            elif not (member.isfile() or member.isdir()):
                logger.warning("Skipping special archive member %s", member.name)
                continue
            members.append(member)
        return members
