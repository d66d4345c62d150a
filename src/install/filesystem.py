"""Filesystem helpers for installed package directories."""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from typing import Optional, Union

from constants import Constants

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def read_manifest_version(package_dir: PathLike) -> Optional[str]:
    """Return the ``version`` from a package directory's package.json.

    Missing, unreadable or malformed manifests yield None.
    """
    manifest = Path(package_dir) / Constants.PACKAGE_JSON_FILE
    if not manifest.is_file():
        return None
    try:
        with open(manifest, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError) as exc:
        logger.warning("Cannot read %s: %s", manifest, exc)
        return None
    if not isinstance(data, dict):
        return None
    version = data.get("version")
    return version if isinstance(version, str) and version else None


def sidecar_path(directory: PathLike, suffix: str = Constants.SIDECAR_SUFFIX) -> Path:
    """Path of the sidecar file the host keeps next to ``directory``."""
    directory = Path(directory)
    return directory.with_name(directory.name + suffix)


def delete_directory_with_sidecar(directory: PathLike, suffix: str = Constants.SIDECAR_SUFFIX) -> bool:
    """Remove ``directory`` and its sidecar file; False if it did not exist."""
    directory = Path(directory)
    if not directory.is_dir():
        return False
    shutil.rmtree(directory)
    sidecar = sidecar_path(directory, suffix)
    if sidecar.is_file():
        sidecar.unlink()
    return True


def copy_directory(source: PathLike, target: PathLike) -> Path:
    """Recursively copy ``source`` into ``target``, overwriting files."""
    target = Path(target)
    shutil.copytree(source, target, dirs_exist_ok=True)
    return target
