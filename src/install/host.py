"""Index of packages owned by the host package system.

The host keeps its own manifest (``Packages/manifest.json`` style, a JSON
object with a ``dependencies`` map). Names listed there, or matching one of
the configured prefixes, are never installed by this engine. Missing host
packages can be requested from the host through an install hook.
"""

from __future__ import annotations

import json
import logging
import shlex
import subprocess
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

from constants import Constants
from common.errors import InstallError

logger = logging.getLogger(__name__)

_GIT_PREFIXES = ("git+", "git://", "github:", "git@")

# Called with (name, spec); raises on failure
HostInstallHook = Callable[[str, str], None]


def is_git_spec(spec: Optional[str]) -> bool:
    """True if a dependency spec points at a git repository instead of a version."""
    if not spec:
        return False
    text = spec.strip()
    return text.startswith(_GIT_PREFIXES) or (text.startswith(("http://", "https://")) and ".git" in text)


def command_install_hook(command: str, timeout: float = Constants.HOST_INSTALL_TIMEOUT) -> HostInstallHook:
    """Build a hook that runs ``command`` for each requested host package.

    ``command`` is split like a shell line; ``{name}`` and ``{spec}`` in any
    argument are replaced with the package name and version spec. The command
    runs without a shell.
    """
    template = shlex.split(command)
    if not template:
        raise ValueError("host install command is empty")

    def run(name: str, spec: str) -> None:
        argv = [part.replace("{name}", name).replace("{spec}", spec) for part in template]
        logger.info("Running host install: %s", " ".join(argv))
        result = subprocess.run(argv, capture_output=True, text=True, timeout=timeout, check=False)
        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            raise InstallError(f"host install command exited with {result.returncode}: {detail}")

    return run


class HostIndex:
    """View of the host manifest plus hooks into the host package system.

    Args:
        manifest_path: host manifest JSON, None for no manifest
        prefixes: name prefixes the host owns
        on_refresh: called after the manifest is re-read
        on_install: asked to add a missing host package; None means the user
            has to add it by hand
    """

    def __init__(
        self,
        manifest_path: Union[str, Path, None] = Constants.HOST_MANIFEST,
        prefixes: Optional[Iterable[str]] = None,
        on_refresh: Optional[Callable[[], None]] = None,
        on_install: Optional[HostInstallHook] = None,
    ):
        self.manifest_path = Path(manifest_path) if manifest_path else None
        self.prefixes: List[str] = list(Constants.HOST_PACKAGE_PREFIXES if prefixes is None else prefixes)
        self._on_refresh = on_refresh
        self._on_install = on_install
        self._dependencies: Dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        self._dependencies = {}
        if self.manifest_path is None or not self.manifest_path.is_file():
            return
        try:
            with open(self.manifest_path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable host manifest %s: %s", self.manifest_path, exc)
            return
        deps = data.get("dependencies") if isinstance(data, dict) else None
        if isinstance(deps, dict):
            self._dependencies = {str(k): str(v) for k, v in deps.items()}

    def refresh(self) -> None:
        """Re-read the manifest and notify the host that the install root changed."""
        self._load()
        if self._on_refresh is not None:
            self._on_refresh()

    def is_host_package(self, name: str) -> bool:
        """True for names the host manages by prefix or lists in its manifest."""
        return name in self._dependencies or any(name.startswith(p) for p in self.prefixes)

    def is_registered(self, name: str) -> bool:
        return name in self._dependencies

    def installed_version(self, name: str) -> Optional[str]:
        """Version string the host manifest pins, None for git or absent entries."""
        spec = self._dependencies.get(name)
        if spec is None or is_git_spec(spec):
            return None
        return spec

    def is_git_package(self, name: str) -> bool:
        return is_git_spec(self._dependencies.get(name))

    @property
    def can_install(self) -> bool:
        return self._on_install is not None

    def request_install(self, name: str, spec: str) -> bool:
        """Ask the host to add ``name`` at ``spec``.

        Returns False when no install hook is configured. On success the
        manifest is re-read so the new entry is visible right away.

        Raises:
            InstallError: if the hook fails or the host command cannot run.
        """
        if self._on_install is None:
            logger.warning("No host installer configured; add %s@%s through the host", name, spec)
            return False
        try:
            self._on_install(name, spec)
        except InstallError:
            raise
        except (OSError, subprocess.SubprocessError, ValueError) as exc:
            raise InstallError(f"host install of {name}@{spec} failed: {exc}") from exc
        logger.info("Host installed %s@%s", name, spec)
        self.refresh()
        return True
