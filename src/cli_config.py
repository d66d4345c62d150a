"""Runtime configuration for the engine.

Values are layered with increasing precedence: built-in defaults, a YAML or
JSON config file, environment variables, then CLI flags.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional

from constants import Constants, _load_yaml_config

logger = logging.getLogger(__name__)

# Config file keys accepted inside the "registry:" and "install:" sections
_SECTION_KEYS = {
    "registry": {
        "url": "registry_url",
        "username": "username",
        "password": "password",
        "timeout": "request_timeout",
        "max_concurrency": "max_concurrency",
    },
    "install": {
        "root": "install_root",
        "path": "install_root",
        "scratch_dir": "scratch_dir",
        "host_manifest": "host_manifest",
        "host_package_prefixes": "host_package_prefixes",
        "host_install_command": "host_install_command",
        "sidecar_suffix": "sidecar_suffix",
        "max_concurrency": "max_concurrency",
    },
}

_ENV_KEYS = {
    Constants.ENV_REGISTRY_URL: "registry_url",
    Constants.ENV_REGISTRY_USERNAME: "username",
    Constants.ENV_REGISTRY_PASSWORD: "password",
    Constants.ENV_INSTALL_ROOT: "install_root",
}


@dataclass
class EngineConfig:
    """Configuration for registry access and the local install root."""

    registry_url: str = Constants.REGISTRY_URL
    username: Optional[str] = None
    password: Optional[str] = None
    install_root: str = Constants.INSTALL_ROOT
    scratch_dir: Optional[str] = None
    host_manifest: Optional[str] = Constants.HOST_MANIFEST
    host_package_prefixes: List[str] = field(default_factory=lambda: list(Constants.HOST_PACKAGE_PREFIXES))
    host_install_command: Optional[str] = None
    max_concurrency: int = Constants.MAX_CONCURRENCY
    request_timeout: float = Constants.REQUEST_TIMEOUT
    sidecar_suffix: str = Constants.SIDECAR_SUFFIX

    def __post_init__(self):
        self.registry_url = str(self.registry_url).rstrip("/")
        self.max_concurrency = int(self.max_concurrency)
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {self.max_concurrency}")
        self.request_timeout = float(self.request_timeout)
        if isinstance(self.host_package_prefixes, str):
            self.host_package_prefixes = [self.host_package_prefixes]

    def apply(self, values: Mapping[str, Any]) -> "EngineConfig":
        """Return a copy with every non-None entry of ``values`` applied."""
        known = {f.name for f in fields(self)}
        current = {f.name: getattr(self, f.name) for f in fields(self)}
        for key, value in values.items():
            if key not in known:
                logger.warning("Ignoring unknown config key: %s", key)
                continue
            if value is not None:
                current[key] = value
        return EngineConfig(**current)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Flatten a config file mapping into EngineConfig field names.

        Accepts ``registry:`` / ``install:`` sections as well as flat keys
        named after the fields.
        """
        flat: Dict[str, Any] = {}
        for section, keys in _SECTION_KEYS.items():
            block = data.get(section)
            if block is None:
                continue
            if not isinstance(block, Mapping):
                raise ValueError(f"Config section '{section}' must be a mapping")
            for key, value in block.items():
                target = keys.get(key)
                if target is None:
                    logger.warning("Ignoring unknown config key: %s.%s", section, key)
                    continue
                flat[target] = value
        field_names = {f.name for f in fields(cls)}
        for key, value in data.items():
            if key in _SECTION_KEYS:
                continue
            if key in field_names:
                flat[key] = value
            else:
                logger.warning("Ignoring unknown config key: %s", key)
        return flat

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        env = os.environ if environ is None else environ
        return {attr: env[name] for name, attr in _ENV_KEYS.items() if env.get(name)}

    @classmethod
    def from_args(cls, args: Any) -> Dict[str, Any]:
        """Extract overrides from a parsed CLI namespace."""
        return {
            "registry_url": getattr(args, "REGISTRY_URL", None),
            "install_root": getattr(args, "INSTALL_ROOT", None),
            "max_concurrency": getattr(args, "MAX_CONCURRENCY", None),
        }

    @classmethod
    def load(
        cls,
        config_path: Optional[str] = None,
        args: Any = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "EngineConfig":
        """Build the effective configuration.

        Raises:
            ValueError: if the config file is malformed or a value is invalid.
        """
        config = cls()
        file_data = _load_yaml_config(config_path)
        if file_data:
            logger.debug("Loaded config file %s", config_path or os.environ.get(Constants.ENV_CONFIG))
            config = config.apply(cls.from_mapping(file_data))
        config = config.apply(cls.from_env(environ))
        if args is not None:
            config = config.apply(cls.from_args(args))
        return config
