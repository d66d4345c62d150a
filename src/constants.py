"""Constants used in the project."""

import json
import logging
import os
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    OPERATION_FAILED = 3
    ABORTED = 4


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration defaults; not intended to provide behavior.
    """

    REGISTRY_URL = "http://localhost:4873"
    REGISTRY_ALL_PACKAGES_PATH = "/-/all"
    INSTALL_ROOT = "Packages/pkgwright"
    SCRATCH_DIR_NAME = ".pkgwright-scratch"
    HOST_MANIFEST = "Packages/manifest.json"
    HOST_PACKAGE_PREFIXES = ["com.unity."]
    HOST_INSTALL_TIMEOUT = 300  # Seconds allowed for one host install command
    PACKAGE_JSON_FILE = "package.json"
    SIDECAR_SUFFIX = ".meta"
    TARBALL_ROOT_DIR = "package"
    UNKNOWN_VERSION = "unknown"
    MAX_CONCURRENCY = 10
    DOWNLOAD_CHUNK_SIZE = 64 * 1024
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    REQUEST_TIMEOUT = 10  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    HTTP_CACHE_TTL_SEC = 300
    USER_AGENT = "pkgwright/0.4"

    ENV_LOG_LEVEL = "PKGWRIGHT_LOG_LEVEL"
    ENV_REGISTRY_URL = "PKGWRIGHT_REGISTRY_URL"
    ENV_REGISTRY_USERNAME = "PKGWRIGHT_REGISTRY_USERNAME"
    ENV_REGISTRY_PASSWORD = "PKGWRIGHT_REGISTRY_PASSWORD"
    ENV_INSTALL_ROOT = "PKGWRIGHT_INSTALL_ROOT"
    ENV_CONFIG = "PKGWRIGHT_CONFIG"


def _load_yaml_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load a configuration mapping from a YAML or JSON file.

    Falls back to the PKGWRIGHT_CONFIG environment variable when no path is
    given. A missing file yields an empty mapping; a malformed one raises
    ValueError so the caller can report it.
    """
    cfg_path = path or os.environ.get(Constants.ENV_CONFIG)
    if not cfg_path:
        return {}
    if not os.path.isfile(cfg_path):
        logger.warning("Config file not found: %s", cfg_path)
        return {}

    with open(cfg_path, "r", encoding="utf-8") as handle:
        text = handle.read()

    if cfg_path.lower().endswith(".json"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON config {cfg_path}: {exc}") from exc
    else:
        import yaml  # pylint: disable=import-outside-toplevel

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML config {cfg_path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {cfg_path} must contain a mapping at the top level")
    return data
