import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from datajpa.core.logging import get_logger

logger = get_logger("config")

ENV_PREFIX = "DATAJPA_"
PROFILE_ENV = "DATAJPA_PROFILE"
DEFAULTS_PATH = Path(__file__).parent / "defaults.yml"

DEFAULT_SOURCE = "default configuration"


class ConfigurationProperties:
    """
    Layered configuration.

    Precedence, lowest first:
    1. datajpa/config/defaults.yml
    2. application.yml in the working directory (or an explicit path)
    3. application-<profile>.yml, profile taken from DATAJPA_PROFILE

    Environment variables (DATAJPA_DATABASE_URL for database.url) are only
    consulted for keys that no configuration file defines.
    """

    def __init__(self, config_path: Optional[str] = None):
        self._config: Dict[str, Any] = {}
        self._sources: Dict[str, str] = {}
        self.profile = os.environ.get(PROFILE_ENV, "")

        self._merge_file(DEFAULTS_PATH, DEFAULT_SOURCE)

        if config_path:
            self._merge_file(Path(config_path), Path(config_path).name)
        else:
            self._merge_file(Path.cwd() / "application.yml", "application.yml")

        if self.profile:
            profile_file = f"application-{self.profile}.yml"
            self._merge_file(Path.cwd() / profile_file, profile_file)

    def _merge_file(self, path: Path, source: str) -> None:
        if not path.exists():
            return

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring configuration file {path}: top level is not a mapping")
            return

        self._merge(self._config, data, source, prefix="")
        logger.debug(f"Loaded configuration from {path}")

    def _merge(self, target: Dict, data: Dict, source: str, prefix: str) -> None:
        for key, value in data.items():
            full_key = f"{prefix}{key}"
            if isinstance(value, dict):
                node = target.get(key)
                if not isinstance(node, dict):
                    node = {}
                    target[key] = node
                self._merge(node, value, source, prefix=f"{full_key}.")
            else:
                target[key] = value
                self._sources[full_key] = source

    def _lookup(self, key: str) -> Any:
        node: Any = self._config
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by dotted key, falling back to DATAJPA_* environment variables."""
        value = self._lookup(key)
        if value is not None:
            return value

        env_key = ENV_PREFIX + key.upper().replace(".", "_")
        env_value = os.environ.get(env_key)
        if env_value is not None:
            self._sources[key] = f"environment variable ({env_key})"
            return _coerce(env_value)

        return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("true", "1", "yes", "on")

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        value = self.get(key)
        if value is None:
            return default
        return int(value)

    def get_config_sources(self) -> Dict[str, str]:
        return dict(self._sources)


def _coerce(raw: str) -> Any:
    """Parse environment values with YAML scalar rules (ints, bools, strings)."""
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw


_config: Optional[ConfigurationProperties] = None


def get_config() -> ConfigurationProperties:
    global _config
    if _config is None:
        _config = ConfigurationProperties()
    return _config


def reload_config(config_path: Optional[str] = None) -> ConfigurationProperties:
    global _config
    _config = ConfigurationProperties(config_path)
    return _config


def log_config_sources(config: Optional[ConfigurationProperties] = None) -> None:
    """Log where each configuration value came from."""
    config = config or get_config()
    sources = config.get_config_sources()
    if not sources:
        return

    logger.info("Configuration sources:")
    for key in sorted(sources):
        logger.info(f"  {key} = {config.get(key)!r} ({sources[key]})")
