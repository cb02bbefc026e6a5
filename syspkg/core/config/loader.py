"""
Configuration loader - reads syspkg.yml into typed settings.

The file is optional. Without one every manager is enabled with its
built-in priority and binary.

    timeout: 600          # per-invocation deadline, seconds
    max_workers: 4        # fan-out pool size
    managers:
      apt:
        binary: apt-fast
      snap:
        enabled: false
      flatpak:
        priority: 95
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

CONFIG_FILE = "syspkg.yml"
ENV_CONFIG = "SYSPKG_CONFIG"


class ConfigError(Exception):
    """Raised when configuration is unreadable or invalid."""


class ManagerConfig(BaseModel):
    """Overrides for one manager; unset fields keep the built-in value."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    priority: int | None = None
    binary: str | None = None
    timeout: float | None = Field(default=None, gt=0)


class SyspkgConfig(BaseModel):
    """Top-level settings."""

    model_config = ConfigDict(extra="forbid")

    timeout: float | None = Field(default=None, gt=0)
    max_workers: int | None = Field(default=None, ge=1)
    managers: dict[str, ManagerConfig] = Field(default_factory=dict)

    @field_validator("managers", mode="before")
    @classmethod
    def _allow_empty_entries(cls, value):
        # "snap:" with no body parses as None
        if isinstance(value, dict):
            return {k: (v if v is not None else {}) for k, v in value.items()}
        return value

    def manager(self, name: str) -> ManagerConfig:
        return self.managers.get(name) or ManagerConfig()


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Locate a config file.

    Order: ``$SYSPKG_CONFIG``, ``syspkg.yml`` in ``start_dir`` (default
    cwd) or any parent, ``~/.config/syspkg/syspkg.yml``, ``/etc/syspkg.yml``.
    """
    env_path = os.environ.get(ENV_CONFIG)
    if env_path:
        return Path(env_path)

    current = (start_dir or Path.cwd()).resolve()
    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        if current.parent == current:
            break
        current = current.parent

    for candidate in (Path.home() / ".config" / "syspkg" / CONFIG_FILE, Path("/etc") / CONFIG_FILE):
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Path | str | None = None) -> SyspkgConfig:
    """Load and validate configuration.

    Args:
        path: Explicit config path. If None, searches with
            :func:`find_config_file`; nothing found means defaults.

    Raises:
        ConfigError: Explicit file missing, unreadable, bad YAML or schema.
    """
    explicit = path is not None
    if path is None:
        path = find_config_file()
        if path is None:
            logger.debug("No %s found, using defaults", CONFIG_FILE)
            return SyspkgConfig()
        explicit = os.environ.get(ENV_CONFIG) is not None
    path = Path(path)

    if not path.is_file():
        if explicit:
            raise ConfigError(f"Config file not found: {path}")
        return SyspkgConfig()

    logger.debug("Loading config from %s", path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return SyspkgConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = SyspkgConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info("Loaded config from %s (%d manager overrides)", path, len(config.managers))
    return config
