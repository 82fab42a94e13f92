"""Backup configuration loading.

The document is TOML (read with `tomllib`) and validated against
`labops.schemas.config.BackupConfig`.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from labops.schemas.config import BackupConfig


CONFIG_ENV_VAR = "LABOPS_BACKUP_CONFIG"

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when the configuration cannot be located, parsed or validated."""


def resolve_config_path(path: Optional[Union[str, Path]] = None) -> Path:
    """Return the explicit path, else `$LABOPS_BACKUP_CONFIG`."""
    if path:
        return Path(path).expanduser()
    env_value = os.getenv(CONFIG_ENV_VAR)
    if not env_value:
        raise ConfigError(f"no configuration given and {CONFIG_ENV_VAR} is not set")
    return Path(env_value).expanduser()


def load_backup_config(path: Optional[Union[str, Path]] = None) -> BackupConfig:
    config_path = resolve_config_path(path)
    if not config_path.is_file():
        raise ConfigError(f"configuration file not found: {config_path}")

    try:
        with open(config_path, "rb") as fh:
            raw = tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid TOML in {config_path}: {exc}") from exc

    try:
        config = BackupConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration {config_path}: {exc}") from exc

    logger.info(
        "config_loaded | path=%s targets=%s local_drives=%s smb_shares=%s mirror_clones=%s git_bundles=%s",
        config_path,
        len(config.targets),
        len(config.destinations.local_drives),
        len(config.destinations.smb_shares),
        len(config.destinations.mirror_clones),
        len(config.destinations.git_bundles),
    )
    return config
