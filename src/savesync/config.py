"""
Persisted configuration — retention limit, watched apps, remote target.

Stored as YAML at <home>/config.yaml. A missing or malformed file
yields defaults so a fresh install always starts.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger("savesync.config")

CONFIG_FILENAME = "config.yaml"
DEFAULT_RETENTION_LIMIT = 10


class RemoteBackendType(str, Enum):
    """Supported remote object stores."""

    GDRIVE = "gdrive"
    LOCAL = "local"


class RemoteConfig(BaseModel):
    """Where staged artifacts are uploaded."""

    backend_type: RemoteBackendType = RemoteBackendType.GDRIVE
    root_folder: str = "SaveSync"

    # Google Drive
    client_secrets_file: Optional[Path] = None

    # Local filesystem (NAS, USB, mounted drive)
    local_path: Optional[Path] = None


class WatchConfig(BaseModel):
    """Watcher timings, in seconds."""

    poll_interval: float = 2.0
    settle_seconds: float = 5.0


class AppConfig(BaseModel):
    """Complete persisted configuration."""

    retention_limit: int = Field(default=DEFAULT_RETENTION_LIMIT, ge=1)
    watch_enabled: list[int] = Field(default_factory=list)
    backup_root: Optional[Path] = None
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)


def load_config(home: Path) -> AppConfig:
    """Load configuration from <home>/config.yaml.

    Args:
        home: SaveSync home directory.

    Returns:
        AppConfig: Parsed config, or defaults if absent or invalid.
    """
    config_file = home / CONFIG_FILENAME
    if config_file.exists():
        try:
            data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
            return AppConfig(**data)
        except (yaml.YAMLError, ValueError, TypeError) as exc:
            logger.warning("Failed to load config %s: %s", config_file, exc)
    return AppConfig()


def save_config(home: Path, config: AppConfig) -> Path:
    """Write configuration to <home>/config.yaml.

    Returns:
        Path: The file written.
    """
    home.mkdir(parents=True, exist_ok=True)
    config_file = home / CONFIG_FILENAME
    data = config.model_dump(mode="json", exclude_none=True)
    config_file.write_text(yaml.dump(data, default_flow_style=False), encoding="utf-8")
    return config_file
