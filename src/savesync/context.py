"""
AppContext — the process-wide state every component is built from.

Replaces ambient globals: the home directory, the loaded configuration
and the in-flight guard travel together and are passed to each
component's constructor. load() reads persisted values, close() flushes
them back.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from . import SAVESYNC_HOME
from .config import AppConfig, load_config, save_config
from .guard import InFlightGuard

logger = logging.getLogger("savesync.context")


class AppContext:
    """Shared context for one SaveSync process.

    Args:
        home: SaveSync home directory.
        config: Loaded configuration.
        guard: Per-application single-flight guard.
    """

    def __init__(
        self,
        home: Path,
        config: Optional[AppConfig] = None,
        guard: Optional[InFlightGuard] = None,
    ) -> None:
        self.home = Path(home).expanduser()
        self.config = config or AppConfig()
        self.guard = guard or InFlightGuard()
        self._closed = False

    @classmethod
    def load(cls, home: Optional[Path] = None) -> "AppContext":
        """Create a context with persisted configuration loaded.

        Args:
            home: Override the home directory. Defaults to SAVESYNC_HOME.
        """
        home_path = Path(home or SAVESYNC_HOME).expanduser()
        home_path.mkdir(parents=True, exist_ok=True)
        ctx = cls(home_path, config=load_config(home_path))
        logger.debug("Context loaded from %s", home_path)
        return ctx

    @property
    def backup_root(self) -> Path:
        root = self.config.backup_root
        return Path(root).expanduser() if root else self.home / "backups"

    @property
    def sync_dir(self) -> Path:
        return self.home / "sync"

    @property
    def log_dir(self) -> Path:
        return self.home / "logs"

    def flush(self) -> None:
        """Persist the current configuration."""
        save_config(self.home, self.config)

    def close(self) -> None:
        """Flush configuration on teardown. Safe to call twice."""
        if self._closed:
            return
        self.flush()
        self._closed = True

    def __enter__(self) -> "AppContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
