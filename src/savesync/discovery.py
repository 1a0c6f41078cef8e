"""
Discovery — which applications exist and where their saves live.

The real scan of installed programs is someone else's job. SaveSync
reads the result from a YAML manifest at <home>/applications.yaml:

    applications:
      - id: 413150
        name: Stardew Valley
        save_path: ~/.config/StardewValley/Saves
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional

import yaml

from .errors import UnknownApplication
from .models import Application

logger = logging.getLogger("savesync.discovery")

MANIFEST_FILENAME = "applications.yaml"


class Discovery(ABC):
    """Source of trackable applications."""

    @abstractmethod
    def scan(self) -> list[Application]:
        """Return the known applications, in display order."""

    def find(self, app_id: int) -> Application:
        """Look up a single application by id.

        Raises:
            UnknownApplication: If no application has that id.
        """
        for app in self.scan():
            if app.id == app_id:
                return app
        raise UnknownApplication(f"Unknown application id: {app_id}")


class StaticDiscovery(Discovery):
    """Discovery over a fixed list. Returns the same objects every scan."""

    def __init__(self, apps: Iterable[Application]) -> None:
        self._apps = list(apps)

    def scan(self) -> list[Application]:
        return list(self._apps)


class ManifestDiscovery(Discovery):
    """Discovery backed by a YAML manifest file.

    The manifest is parsed once and cached, so last_snapshot_id updates
    made by the store stay visible for the life of the process.

    Args:
        manifest_path: Path to applications.yaml.
    """

    def __init__(self, manifest_path: Path) -> None:
        self.manifest_path = manifest_path
        self._apps: Optional[list[Application]] = None

    def _load(self) -> list[Application]:
        if not self.manifest_path.exists():
            logger.info("No application manifest at %s", self.manifest_path)
            return []
        try:
            data = yaml.safe_load(self.manifest_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            logger.warning("Failed to parse %s: %s", self.manifest_path, exc)
            return []

        apps = []
        for entry in data.get("applications", []) or []:
            try:
                entry = dict(entry)
                entry["save_path"] = Path(str(entry["save_path"])).expanduser()
                apps.append(Application(**entry))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping invalid manifest entry %r: %s", entry, exc)
        return apps

    def scan(self) -> list[Application]:
        if self._apps is None:
            self._apps = self._load()
        return list(self._apps)
