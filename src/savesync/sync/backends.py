"""
Remote stores -- where staged artifacts travel.

Each backend knows how to upload one archive under a namespace of
nested folders (root folder, then application name) and report where
it landed.

GDrive: Google Drive v3 REST API. Folders are found or created by name.
Local: Plain filesystem copy. For USB drives, NAS, etc.
"""

from __future__ import annotations

import json
import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Sequence

import requests

from ..config import RemoteBackendType, RemoteConfig
from ..errors import TransferFailed
from ..models import safe_dir_name

logger = logging.getLogger("savesync.sync.backends")

DRIVE_FILES_URL = "https://www.googleapis.com/drive/v3/files"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
DRIVE_FOLDER_MIME = "application/vnd.google-apps.folder"

HTTP_TIMEOUT = 120


class RemoteStore(ABC):
    """Abstract remote object store."""

    @abstractmethod
    def upload(self, token: str, file_path: Path, namespace: Sequence[str]) -> str:
        """Upload a file under the given folder namespace.

        Args:
            token: Bearer token of the signed-in session.
            file_path: Local artifact to upload (read only).
            namespace: Folder names from the root, e.g. [root, app name].

        Returns:
            str: Remote location, "<folder>/<folder>/<filename>".

        Raises:
            TransferFailed: On any transport or API error.
        """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend name."""


class DriveBackend(RemoteStore):
    """Google Drive backend using the v3 REST API via requests."""

    @property
    def name(self) -> str:
        return "gdrive"

    def _api_call(
        self,
        method: str,
        url: str,
        token: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Make an authenticated Drive API call.

        Raises:
            TransferFailed: On transport failure or an error status.
        """
        headers = {"Authorization": f"Bearer {token}"}
        try:
            resp = requests.request(
                method, url, headers=headers, timeout=HTTP_TIMEOUT, **kwargs,
            )
        except requests.RequestException as exc:
            raise TransferFailed(f"Drive {method} failed: {exc}") from exc

        if resp.status_code >= 400:
            raise TransferFailed(
                f"Drive API {method} {url}: {resp.status_code} {resp.text}"
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise TransferFailed(f"Drive API {method} {url}: invalid JSON response") from exc

    @staticmethod
    def _quote(value: str) -> str:
        return value.replace("\\", "\\\\").replace("'", "\\'")

    def _folder_id(self, token: str, folder_name: str, parent_id: Optional[str]) -> str:
        """Find a folder by name under parent, creating it if absent."""
        parent = f"'{parent_id}' in parents" if parent_id else "'root' in parents"
        query = (
            f"name = '{self._quote(folder_name)}' and mimeType = '{DRIVE_FOLDER_MIME}' "
            f"and {parent} and trashed = false"
        )
        found = self._api_call(
            "GET", DRIVE_FILES_URL, token, params={"q": query, "fields": "files(id)"},
        )
        files = found.get("files") or []
        if files:
            return files[0]["id"]

        metadata: dict[str, Any] = {"name": folder_name, "mimeType": DRIVE_FOLDER_MIME}
        if parent_id:
            metadata["parents"] = [parent_id]
        created = self._api_call("POST", DRIVE_FILES_URL, token, json=metadata)
        logger.info("Created Drive folder %s", folder_name)
        return created["id"]

    def upload(self, token: str, file_path: Path, namespace: Sequence[str]) -> str:
        parent_id: Optional[str] = None
        for folder in namespace:
            parent_id = self._folder_id(token, folder, parent_id)

        metadata: dict[str, Any] = {"name": file_path.name, "mimeType": "application/zip"}
        if parent_id:
            metadata["parents"] = [parent_id]

        with open(file_path, "rb") as fh:
            self._api_call(
                "POST",
                DRIVE_UPLOAD_URL,
                token,
                params={"uploadType": "multipart"},
                files={
                    "metadata": (None, json.dumps(metadata), "application/json; charset=UTF-8"),
                    "file": (file_path.name, fh, "application/zip"),
                },
            )

        location = "/".join([*namespace, file_path.name])
        logger.info("Uploaded %s to Drive: %s", file_path.name, location)
        return location


class LocalBackend(RemoteStore):
    """Local filesystem backend for USB, NAS, or mounted drives."""

    def __init__(self, config: RemoteConfig, home: Path):
        self.config = config
        self.target = (
            Path(config.local_path).expanduser()
            if config.local_path
            else home / "sync" / "remote"
        )

    @property
    def name(self) -> str:
        return "local"

    def upload(self, token: str, file_path: Path, namespace: Sequence[str]) -> str:
        dest_dir = self.target.joinpath(*(safe_dir_name(part) for part in namespace))
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(file_path, dest_dir / file_path.name)
        except OSError as exc:
            raise TransferFailed(f"Local upload failed: {exc}") from exc

        location = "/".join([*namespace, file_path.name])
        logger.info("Uploaded %s to local store %s", file_path.name, dest_dir)
        return location


def create_backend(config: RemoteConfig, home: Path) -> RemoteStore:
    """Factory function to create the configured backend.

    Args:
        config: Remote configuration.
        home: SaveSync home directory.

    Returns:
        Instantiated RemoteStore.

    Raises:
        ValueError: If backend type is not supported.
    """
    if config.backend_type == RemoteBackendType.GDRIVE:
        return DriveBackend()
    if config.backend_type == RemoteBackendType.LOCAL:
        return LocalBackend(config, home)
    raise ValueError(f"Unsupported backend: {config.backend_type}")
