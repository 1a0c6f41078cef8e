"""
Pydantic models for applications, snapshots, and their artifacts.

A Snapshot is a directory on disk; the model is only a read of it.
Nothing here touches the filesystem.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorKind(str, Enum):
    """Structured failure categories surfaced to callers."""

    UNKNOWN_APPLICATION = "unknown_application"
    SOURCE_UNAVAILABLE = "source_unavailable"
    BACKUP_IN_PROGRESS = "backup_in_progress"
    SNAPSHOT_COLLISION = "snapshot_collision"
    COMPRESSION_FAILED = "compression_failed"
    NOT_AUTHENTICATED = "not_authenticated"
    AUTH_DENIED = "auth_denied"
    TRANSFER_FAILED = "transfer_failed"
    RESTORE_CONFLICT = "restore_conflict"
    SNAPSHOT_MISSING = "snapshot_missing"
    INVALID_STATE = "invalid_state"
    INVALID_SETTING = "invalid_setting"
    INTERNAL = "internal"


def safe_dir_name(name: str) -> str:
    """Replace every character that is not alphanumeric or a space with '_'.

    Args:
        name: Display name of an application.

    Returns:
        str: Name usable as a directory and remote folder name.
    """
    return "".join(c if c.isalnum() or c == " " else "_" for c in name)


class Application(BaseModel):
    """A trackable program reported by discovery.

    Only the snapshot store writes last_snapshot_id; discovery owns
    everything else.
    """

    id: int
    name: str
    save_path: Path
    install_dir: Optional[str] = None
    last_snapshot_id: Optional[str] = None

    @property
    def safe_name(self) -> str:
        return safe_dir_name(self.name)


class Snapshot(BaseModel):
    """One immutable, timestamped copy of an application's save directory."""

    model_config = ConfigDict(frozen=True)

    app_id: int
    timestamp: str
    created_at: datetime
    path: Path
    size_bytes: int = 0
    has_artifact: bool = False

    @property
    def size_mb(self) -> str:
        return f"{self.size_bytes / 1024 / 1024:.1f} MB"


class Artifact(BaseModel):
    """Compressed form of exactly one snapshot, colocated with it."""

    model_config = ConfigDict(frozen=True)

    app_id: int
    timestamp: str
    path: Path
    size_bytes: int = 0


class OperationResult(BaseModel):
    """Tagged outcome of a mutating operation.

    Either ok with a value, or not ok with an error kind and a
    user-facing message.
    """

    ok: bool
    value: Any = None
    error: Optional[ErrorKind] = None
    message: str = ""
    extra: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def success(cls, value: Any = None, message: str = "", **extra: Any) -> "OperationResult":
        return cls(ok=True, value=value, message=message, extra=extra)

    @classmethod
    def failure(cls, exc: Exception) -> "OperationResult":
        kind = getattr(exc, "kind", ErrorKind.INTERNAL)
        return cls(ok=False, error=kind, message=str(exc) or kind.value)
