"""
Error taxonomy for the backup lifecycle.

Every failure carries an ErrorKind so the service facade can turn it
into a structured result without parsing messages.
"""

from __future__ import annotations

from .models import ErrorKind


class SaveSyncError(Exception):
    """Base class for every failure raised by the core."""

    kind: ErrorKind = ErrorKind.INTERNAL


class UnknownApplication(SaveSyncError):
    """Raised when an application id is not known to discovery."""

    kind = ErrorKind.UNKNOWN_APPLICATION


class SourceUnavailable(SaveSyncError):
    """Raised when the live save path is missing or unreadable."""

    kind = ErrorKind.SOURCE_UNAVAILABLE


class BackupInProgress(SaveSyncError):
    """Raised when a mutating operation is already running for the app."""

    kind = ErrorKind.BACKUP_IN_PROGRESS


class SnapshotCollision(SaveSyncError):
    """Raised internally when a snapshot name is already taken."""

    kind = ErrorKind.SNAPSHOT_COLLISION


class CompressionFailed(SaveSyncError):
    """Raised when a snapshot cannot be compressed into an artifact."""

    kind = ErrorKind.COMPRESSION_FAILED


class NotAuthenticated(SaveSyncError):
    """Raised when a remote operation is attempted without a session."""

    kind = ErrorKind.NOT_AUTHENTICATED


class AuthDenied(SaveSyncError):
    """Raised when the user cancels consent or credentials are rejected."""

    kind = ErrorKind.AUTH_DENIED


class TransferFailed(SaveSyncError):
    """Raised when the remote store rejects or drops an upload."""

    kind = ErrorKind.TRANSFER_FAILED


class RestoreConflict(SaveSyncError):
    """Raised when the live save files are locked or in use."""

    kind = ErrorKind.RESTORE_CONFLICT


class SnapshotMissing(SaveSyncError):
    """Raised when a selected snapshot no longer exists."""

    kind = ErrorKind.SNAPSHOT_MISSING


class RestoreStateError(SaveSyncError):
    """Raised on an illegal restore state transition."""

    kind = ErrorKind.INVALID_STATE


class InvalidSetting(SaveSyncError):
    """Raised when a configuration value is out of range."""

    kind = ErrorKind.INVALID_SETTING


__all__ = [
    "AuthDenied",
    "BackupInProgress",
    "CompressionFailed",
    "InvalidSetting",
    "NotAuthenticated",
    "RestoreConflict",
    "RestoreStateError",
    "SaveSyncError",
    "SnapshotCollision",
    "SnapshotMissing",
    "SourceUnavailable",
    "TransferFailed",
    "UnknownApplication",
]
