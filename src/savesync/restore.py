"""
Restore coordinator -- roll live save data back to a chosen snapshot.

One coordinator per restore attempt:

    IDLE -> BACKUPS_LISTED -> CONFIRMATION_PENDING -> RESTORING -> COMPLETED
                                                             \\-> FAILED

Selecting a version and authorizing the overwrite are two separate
calls. Only confirm_restore() writes to disk, and it re-checks that the
snapshot still exists because retention may have evicted it since the
listing.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from enum import Enum
from pathlib import Path
from typing import Optional

from .errors import RestoreConflict, RestoreStateError, SnapshotMissing
from .models import Application, Snapshot
from .store import SnapshotStore

logger = logging.getLogger("savesync.restore")


class RestoreState(str, Enum):
    """Stages of a restore attempt."""

    IDLE = "idle"
    BACKUPS_LISTED = "backups_listed"
    CONFIRMATION_PENDING = "confirmation_pending"
    RESTORING = "restoring"
    COMPLETED = "completed"
    FAILED = "failed"


_LISTABLE = {
    RestoreState.IDLE,
    RestoreState.BACKUPS_LISTED,
    RestoreState.COMPLETED,
    RestoreState.FAILED,
}
_CANCELLABLE = {RestoreState.BACKUPS_LISTED, RestoreState.CONFIRMATION_PENDING}


def _check_writable(root: Path) -> None:
    """Open every live save file for update to detect locks.

    Raises:
        RestoreConflict: If any file is locked or not writable.
    """
    for path in root.rglob("*"):
        if not path.is_file():
            continue
        try:
            with open(path, "r+b"):
                pass
        except PermissionError as exc:
            raise RestoreConflict(f"Save file in use: {path}") from exc


class RestoreCoordinator:
    """Drives one restore attempt through its state machine.

    Args:
        store: Snapshot store to read versions from.
    """

    def __init__(self, store: SnapshotStore) -> None:
        self.store = store
        self.state = RestoreState.IDLE
        self.app: Optional[Application] = None
        self.backups: list[Snapshot] = []
        self.selected: Optional[str] = None
        self.error: Optional[Exception] = None

    def _require(self, allowed: set[RestoreState], action: str) -> None:
        if self.state not in allowed:
            raise RestoreStateError(f"Cannot {action} while {self.state.value}")

    def list_backups(self, app: Application) -> list[Snapshot]:
        """Load the application's snapshots. Read only."""
        self._require(_LISTABLE, "list backups")
        self.app = app
        self.backups = self.store.list_snapshots(app)
        self.selected = None
        self.error = None
        self.state = RestoreState.BACKUPS_LISTED
        return list(self.backups)

    def request_restore(self, timestamp: str) -> None:
        """Record which snapshot the user picked. Touches nothing on disk.

        Raises:
            SnapshotMissing: If the timestamp was not in the listing.
        """
        self._require({RestoreState.BACKUPS_LISTED}, "request a restore")
        if timestamp not in {snap.timestamp for snap in self.backups}:
            raise SnapshotMissing(f"Snapshot {timestamp} is not in the listed backups")
        self.selected = timestamp
        self.state = RestoreState.CONFIRMATION_PENDING

    def cancel(self) -> None:
        """Abandon the attempt without side effects."""
        self._require(_CANCELLABLE, "cancel")
        self.selected = None
        self.state = RestoreState.IDLE

    def confirm_restore(self) -> Snapshot:
        """Overwrite the live save path with the selected snapshot.

        Returns:
            Snapshot: The restored snapshot.

        Raises:
            BackupInProgress: If another mutation holds the application.
            SnapshotMissing: If the snapshot was evicted since selection.
            RestoreConflict: If live save files are locked or in use.
        """
        self._require({RestoreState.CONFIRMATION_PENDING}, "confirm a restore")
        app = self.app
        timestamp = self.selected
        self.state = RestoreState.RESTORING
        try:
            with self.store.ctx.guard.hold(app.id, "restore"):
                snapshot = self.store.get_snapshot(app, timestamp)
                self._overwrite(app, snapshot)
                self.store.refresh(app)
        except Exception as exc:
            self.state = RestoreState.FAILED
            self.error = exc
            logger.error("Restore of %s for %s failed: %s", timestamp, app.name, exc)
            raise

        self.state = RestoreState.COMPLETED
        logger.info("Restored %s for %s", timestamp, app.name)
        return snapshot

    def _overwrite(self, app: Application, snapshot: Snapshot) -> None:
        target = Path(app.save_path)
        if target.exists():
            _check_writable(target)

        copier = self.store.copier
        safety_dir = Path(tempfile.mkdtemp(prefix="savesync-restore-"))
        safety = safety_dir / "live"
        try:
            if target.exists():
                try:
                    copier.copy_tree(target, safety)
                except OSError as exc:
                    raise RestoreConflict(f"Could not read live save files: {exc}") from exc
            target.mkdir(parents=True, exist_ok=True)
            try:
                copier.overlay_tree(Path(snapshot.path), target)
            except OSError as exc:
                if safety.exists():
                    logger.warning("Rolling back %s after failed restore", target)
                    try:
                        copier.overlay_tree(safety, target)
                    except OSError as rollback_exc:
                        logger.error(
                            "Rollback of %s failed, live data may be partial: %s", target, rollback_exc,
                        )
                raise RestoreConflict(f"Could not write save files: {exc}") from exc
        finally:
            shutil.rmtree(safety_dir, ignore_errors=True)
