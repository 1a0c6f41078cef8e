"""
Snapshot store — versioned copies of each application's save data.

Layout on disk:

    <backup_root>/<safe app name>/
    ├── 07-03-2025_21-04-59/        # snapshot (copy of the save dir)
    ├── 07-03-2025_21-04-59.zip     # artifact, only once staged
    └── 08-03-2025_10-00-00/

A new snapshot is copied into a hidden partial directory and renamed
into place, so listings never see half-written versions.
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

from .context import AppContext
from .errors import SnapshotCollision, SnapshotMissing, SourceUnavailable
from .models import Application, Snapshot
from .primitives import SaveCopier, ShutilCopier, tree_size
from .retention import evict
from .timestamps import format_timestamp, try_parse_timestamp

logger = logging.getLogger("savesync.store")

ARTIFACT_SUFFIX = ".zip"


class SnapshotStore:
    """Owns the local snapshot set of every tracked application.

    Args:
        ctx: Shared application context (config, guard, paths).
        copier: Tree copy primitive. Defaults to ShutilCopier.
        clock: Source of the current time. Defaults to datetime.now.
    """

    def __init__(
        self,
        ctx: AppContext,
        copier: Optional[SaveCopier] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.ctx = ctx
        self.copier = copier or ShutilCopier()
        self._clock = clock or datetime.now

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def app_dir(self, app: Application) -> Path:
        return self.ctx.backup_root / app.safe_name

    def snapshot_dir(self, app: Application, timestamp: str) -> Path:
        return self.app_dir(app) / timestamp

    def artifact_path(self, app: Application, timestamp: str) -> Path:
        return self.app_dir(app) / f"{timestamp}{ARTIFACT_SUFFIX}"

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _read_snapshot(self, app: Application, path: Path, created: datetime) -> Snapshot:
        return Snapshot(
            app_id=app.id,
            timestamp=path.name,
            created_at=created,
            path=path,
            size_bytes=tree_size(path),
            has_artifact=self.artifact_path(app, path.name).is_file(),
        )

    def list_snapshots(self, app: Application) -> list[Snapshot]:
        """List an application's snapshots, newest first.

        Args:
            app: The application.

        Returns:
            list[Snapshot]: Ordered by parsed timestamp, descending.
        """
        root = self.app_dir(app)
        if not root.is_dir():
            return []

        found = []
        for child in root.iterdir():
            if not child.is_dir():
                continue
            created = try_parse_timestamp(child.name)
            if created is None:
                continue
            found.append((created, child))

        found.sort(key=lambda item: item[0], reverse=True)
        return [self._read_snapshot(app, path, created) for created, path in found]

    def get_snapshot(self, app: Application, timestamp: str) -> Snapshot:
        """Load one snapshot by name.

        Raises:
            SnapshotMissing: If it does not exist (or was evicted).
        """
        created = try_parse_timestamp(timestamp)
        path = self.snapshot_dir(app, timestamp)
        if created is None or not path.is_dir():
            raise SnapshotMissing(f"Snapshot {timestamp} not found for {app.name}")
        return self._read_snapshot(app, path, created)

    def refresh(self, app: Application) -> Optional[str]:
        """Recompute app.last_snapshot_id from disk.

        Returns:
            The newest snapshot name, or None.
        """
        snapshots = self.list_snapshots(app)
        app.last_snapshot_id = snapshots[0].timestamp if snapshots else None
        return app.last_snapshot_id

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_snapshot(self, app: Application) -> Snapshot:
        """Copy the live save data into a new timestamped snapshot.

        Retention runs before returning, so app.last_snapshot_id and the
        listing already reflect eviction.

        Args:
            app: The application to back up.

        Returns:
            Snapshot: The new snapshot.

        Raises:
            BackupInProgress: If another mutation holds this application.
            SourceUnavailable: If the save path is gone or unreadable.
        """
        with self.ctx.guard.hold(app.id, "backup"):
            if not Path(app.save_path).is_dir():
                raise SourceUnavailable(f"Save path not found: {app.save_path}")

            moment = self._clock().replace(microsecond=0)
            try:
                snapshot = self._write_snapshot(app, moment)
            except SnapshotCollision:
                retry = max(self._clock().replace(microsecond=0), moment + timedelta(seconds=1))
                logger.warning(
                    "Snapshot %s already exists for %s, retrying as %s",
                    format_timestamp(moment), app.name, format_timestamp(retry),
                )
                try:
                    snapshot = self._write_snapshot(app, retry)
                except SnapshotCollision:
                    snapshot = self._write_snapshot(app, retry, replace=True)

            evicted = self._apply_retention(app)
            self.refresh(app)

        logger.info(
            "Snapshot %s created for %s (%d bytes, %d evicted)",
            snapshot.timestamp, app.name, snapshot.size_bytes, len(evicted),
        )
        return snapshot

    def _write_snapshot(self, app: Application, moment: datetime, replace: bool = False) -> Snapshot:
        name = format_timestamp(moment)
        target = self.snapshot_dir(app, name)
        if target.exists() and not replace:
            raise SnapshotCollision(f"Snapshot {name} already exists for {app.name}")

        root = self.app_dir(app)
        root.mkdir(parents=True, exist_ok=True)
        partial = root / f".{name}.partial"
        if partial.exists():
            shutil.rmtree(partial)

        try:
            self.copier.copy_tree(Path(app.save_path), partial)
        except OSError as exc:
            shutil.rmtree(partial, ignore_errors=True)
            raise SourceUnavailable(f"Could not read save data for {app.name}: {exc}") from exc

        if target.exists():
            logger.warning("Replacing snapshot %s for %s in place", name, app.name)
            self._remove(app, name)
        partial.rename(target)
        return self._read_snapshot(app, target, moment)

    def _apply_retention(self, app: Application) -> list[Snapshot]:
        limit = self.ctx.config.retention_limit
        doomed = evict(self.list_snapshots(app), limit)
        for snapshot in doomed:
            try:
                self._remove(app, snapshot.timestamp)
                logger.info("Evicted snapshot %s for %s (limit %d)", snapshot.timestamp, app.name, limit)
            except OSError as exc:
                logger.error("Failed to evict snapshot %s for %s: %s", snapshot.timestamp, app.name, exc)
        return doomed

    def _remove(self, app: Application, timestamp: str) -> None:
        path = self.snapshot_dir(app, timestamp)
        if path.exists():
            shutil.rmtree(path)
        self.artifact_path(app, timestamp).unlink(missing_ok=True)

    def delete_snapshot(self, app: Application, timestamp: str) -> None:
        """Delete a snapshot and its artifact.

        Raises:
            BackupInProgress: If another mutation holds this application.
            SnapshotMissing: If the snapshot does not exist.
        """
        with self.ctx.guard.hold(app.id, "delete"):
            self.get_snapshot(app, timestamp)
            self._remove(app, timestamp)
            self.refresh(app)
        logger.info("Deleted snapshot %s for %s", timestamp, app.name)
