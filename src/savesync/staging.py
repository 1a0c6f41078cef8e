"""
Staging pipeline — compress a snapshot into an uploadable artifact.

Compression is on demand: many snapshots live locally, only the chosen
ones are zipped. The archive is written to a temp file next to the
snapshot and renamed over <timestamp>.zip, so an artifact is either the
old complete one or the new complete one, never a torn write.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from .errors import CompressionFailed
from .models import Application, Artifact, Snapshot
from .primitives import Compressor, ZipCompressor
from .store import SnapshotStore

logger = logging.getLogger("savesync.staging")


class StagingPipeline:
    """Produces artifacts from snapshots.

    Args:
        store: Snapshot store (paths and the shared guard).
        compressor: Archive primitive. Defaults to ZipCompressor.
    """

    def __init__(self, store: SnapshotStore, compressor: Optional[Compressor] = None) -> None:
        self.store = store
        self.compressor = compressor or ZipCompressor()

    def artifact_for(self, app: Application, snapshot: Snapshot) -> Optional[Artifact]:
        """Return the snapshot's current artifact, or None if unstaged."""
        path = self.store.artifact_path(app, snapshot.timestamp)
        if not path.is_file():
            return None
        return Artifact(
            app_id=app.id,
            timestamp=snapshot.timestamp,
            path=path,
            size_bytes=path.stat().st_size,
        )

    def stage(self, app: Application, snapshot: Snapshot) -> Artifact:
        """Compress a snapshot into its artifact, replacing any previous one.

        Args:
            app: Owning application.
            snapshot: Snapshot to compress.

        Returns:
            Artifact: The freshly written artifact.

        Raises:
            BackupInProgress: If another mutation holds this application.
            CompressionFailed: If the snapshot is missing or unreadable.
        """
        with self.store.ctx.guard.hold(app.id, "stage"):
            source = Path(snapshot.path)
            if not source.is_dir():
                raise CompressionFailed(f"Snapshot directory missing: {source}")

            dest = self.store.artifact_path(app, snapshot.timestamp)
            tmp_path = None
            try:
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{snapshot.timestamp}.", suffix=".tmp", dir=dest.parent,
                )
                os.close(fd)
                tmp_path = Path(tmp_name)
                self.compressor.compress(source, tmp_path)
                os.replace(tmp_path, dest)
            except (OSError, ValueError) as exc:
                if tmp_path is not None:
                    tmp_path.unlink(missing_ok=True)
                raise CompressionFailed(
                    f"Could not compress snapshot {snapshot.timestamp}: {exc}"
                ) from exc

        artifact = Artifact(
            app_id=app.id,
            timestamp=snapshot.timestamp,
            path=dest,
            size_bytes=dest.stat().st_size,
        )
        logger.info(
            "Staged %s for %s (%d bytes)", snapshot.timestamp, app.name, artifact.size_bytes,
        )
        return artifact
