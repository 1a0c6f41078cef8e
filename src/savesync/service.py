"""
SaveManager — the one object every front end talks to.

Wires the context, discovery, snapshot store, staging pipeline, sync
session and watch registry together, and turns their exceptions into
OperationResult values. The CLI never catches SaveSyncError itself.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Optional

from .context import AppContext
from .discovery import MANIFEST_FILENAME, Discovery, ManifestDiscovery
from .errors import InvalidSetting, NotAuthenticated, SaveSyncError, SnapshotMissing
from .models import Application, OperationResult, Snapshot
from .restore import RestoreCoordinator
from .staging import StagingPipeline
from .store import SnapshotStore
from .sync import SyncSession
from .watch import SaveWatcher, WatchRegistry

logger = logging.getLogger("savesync.service")


class SaveManager:
    """Facade over the snapshot lifecycle.

    Args:
        ctx: Shared application context.
        discovery: Application source. Defaults to the home manifest.
        store: Snapshot store override.
        staging: Staging pipeline override.
        session: Sync session override.
    """

    def __init__(
        self,
        ctx: AppContext,
        discovery: Optional[Discovery] = None,
        store: Optional[SnapshotStore] = None,
        staging: Optional[StagingPipeline] = None,
        session: Optional[SyncSession] = None,
    ) -> None:
        self.ctx = ctx
        self.discovery = discovery or ManifestDiscovery(ctx.home / MANIFEST_FILENAME)
        self.store = store or SnapshotStore(ctx)
        self.staging = staging or StagingPipeline(self.store)
        self.session = session or SyncSession(ctx)
        self.watch = WatchRegistry(ctx, trigger=self._auto_backup)

    @classmethod
    def open(cls, home: Optional[Path] = None) -> "SaveManager":
        """Load the context from home and build a manager on it."""
        return cls(AppContext.load(home))

    def _attempt(self, action: str, fn: Callable[[], Any], message: str = "") -> OperationResult:
        try:
            value = fn()
        except SaveSyncError as exc:
            logger.warning("%s failed: %s", action, exc)
            return OperationResult.failure(exc)
        return OperationResult.success(value, message)

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    def apps(self) -> list[Application]:
        """All known applications, with last_snapshot_id read from disk."""
        apps = self.discovery.scan()
        for app in apps:
            self.store.refresh(app)
        return apps

    def find(self, app_id: int) -> Application:
        app = self.discovery.find(app_id)
        if app.last_snapshot_id is None:
            self.store.refresh(app)
        return app

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def backup(self, app_id: int) -> OperationResult:
        """Create a snapshot now. Value: the new Snapshot."""
        return self._attempt(
            "Backup", lambda: self.store.create_snapshot(self.find(app_id)), "Backup created",
        )

    def list_backups(self, app_id: int) -> OperationResult:
        """Value: list[Snapshot], newest first."""
        return self._attempt("List backups", lambda: self.store.list_snapshots(self.find(app_id)))

    def _pick(self, app: Application, timestamp: Optional[str]) -> Snapshot:
        if timestamp:
            return self.store.get_snapshot(app, timestamp)
        snapshots = self.store.list_snapshots(app)
        if not snapshots:
            raise SnapshotMissing(f"No backups yet for {app.name}")
        return snapshots[0]

    def stage(self, app_id: int, timestamp: Optional[str] = None) -> OperationResult:
        """Compress a snapshot (newest by default). Value: the Artifact."""

        def run():
            app = self.find(app_id)
            return self.staging.stage(app, self._pick(app, timestamp))

        return self._attempt("Stage", run, "Snapshot staged")

    def upload(self, app_id: int, timestamp: Optional[str] = None) -> OperationResult:
        """Upload a snapshot's artifact, staging it first if needed.

        Fails with NotAuthenticated before touching anything when signed
        out. Value: the remote location.
        """

        def run():
            if not self.session.connected:
                raise NotAuthenticated("Sign in before uploading")
            app = self.find(app_id)
            snapshot = self._pick(app, timestamp)
            artifact = self.staging.artifact_for(app, snapshot) or self.staging.stage(app, snapshot)
            return self.session.upload(artifact, app.name)

        return self._attempt("Upload", run, "Upload complete")

    def delete_backup(self, app_id: int, timestamp: str) -> OperationResult:
        return self._attempt(
            "Delete", lambda: self.store.delete_snapshot(self.find(app_id), timestamp), "Backup deleted",
        )

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def restore_coordinator(self) -> RestoreCoordinator:
        """A fresh coordinator for one interactive restore attempt."""
        return RestoreCoordinator(self.store)

    def prepare_restore(self, app_id: int, timestamp: str) -> OperationResult:
        """List and select a version. Value: a coordinator awaiting confirmation."""

        def run():
            coordinator = self.restore_coordinator()
            coordinator.list_backups(self.find(app_id))
            coordinator.request_restore(timestamp)
            return coordinator

        return self._attempt("Restore selection", run)

    def confirm_restore(self, coordinator: RestoreCoordinator) -> OperationResult:
        """Run the overwrite. Value: the restored Snapshot."""
        return self._attempt("Restore", coordinator.confirm_restore, "Restore complete")

    def restore(self, app_id: int, timestamp: str) -> OperationResult:
        """Select and confirm in one go. Callers must have asked the user."""
        prepared = self.prepare_restore(app_id, timestamp)
        if not prepared.ok:
            return prepared
        return self.confirm_restore(prepared.value)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def login(self) -> OperationResult:
        """Value: the signed-in Identity."""
        return self._attempt("Login", self.session.login, "Signed in")

    def logout(self) -> OperationResult:
        self.session.logout()
        return OperationResult.success(message="Signed out")

    def check_status(self) -> OperationResult:
        """Value: the SessionState after probing."""

        def run():
            self.session.check_status()
            return self.session.state

        return self._attempt("Status check", run)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def set_retention_limit(self, limit: int) -> OperationResult:
        """Change the limit. Existing snapshots stay until the next backup."""
        def run():
            if limit < 1:
                raise InvalidSetting("Retention limit must be at least 1")
            self.ctx.config.retention_limit = limit
            self.ctx.flush()
            logger.info("Retention limit set to %d", limit)
            return limit

        return self._attempt("Retention change", run, f"Keeping {limit} version(s) per application")

    def set_watch(self, app_id: int, enabled: bool) -> OperationResult:
        def run():
            app = self.find(app_id)
            self.watch.set_enabled(app.id, enabled)
            return enabled

        return self._attempt("Watch toggle", run, "Auto-backup " + ("enabled" if enabled else "disabled"))

    def _auto_backup(self, app_id: int) -> Snapshot:
        return self.store.create_snapshot(self.find(app_id))

    def watcher(self, clock: Optional[Callable[[], float]] = None) -> SaveWatcher:
        """A file watcher feeding this manager's registry."""
        timing = self.ctx.config.watch
        return SaveWatcher(
            self.watch,
            self.discovery,
            poll_interval=timing.poll_interval,
            settle_seconds=timing.settle_seconds,
            clock=clock,
        )

    def close(self) -> None:
        self.ctx.close()
