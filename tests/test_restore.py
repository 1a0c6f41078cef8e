"""Tests for the restore coordinator."""

from __future__ import annotations

import pytest

from savesync.errors import (
    BackupInProgress,
    RestoreConflict,
    RestoreStateError,
    SnapshotMissing,
)
from savesync.primitives import ShutilCopier
from savesync.restore import RestoreCoordinator, RestoreState
from savesync.store import SnapshotStore


def _three_versions(store, app, save_dir, clock) -> list[str]:
    """Create versions with volume=1,2,3. Returns names oldest first."""
    names = []
    for volume in (1, 2, 3):
        (save_dir / "startup_preferences").write_text(f"volume={volume}\n")
        names.append(store.create_snapshot(app).timestamp)
        clock.advance(minutes=1)
    return names


@pytest.fixture
def versions(store, app, save_dir, clock) -> list[str]:
    return _three_versions(store, app, save_dir, clock)


@pytest.fixture
def coordinator(store) -> RestoreCoordinator:
    return RestoreCoordinator(store)


def _live(save_dir) -> str:
    return (save_dir / "startup_preferences").read_text()


class TestSelection:
    """Listing, choosing and cancelling never touch live data."""

    def test_list_backups(self, coordinator, app, versions):
        listed = coordinator.list_backups(app)
        assert coordinator.state == RestoreState.BACKUPS_LISTED
        assert [s.timestamp for s in listed] == list(reversed(versions))

    def test_request_does_not_write(self, coordinator, app, save_dir, versions):
        coordinator.list_backups(app)
        coordinator.request_restore(versions[0])

        assert coordinator.state == RestoreState.CONFIRMATION_PENDING
        assert coordinator.selected == versions[0]
        assert _live(save_dir) == "volume=3\n"

    def test_cancel_returns_to_idle(self, coordinator, store, app, save_dir, versions):
        coordinator.list_backups(app)
        coordinator.request_restore(versions[1])
        coordinator.cancel()

        assert coordinator.state == RestoreState.IDLE
        assert coordinator.selected is None
        assert _live(save_dir) == "volume=3\n"
        assert [s.timestamp for s in store.list_snapshots(app)] == list(reversed(versions))

    def test_cancel_from_listing(self, coordinator, app, versions):
        coordinator.list_backups(app)
        coordinator.cancel()
        assert coordinator.state == RestoreState.IDLE

    def test_unknown_version(self, coordinator, app, versions):
        coordinator.list_backups(app)
        with pytest.raises(SnapshotMissing):
            coordinator.request_restore("01-01-2020_00-00-00")
        assert coordinator.state == RestoreState.BACKUPS_LISTED


class TestIllegalTransitions:
    def test_request_before_listing(self, coordinator, versions):
        with pytest.raises(RestoreStateError):
            coordinator.request_restore(versions[0])

    def test_confirm_before_request(self, coordinator, app, versions):
        coordinator.list_backups(app)
        with pytest.raises(RestoreStateError):
            coordinator.confirm_restore()

    def test_cancel_when_idle(self, coordinator):
        with pytest.raises(RestoreStateError):
            coordinator.cancel()

    def test_list_while_pending(self, coordinator, app, versions):
        coordinator.list_backups(app)
        coordinator.request_restore(versions[0])
        with pytest.raises(RestoreStateError):
            coordinator.list_backups(app)


class TestConfirm:
    def test_overwrites_live_data(self, coordinator, app, save_dir, versions):
        coordinator.list_backups(app)
        coordinator.request_restore(versions[0])
        restored = coordinator.confirm_restore()

        assert restored.timestamp == versions[0]
        assert coordinator.state == RestoreState.COMPLETED
        assert _live(save_dir) == "volume=1\n"

    def test_keeps_files_not_in_snapshot(self, coordinator, app, save_dir, versions):
        (save_dir / "screenshot.png").write_bytes(b"\x89PNG")
        coordinator.list_backups(app)
        coordinator.request_restore(versions[0])
        coordinator.confirm_restore()
        assert (save_dir / "screenshot.png").exists()

    def test_recreates_missing_save_dir(self, coordinator, app, save_dir, versions):
        import shutil

        shutil.rmtree(save_dir)
        coordinator.list_backups(app)
        coordinator.request_restore(versions[2])
        coordinator.confirm_restore()
        assert _live(save_dir) == "volume=3\n"

    def test_refreshes_last_snapshot_id(self, coordinator, app, versions):
        app.last_snapshot_id = None
        coordinator.list_backups(app)
        coordinator.request_restore(versions[0])
        coordinator.confirm_restore()
        assert app.last_snapshot_id == versions[2]

    def test_can_list_again_after_completion(self, coordinator, app, versions):
        coordinator.list_backups(app)
        coordinator.request_restore(versions[0])
        coordinator.confirm_restore()
        coordinator.list_backups(app)
        assert coordinator.state == RestoreState.BACKUPS_LISTED


class TestConfirmFailures:
    def test_evicted_after_selection(self, coordinator, store, app, ctx, clock, versions):
        coordinator.list_backups(app)
        coordinator.request_restore(versions[0])

        ctx.config.retention_limit = 2
        store.create_snapshot(app)

        with pytest.raises(SnapshotMissing):
            coordinator.confirm_restore()
        assert coordinator.state == RestoreState.FAILED
        assert isinstance(coordinator.error, SnapshotMissing)

    def test_locked_save_file(self, coordinator, app, save_dir, versions, monkeypatch):
        def locked(path, mode="r", *args, **kwargs):
            raise PermissionError(13, "in use", str(path))

        monkeypatch.setattr("savesync.restore.open", locked, raising=False)
        coordinator.list_backups(app)
        coordinator.request_restore(versions[0])

        with pytest.raises(RestoreConflict):
            coordinator.confirm_restore()
        assert coordinator.state == RestoreState.FAILED
        assert _live(save_dir) == "volume=3\n"

    def test_rolls_back_partial_write(self, ctx, clock, app, save_dir):
        class FlakyCopier(ShutilCopier):
            overlays = 0

            def overlay_tree(self, source, dest):
                FlakyCopier.overlays += 1
                if FlakyCopier.overlays == 1:
                    (dest / "startup_preferences").write_text("torn")
                    raise OSError("disk yanked")
                super().overlay_tree(source, dest)

        store = SnapshotStore(ctx, copier=FlakyCopier(), clock=clock)
        versions = _three_versions(store, app, save_dir, clock)
        coordinator = RestoreCoordinator(store)
        coordinator.list_backups(app)
        coordinator.request_restore(versions[0])

        with pytest.raises(RestoreConflict):
            coordinator.confirm_restore()
        assert _live(save_dir) == "volume=3\n"
        assert coordinator.state == RestoreState.FAILED

    def test_rejected_while_backup_running(self, coordinator, app, ctx, save_dir, versions):
        coordinator.list_backups(app)
        coordinator.request_restore(versions[0])

        with ctx.guard.hold(app.id):
            with pytest.raises(BackupInProgress):
                coordinator.confirm_restore()
        assert coordinator.state == RestoreState.FAILED
        assert _live(save_dir) == "volume=3\n"

    def test_failed_rollback_raises_conflict(self, ctx, clock, app, save_dir, caplog):
        class DeadDisk(ShutilCopier):
            def overlay_tree(self, source, dest):
                raise OSError("disk gone")

        store = SnapshotStore(ctx, copier=DeadDisk(), clock=clock)
        versions = _three_versions(store, app, save_dir, clock)
        coordinator = RestoreCoordinator(store)
        coordinator.list_backups(app)
        coordinator.request_restore(versions[0])

        with pytest.raises(RestoreConflict) as excinfo:
            coordinator.confirm_restore()

        assert isinstance(excinfo.value.__cause__, OSError)
        assert coordinator.state == RestoreState.FAILED
        assert "live data may be partial" in caplog.text
