"""
Watch registry -- automatic snapshots when save files change.

The registry only knows which applications are armed. Change events
arrive on an inbound queue (from SaveWatcher, or any other watcher);
each event for an armed application triggers a best-effort backup.
A failed backup is logged and the loop carries on.

SaveWatcher observes each armed save directory with watchdog and
publishes an event once the tree has stopped changing for
settle_seconds, giving the game time to finish writing before the
copy starts.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch

from .context import AppContext
from .discovery import Discovery
from .errors import SaveSyncError, UnknownApplication

logger = logging.getLogger("savesync.watch")


class ChangeEvent(BaseModel):
    """A detected change in one application's save directory."""

    app_id: int
    path: Optional[Path] = None
    detected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class WatchRegistry:
    """Per-application auto-backup toggle plus the event channel.

    Args:
        ctx: Shared context; the enabled set lives in its config.
        trigger: Called with an app id to create a snapshot.
    """

    def __init__(self, ctx: AppContext, trigger: Callable[[int], Any]) -> None:
        self.ctx = ctx
        self._trigger = trigger
        self._events: "queue.Queue[ChangeEvent]" = queue.Queue()
        self._inflight: set[int] = set()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Enabled state
    # ------------------------------------------------------------------

    def set_enabled(self, app_id: int, enabled: bool) -> None:
        """Arm or disarm automatic backups. Never creates a snapshot."""
        current = set(self.ctx.config.watch_enabled)
        if enabled:
            current.add(app_id)
        else:
            current.discard(app_id)
        self.ctx.config.watch_enabled = sorted(current)
        self.ctx.flush()
        logger.info("Auto-backup %s for app %d", "enabled" if enabled else "disabled", app_id)

    def is_enabled(self, app_id: int) -> bool:
        return app_id in self.ctx.config.watch_enabled

    def enabled_ids(self) -> list[int]:
        return list(self.ctx.config.watch_enabled)

    # ------------------------------------------------------------------
    # Event channel
    # ------------------------------------------------------------------

    def publish(self, event: ChangeEvent) -> None:
        """Enqueue a change event. Safe from any thread."""
        self._events.put(event)

    def handle(self, event: ChangeEvent) -> bool:
        """Run the backup for one event.

        Returns:
            bool: True if a snapshot was created.
        """
        if not self.is_enabled(event.app_id):
            logger.debug("Ignoring change for disarmed app %d", event.app_id)
            return False

        with self._lock:
            if event.app_id in self._inflight:
                logger.debug("Backup already running for app %d, dropping event", event.app_id)
                return False
            self._inflight.add(event.app_id)

        try:
            self._trigger(event.app_id)
            return True
        except SaveSyncError as exc:
            logger.warning("Auto-backup for app %d failed: %s", event.app_id, exc)
            return False
        except Exception:
            logger.exception("Auto-backup for app %d crashed", event.app_id)
            return False
        finally:
            with self._lock:
                self._inflight.discard(event.app_id)

    def dispatch_pending(self) -> int:
        """Drain the queue, one backup per application.

        Returns:
            int: Number of snapshots created.
        """
        pending: dict[int, ChangeEvent] = {}
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                break
            pending.setdefault(event.app_id, event)

        return sum(1 for event in pending.values() if self.handle(event))

    def run(self, stop_event: threading.Event, interval: float = 0.5) -> None:
        """Consume events until stop_event is set."""
        while not stop_event.is_set():
            try:
                event = self._events.get(timeout=interval)
            except queue.Empty:
                continue
            self.publish(event)
            self.dispatch_pending()


class _SaveChangeHandler(FileSystemEventHandler):
    """Forwards filesystem events under one save directory to the watcher."""

    def __init__(self, watcher: "SaveWatcher", app_id: int) -> None:
        super().__init__()
        self.watcher = watcher
        self.app_id = app_id

    def on_created(self, event: FileSystemEvent) -> None:
        self.watcher.record_change(self.app_id)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.watcher.record_change(self.app_id)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self.watcher.record_change(self.app_id)

    def on_moved(self, event: FileSystemEvent) -> None:
        self.watcher.record_change(self.app_id)


class SaveWatcher:
    """watchdog-based file watcher feeding a WatchRegistry.

    One recursive watch per armed application. Events only stamp the
    app as changed; a tick loop publishes once the app has been quiet
    for settle_seconds and dispatches the registry's queue.

    Args:
        registry: Registry to publish to and dispatch through.
        discovery: Resolves app ids to save paths.
        poll_interval: Seconds between ticks of the settle loop.
        settle_seconds: Quiet time required before publishing.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        registry: WatchRegistry,
        discovery: Discovery,
        poll_interval: float = 2.0,
        settle_seconds: float = 5.0,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.registry = registry
        self.discovery = discovery
        self.poll_interval = poll_interval
        self.settle_seconds = settle_seconds
        self._clock = clock or time.monotonic
        self._changed_at: dict[int, float] = {}
        self._lock = threading.Lock()
        self._observer: Optional[BaseObserver] = None
        self._watches: dict[int, ObservedWatch] = {}
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def record_change(self, app_id: int) -> None:
        """Stamp an application as changed now. Called from observer threads."""
        with self._lock:
            self._changed_at[app_id] = self._clock()

    def watched_ids(self) -> list[int]:
        return sorted(self._watches)

    def sync_watches(self) -> None:
        """Schedule watches for newly armed apps, drop disarmed ones."""
        if self._observer is None:
            return
        enabled = set(self.registry.enabled_ids())

        for app_id in list(self._watches):
            if app_id not in enabled:
                self._observer.unschedule(self._watches.pop(app_id))
                with self._lock:
                    self._changed_at.pop(app_id, None)
                logger.info("Stopped watching app %d", app_id)

        for app_id in sorted(enabled - set(self._watches)):
            try:
                app = self.discovery.find(app_id)
            except UnknownApplication:
                continue
            save_path = Path(app.save_path)
            if not save_path.is_dir():
                continue
            try:
                self._watches[app_id] = self._observer.schedule(
                    _SaveChangeHandler(self, app_id), str(save_path), recursive=True,
                )
            except OSError as exc:
                logger.warning("Cannot watch %s: %s", save_path, exc)
                continue
            logger.info("Watching %s at %s", app.name, save_path)

    def flush_settled(self) -> list[ChangeEvent]:
        """Publish an event for every armed app quiet for settle_seconds.

        Returns:
            list[ChangeEvent]: Events published by this call.
        """
        now = self._clock()
        enabled = set(self.registry.enabled_ids())
        with self._lock:
            settled = [
                app_id for app_id, changed in self._changed_at.items()
                if now - changed >= self.settle_seconds
            ]
            for app_id in settled:
                del self._changed_at[app_id]

        published = []
        for app_id in sorted(settled):
            if app_id not in enabled:
                continue
            event = ChangeEvent(app_id=app_id)
            self.registry.publish(event)
            published.append(event)
            logger.info("Save change settled for app %d", app_id)
        return published

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.sync_watches()
                self.flush_settled()
                self.registry.dispatch_pending()
            except Exception as exc:
                logger.error("Watch loop error: %s", exc)
            self._stop_event.wait(timeout=self.poll_interval)

    def start(self) -> None:
        """Start the observer and the settle loop."""
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._observer = Observer()
        self.sync_watches()
        self._observer.start()
        self._thread = threading.Thread(target=self._loop, name="savesync-watch", daemon=True)
        self._thread.start()
        logger.info("Watcher started (tick=%.1fs settle=%.1fs)", self.poll_interval, self.settle_seconds)

    def stop(self) -> None:
        """Stop the settle loop and the observer."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        self._watches.clear()
        logger.info("Watcher stopped")

    def run_forever(self) -> None:
        """Block until interrupted."""
        self.start()
        try:
            while not self._stop_event.is_set():
                self._stop_event.wait(timeout=1)
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()
