"""
Per-application single-flight guard.

Mutating operations on one application (create, evict, stage, restore)
hold the app's lock for their whole duration. A second caller does not
queue behind the first: it fails immediately with BackupInProgress.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from .errors import BackupInProgress

logger = logging.getLogger("savesync.guard")


class InFlightGuard:
    """Mapping of application id to a non-reentrant lock."""

    def __init__(self) -> None:
        self._locks: dict[int, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, app_id: int) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(app_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[app_id] = lock
            return lock

    def busy(self, app_id: int) -> bool:
        """Whether a mutating operation currently holds the app."""
        return self._lock_for(app_id).locked()

    @contextmanager
    def hold(self, app_id: int, operation: str = "operation") -> Iterator[None]:
        """Hold the app's token for the duration of the block.

        Args:
            app_id: Application being mutated.
            operation: Label used in the error message and logs.

        Raises:
            BackupInProgress: If another operation already holds the app.
        """
        lock = self._lock_for(app_id)
        if not lock.acquire(blocking=False):
            logger.info("Rejected %s for app %d: already in flight", operation, app_id)
            raise BackupInProgress(
                f"Another backup operation is running for application {app_id}"
            )
        try:
            yield
        finally:
            lock.release()
