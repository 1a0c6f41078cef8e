"""
Sync Session -- the authenticated channel to the remote store.

Holds the bearer token and the signed-in identity. Readers always see
(connected, identity) change together: both are swapped under one lock.
Login/logout are single-writer; callers serialize them.

    login   ->  consent -> token -> identity -> connected
    logout  ->  forget token + identity (never fails)
    upload  ->  requires connected; never touches local files
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..context import AppContext
from ..errors import AuthDenied, NotAuthenticated, TransferFailed
from ..models import Artifact
from .auth import AuthProvider, create_auth_provider
from .backends import RemoteStore, create_backend
from .models import Identity, SessionState, StoredSession, SyncState

logger = logging.getLogger("savesync.sync.session")


class SyncSession:
    """Process-wide authenticated session.

    Args:
        ctx: Shared application context.
        provider: Authentication provider. Defaults to the configured one.
        backend: Remote store. Defaults to the configured one.
    """

    def __init__(
        self,
        ctx: AppContext,
        provider: Optional[AuthProvider] = None,
        backend: Optional[RemoteStore] = None,
    ) -> None:
        self.ctx = ctx
        self.provider = provider or create_auth_provider(ctx.config.remote)
        self.backend = backend or create_backend(ctx.config.remote, ctx.home)
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._identity: Optional[Identity] = None
        self.record = self._load_record()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @property
    def _session_file(self) -> Path:
        return self.ctx.sync_dir / "session.json"

    @property
    def _state_file(self) -> Path:
        return self.ctx.sync_dir / "state.json"

    def _load_stored(self) -> Optional[StoredSession]:
        if not self._session_file.exists():
            return None
        try:
            return StoredSession(**json.loads(self._session_file.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, ValueError, TypeError) as exc:
            logger.warning("Failed to load stored session: %s", exc)
            return None

    def _store(self, token: str, identity: Identity) -> None:
        self.ctx.sync_dir.mkdir(parents=True, exist_ok=True)
        stored = StoredSession(token=token, identity=identity, created_at=datetime.now(timezone.utc))
        self._session_file.write_text(stored.model_dump_json(indent=2), encoding="utf-8")
        self._session_file.chmod(0o600)

    def _load_record(self) -> SyncState:
        if self._state_file.exists():
            try:
                return SyncState(**json.loads(self._state_file.read_text(encoding="utf-8")))
            except (json.JSONDecodeError, ValueError, TypeError) as exc:
                logger.warning("Failed to load sync state: %s", exc)
        return SyncState()

    def _save_record(self) -> None:
        self.ctx.sync_dir.mkdir(parents=True, exist_ok=True)
        self._state_file.write_text(self.record.model_dump_json(indent=2), encoding="utf-8")

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        """Atomic snapshot of (connected, identity)."""
        with self._lock:
            return SessionState(connected=self._token is not None, identity=self._identity)

    @property
    def connected(self) -> bool:
        return self.state.connected

    def _publish(self, token: Optional[str], identity: Optional[Identity]) -> None:
        with self._lock:
            self._token = token
            self._identity = identity

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def login(self) -> Identity:
        """Open the authenticated channel.

        Returns:
            Identity: The signed-in account.

        Raises:
            AuthDenied: On user cancellation or rejected credentials.
            TransferFailed: If the identity lookup cannot reach the provider.
        """
        token = self.provider.authorize()
        identity = self.provider.fetch_identity(token)
        self._publish(token, identity)
        try:
            self._store(token, identity)
        except OSError as exc:
            logger.warning("Could not persist session: %s", exc)
        logger.info("Signed in to %s as %s", self.provider.name, identity.display_name)
        return identity

    def logout(self) -> None:
        """Tear down the channel. Always leaves the session disconnected."""
        self._publish(None, None)
        try:
            self._session_file.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove stored session: %s", exc)
        logger.info("Signed out of %s", self.provider.name)

    def check_status(self) -> bool:
        """Check whether the session is (still) valid.

        Recovers a persisted session at startup without prompting. A
        rejected token disconnects; an unreachable provider leaves the
        current state as it is.

        Returns:
            bool: Whether the session is connected after the check.
        """
        with self._lock:
            token = self._token
            identity = self._identity

        if token is None:
            stored = self._load_stored()
            if stored is None:
                return False
            token, identity = stored.token, stored.identity

        try:
            if not self.provider.validate(token):
                logger.info("Stored %s token no longer valid", self.provider.name)
                self.logout()
                return False
            if identity is None:
                identity = self.provider.fetch_identity(token)
        except AuthDenied:
            self.logout()
            return False
        except TransferFailed as exc:
            logger.warning("Could not verify %s session: %s", self.provider.name, exc)
            return self.connected

        self._publish(token, identity)
        return True

    # ------------------------------------------------------------------
    # Transfer
    # ------------------------------------------------------------------

    def upload(self, artifact: Artifact, app_name: str) -> str:
        """Upload a staged artifact under the application's namespace.

        Args:
            artifact: The artifact to upload (read only).
            app_name: Application display name, used as a remote folder.

        Returns:
            str: Remote location containing app_name as a segment.

        Raises:
            NotAuthenticated: If not signed in. No network I/O happens.
            TransferFailed: On a missing artifact or transport error.
        """
        with self._lock:
            token = self._token
        if token is None:
            raise NotAuthenticated("Not signed in to the remote store")

        path = Path(artifact.path)
        if not path.is_file():
            raise TransferFailed(f"Artifact not found: {path}")

        namespace = [self.ctx.config.remote.root_folder, app_name]
        try:
            location = self.backend.upload(token, path, namespace)
        except TransferFailed as exc:
            self.record.last_error = str(exc)
            self._save_record()
            logger.error("Upload of %s failed: %s", path.name, exc)
            raise
        except OSError as exc:
            self.record.last_error = str(exc)
            self._save_record()
            logger.error("Upload of %s failed: %s", path.name, exc)
            raise TransferFailed(f"Could not read artifact {path}: {exc}") from exc

        self.record.last_upload = datetime.now(timezone.utc)
        self.record.last_location = location
        self.record.upload_count += 1
        self.record.last_error = None
        self._save_record()
        logger.info("Uploaded %s -> %s", path.name, location)
        return location
