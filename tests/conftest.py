"""Shared test fixtures for savesync."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Sequence

import pytest

from savesync.context import AppContext
from savesync.errors import AuthDenied, TransferFailed
from savesync.models import Application
from savesync.store import SnapshotStore
from savesync.sync.auth import AuthProvider
from savesync.sync.backends import RemoteStore
from savesync.sync.models import Identity
from savesync.sync.session import SyncSession

APP_ID = 413150
APP_NAME = "Stardew Valley"


class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2025, 3, 7, 21, 4, 59)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeAuthProvider(AuthProvider):
    """In-memory provider with switches for the failure paths."""

    def __init__(self) -> None:
        self.deny = False
        self.network_down = False
        self.valid_tokens = {"tok-1"}
        self.authorize_calls = 0

    @property
    def name(self) -> str:
        return "fake"

    def authorize(self) -> str:
        self.authorize_calls += 1
        if self.deny:
            raise AuthDenied("User cancelled")
        return "tok-1"

    def fetch_identity(self, token: str) -> Identity:
        if self.network_down:
            raise TransferFailed("offline")
        if token not in self.valid_tokens:
            raise AuthDenied("bad token")
        return Identity(display_name="Pat Player", avatar_ref="https://example.invalid/pat.png")

    def validate(self, token: str) -> bool:
        if self.network_down:
            raise TransferFailed("offline")
        return token in self.valid_tokens


class FakeRemoteStore(RemoteStore):
    """Records uploads instead of sending them."""

    def __init__(self) -> None:
        self.uploads: list[tuple[str, Path, list[str]]] = []
        self.fail = False

    @property
    def name(self) -> str:
        return "fake"

    def upload(self, token: str, file_path: Path, namespace: Sequence[str]) -> str:
        if self.fail:
            raise TransferFailed("remote said no")
        self.uploads.append((token, file_path, list(namespace)))
        return "/".join([*namespace, file_path.name])


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """Provide a temporary SaveSync home directory."""
    home = tmp_path / ".savesync"
    home.mkdir()
    return home


@pytest.fixture
def ctx(home: Path) -> AppContext:
    return AppContext(home)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def save_dir(tmp_path: Path) -> Path:
    """A live save directory with a couple of files."""
    saves = tmp_path / "saves"
    (saves / "Farm_1").mkdir(parents=True)
    (saves / "startup_preferences").write_text("volume=7\n")
    (saves / "Farm_1" / "Farm_1").write_text("<SaveGame day='1'/>")
    return saves


@pytest.fixture
def app(save_dir: Path) -> Application:
    return Application(id=APP_ID, name=APP_NAME, save_path=save_dir)


@pytest.fixture
def store(ctx: AppContext, clock: FakeClock) -> SnapshotStore:
    return SnapshotStore(ctx, clock=clock)


@pytest.fixture
def auth() -> FakeAuthProvider:
    return FakeAuthProvider()


@pytest.fixture
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def session(ctx: AppContext, auth: FakeAuthProvider, remote: FakeRemoteStore) -> SyncSession:
    return SyncSession(ctx, provider=auth, backend=remote)
