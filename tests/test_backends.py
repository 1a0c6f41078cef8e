"""Tests for remote stores and auth providers.

All HTTP is mocked; nothing leaves the machine.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

from savesync.config import RemoteBackendType, RemoteConfig
from savesync.errors import AuthDenied, TransferFailed
from savesync.sync.auth import (
    GoogleOAuthProvider,
    LocalAuthProvider,
    create_auth_provider,
)
from savesync.sync.backends import (
    DRIVE_UPLOAD_URL,
    DriveBackend,
    LocalBackend,
    create_backend,
)


def _response(status: int = 200, payload=None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = payload or {}
    resp.text = json.dumps(payload or {})
    return resp


@pytest.fixture
def archive(tmp_path: Path) -> Path:
    path = tmp_path / "07-03-2025_21-04-59.zip"
    path.write_bytes(b"PK")
    return path


class TestFactories:
    def test_gdrive(self, tmp_path):
        config = RemoteConfig(backend_type=RemoteBackendType.GDRIVE)
        assert isinstance(create_backend(config, tmp_path), DriveBackend)
        assert isinstance(create_auth_provider(config), GoogleOAuthProvider)

    def test_local(self, tmp_path):
        config = RemoteConfig(backend_type=RemoteBackendType.LOCAL)
        assert isinstance(create_backend(config, tmp_path), LocalBackend)
        assert isinstance(create_auth_provider(config), LocalAuthProvider)


class TestLocalBackend:
    def test_copies_under_namespace(self, tmp_path, archive):
        target = tmp_path / "nas"
        backend = LocalBackend(RemoteConfig(local_path=target), tmp_path)

        location = backend.upload("local:me", archive, ["SaveSync", "Stardew Valley"])

        assert location == "SaveSync/Stardew Valley/07-03-2025_21-04-59.zip"
        assert (target / "SaveSync" / "Stardew Valley" / archive.name).read_bytes() == b"PK"

    def test_default_target_under_home(self, tmp_path, archive):
        backend = LocalBackend(RemoteConfig(), tmp_path)
        backend.upload("local:me", archive, ["SaveSync", "Celeste"])
        assert (tmp_path / "sync" / "remote" / "SaveSync" / "Celeste" / archive.name).exists()

    def test_missing_file(self, tmp_path):
        backend = LocalBackend(RemoteConfig(local_path=tmp_path / "nas"), tmp_path)
        with pytest.raises(TransferFailed):
            backend.upload("local:me", tmp_path / "gone.zip", ["SaveSync", "Celeste"])


class TestDriveBackend:
    def test_creates_folders_then_uploads(self, archive):
        responses = [
            _response(payload={"files": []}),
            _response(payload={"id": "root-folder"}),
            _response(payload={"files": [{"id": "app-folder"}]}),
            _response(payload={"id": "file-1"}),
        ]
        with patch("savesync.sync.backends.requests.request", side_effect=responses) as req:
            location = DriveBackend().upload("tok", archive, ["SaveSync", "Stardew Valley"])

        assert location == "SaveSync/Stardew Valley/07-03-2025_21-04-59.zip"
        assert req.call_count == 4

        create_call = req.call_args_list[1]
        assert create_call.kwargs["json"]["name"] == "SaveSync"

        lookup_call = req.call_args_list[2]
        assert "'root-folder' in parents" in lookup_call.kwargs["params"]["q"]

        upload_call = req.call_args_list[3]
        assert upload_call.args[:2] == ("POST", DRIVE_UPLOAD_URL)
        assert upload_call.kwargs["params"] == {"uploadType": "multipart"}
        assert upload_call.kwargs["headers"]["Authorization"] == "Bearer tok"
        metadata = json.loads(upload_call.kwargs["files"]["metadata"][1])
        assert metadata["parents"] == ["app-folder"]
        assert metadata["name"] == archive.name

    def test_quotes_folder_names(self, archive):
        responses = [
            _response(payload={"files": [{"id": "a"}]}),
            _response(payload={"id": "f"}),
        ]
        with patch("savesync.sync.backends.requests.request", side_effect=responses) as req:
            DriveBackend().upload("tok", archive, ["Baldur's Gate"])
        assert "Baldur\\'s Gate" in req.call_args_list[0].kwargs["params"]["q"]

    def test_non_json_body(self, archive):
        resp = _response()
        resp.json.side_effect = ValueError("Expecting value")
        with patch("savesync.sync.backends.requests.request", return_value=resp):
            with pytest.raises(TransferFailed):
                DriveBackend().upload("tok", archive, ["SaveSync"])

    def test_error_status(self, archive):
        with patch("savesync.sync.backends.requests.request", return_value=_response(403)):
            with pytest.raises(TransferFailed):
                DriveBackend().upload("tok", archive, ["SaveSync"])

    def test_connection_error(self, archive):
        with patch(
            "savesync.sync.backends.requests.request",
            side_effect=requests.ConnectionError("offline"),
        ):
            with pytest.raises(TransferFailed):
                DriveBackend().upload("tok", archive, ["SaveSync"])


class TestGoogleOAuthProvider:
    def test_fetch_identity(self):
        payload = {"name": "Pat Player", "picture": "https://example.invalid/p.png"}
        with patch("savesync.sync.auth.requests.get", return_value=_response(payload=payload)) as get:
            identity = GoogleOAuthProvider().fetch_identity("tok")

        assert identity.display_name == "Pat Player"
        assert identity.avatar_ref == "https://example.invalid/p.png"
        assert get.call_args.kwargs["headers"]["Authorization"] == "Bearer tok"

    def test_rejected_token(self):
        with patch("savesync.sync.auth.requests.get", return_value=_response(401)):
            with pytest.raises(AuthDenied):
                GoogleOAuthProvider().fetch_identity("tok")
            assert GoogleOAuthProvider().validate("tok") is False

    def test_non_json_userinfo(self):
        resp = _response()
        resp.json.side_effect = ValueError("Expecting value")
        with patch("savesync.sync.auth.requests.get", return_value=resp):
            with pytest.raises(TransferFailed):
                GoogleOAuthProvider().fetch_identity("tok")

    def test_server_error_is_transfer_failure(self):
        with patch("savesync.sync.auth.requests.get", return_value=_response(503)):
            with pytest.raises(TransferFailed):
                GoogleOAuthProvider().validate("tok")

    def test_offline(self):
        with patch("savesync.sync.auth.requests.get", side_effect=requests.ConnectionError("x")):
            with pytest.raises(TransferFailed):
                GoogleOAuthProvider().validate("tok")

    def test_missing_client_config(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_CLIENT_ID", raising=False)
        monkeypatch.delenv("GOOGLE_CLIENT_SECRET", raising=False)
        with pytest.raises(AuthDenied):
            GoogleOAuthProvider().authorize()

    def test_consent_flow(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_CLIENT_ID", "id")
        monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "secret")
        flow = MagicMock()
        flow.run_local_server.return_value = MagicMock(token="ya29.token")
        with patch(
            "google_auth_oauthlib.flow.InstalledAppFlow.from_client_config", return_value=flow,
        ) as from_config:
            token = GoogleOAuthProvider().authorize()

        assert token == "ya29.token"
        config = from_config.call_args.args[0]
        assert config["installed"]["client_id"] == "id"


class TestLocalAuthProvider:
    def test_round_trip(self):
        provider = LocalAuthProvider()
        token = provider.authorize()
        assert provider.validate(token)
        assert provider.fetch_identity(token).display_name

    def test_foreign_token(self):
        provider = LocalAuthProvider()
        assert not provider.validate("ya29.something")
        with pytest.raises(AuthDenied):
            provider.fetch_identity("ya29.something")
