"""
Authentication providers -- turn user consent into a bearer token.

Google: browser consent via google-auth-oauthlib's local-server flow,
then the userinfo endpoint for the display name and avatar.
Local: no consent at all; the OS user is the identity. Pairs with the
local filesystem backend.
"""

from __future__ import annotations

import getpass
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import requests

from ..config import RemoteBackendType, RemoteConfig
from ..errors import AuthDenied, TransferFailed
from .models import Identity

logger = logging.getLogger("savesync.sync.auth")

GOOGLE_SCOPES = [
    "https://www.googleapis.com/auth/drive.file",
    "https://www.googleapis.com/auth/userinfo.profile",
]
GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

HTTP_TIMEOUT = 30


class AuthProvider(ABC):
    """Abstract authentication provider."""

    @abstractmethod
    def authorize(self) -> str:
        """Run the consent flow and return an access token.

        Raises:
            AuthDenied: If the user cancels or credentials are rejected.
        """

    @abstractmethod
    def fetch_identity(self, token: str) -> Identity:
        """Resolve the identity behind a token.

        Raises:
            AuthDenied: If the token is rejected.
            TransferFailed: On transport errors.
        """

    @abstractmethod
    def validate(self, token: str) -> bool:
        """Check whether a token is still accepted.

        Raises:
            TransferFailed: If validity cannot be determined.
        """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name."""


class GoogleOAuthProvider(AuthProvider):
    """Google OAuth 2.0 installed-app flow.

    Client credentials come from a client secrets JSON file, or from the
    GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET environment variables.

    Args:
        client_secrets_file: Path to the OAuth client secrets JSON.
        port: Local redirect port. 0 picks a free port.
    """

    def __init__(self, client_secrets_file: Optional[Path] = None, port: int = 0) -> None:
        self.client_secrets_file = client_secrets_file
        self.port = port

    @property
    def name(self) -> str:
        return "gdrive"

    def _client_config(self) -> dict[str, Any]:
        client_id = os.environ.get("GOOGLE_CLIENT_ID", "")
        client_secret = os.environ.get("GOOGLE_CLIENT_SECRET", "")
        if not client_id or not client_secret:
            raise AuthDenied(
                "Google OAuth not configured. Set GOOGLE_CLIENT_ID and "
                "GOOGLE_CLIENT_SECRET or remote.client_secrets_file."
            )
        return {
            "installed": {
                "client_id": client_id,
                "client_secret": client_secret,
                "auth_uri": GOOGLE_AUTH_URI,
                "token_uri": GOOGLE_TOKEN_URI,
                "redirect_uris": ["http://localhost"],
            }
        }

    def authorize(self) -> str:
        from google.auth.exceptions import GoogleAuthError
        from google_auth_oauthlib.flow import InstalledAppFlow
        from oauthlib.oauth2.rfc6749.errors import OAuth2Error

        try:
            if self.client_secrets_file:
                flow = InstalledAppFlow.from_client_secrets_file(
                    str(Path(self.client_secrets_file).expanduser()), scopes=GOOGLE_SCOPES,
                )
            else:
                flow = InstalledAppFlow.from_client_config(
                    self._client_config(), scopes=GOOGLE_SCOPES,
                )
            credentials = flow.run_local_server(
                port=self.port,
                open_browser=True,
                success_message="Signed in. You can close this window.",
            )
        except (OAuth2Error, GoogleAuthError, ValueError, OSError) as exc:
            logger.warning("Google consent flow failed: %s", exc)
            raise AuthDenied(f"Google sign-in failed: {exc}") from exc

        if not credentials or not credentials.token:
            raise AuthDenied("Google sign-in returned no token")
        return credentials.token

    def _userinfo(self, token: str) -> requests.Response:
        try:
            return requests.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {token}"},
                timeout=HTTP_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise TransferFailed(f"Google userinfo request failed: {exc}") from exc

    def fetch_identity(self, token: str) -> Identity:
        resp = self._userinfo(token)
        if resp.status_code in (401, 403):
            raise AuthDenied("Google rejected the access token")
        if resp.status_code >= 400:
            raise TransferFailed(f"Google userinfo: {resp.status_code} {resp.text}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise TransferFailed(f"Google userinfo returned invalid JSON: {exc}") from exc
        return Identity(
            display_name=data.get("name") or data.get("email") or "Google user",
            avatar_ref=data.get("picture"),
        )

    def validate(self, token: str) -> bool:
        resp = self._userinfo(token)
        if resp.status_code in (401, 403):
            return False
        if resp.status_code >= 400:
            raise TransferFailed(f"Google userinfo: {resp.status_code} {resp.text}")
        return True


class LocalAuthProvider(AuthProvider):
    """Trivial provider for the local filesystem backend."""

    TOKEN_PREFIX = "local:"

    @property
    def name(self) -> str:
        return "local"

    def authorize(self) -> str:
        return f"{self.TOKEN_PREFIX}{getpass.getuser()}"

    def fetch_identity(self, token: str) -> Identity:
        if not self.validate(token):
            raise AuthDenied("Not a local session token")
        return Identity(display_name=token[len(self.TOKEN_PREFIX):])

    def validate(self, token: str) -> bool:
        return token.startswith(self.TOKEN_PREFIX)


def create_auth_provider(config: RemoteConfig) -> AuthProvider:
    """Factory for the provider matching the configured backend.

    Raises:
        ValueError: If the backend type is not supported.
    """
    if config.backend_type == RemoteBackendType.GDRIVE:
        return GoogleOAuthProvider(client_secrets_file=config.client_secrets_file)
    if config.backend_type == RemoteBackendType.LOCAL:
        return LocalAuthProvider()
    raise ValueError(f"Unsupported backend: {config.backend_type}")
