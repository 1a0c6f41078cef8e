"""
Sync data models -- identity, session view, and upload bookkeeping.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator


class Identity(BaseModel):
    """The signed-in account as shown to the user."""

    display_name: str
    avatar_ref: Optional[str] = None


class SessionState(BaseModel):
    """Atomic, read-only view of the session.

    connected is true exactly when an identity is present.
    """

    model_config = ConfigDict(frozen=True)

    connected: bool = False
    identity: Optional[Identity] = None

    @model_validator(mode="after")
    def _identity_matches_connection(self) -> "SessionState":
        if self.connected != (self.identity is not None):
            raise ValueError("connected must be true exactly when identity is set")
        return self


class StoredSession(BaseModel):
    """Session persisted to disk so a restart does not re-prompt."""

    token: str
    identity: Optional[Identity] = None
    created_at: Optional[datetime] = None


class SyncState(BaseModel):
    """Upload bookkeeping persisted to disk."""

    last_upload: Optional[datetime] = None
    last_location: Optional[str] = None
    upload_count: int = 0
    last_error: Optional[str] = None
