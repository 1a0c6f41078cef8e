"""
Cloud sync -- authenticated upload of staged artifacts.

The session owns who is signed in. The backend owns where bytes go.
Nothing here ever modifies a local snapshot or artifact.

Backends: Google Drive, local filesystem.
"""

from .session import SyncSession

__all__ = ["SyncSession"]
