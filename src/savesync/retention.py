"""
Retention policy — decide which snapshots fall off the end.

Pure function. The store calls it after every successful creation;
changing the limit on its own never deletes anything.
"""

from __future__ import annotations

from typing import Sequence

from .models import Snapshot


def evict(snapshots: Sequence[Snapshot], max_versions: int) -> list[Snapshot]:
    """Return the snapshots to delete.

    Args:
        snapshots: Snapshots ordered newest to oldest.
        max_versions: How many of the newest to keep (>= 1).

    Returns:
        list[Snapshot]: Everything past the first max_versions entries,
            still ordered newest to oldest.

    Raises:
        ValueError: If max_versions is below 1.
    """
    if max_versions < 1:
        raise ValueError(f"max_versions must be >= 1, got {max_versions}")
    return list(snapshots[max_versions:])
