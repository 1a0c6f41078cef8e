"""Shared utilities for all CLI command modules.

Provides the Rich console, the manager lifecycle helper and result
reporting used across every command group.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from rich.console import Console

from .. import SAVESYNC_HOME
from ..models import OperationResult
from ..service import SaveManager

console = Console()


@contextmanager
def open_manager(home: str) -> Iterator[SaveManager]:
    """Build a SaveManager for home and flush its config on exit."""
    manager = SaveManager.open(Path(home).expanduser())
    try:
        yield manager
    finally:
        manager.close()


def report(result: OperationResult) -> OperationResult:
    """Print a failed result in red and exit 1; pass successes through."""
    if not result.ok:
        console.print(f"[red]{result.message}[/]")
        raise SystemExit(1)
    return result


__all__ = ["SAVESYNC_HOME", "console", "open_manager", "report"]
