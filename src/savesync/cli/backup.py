"""Backup commands: create, list, stage, delete, restore."""

from __future__ import annotations

from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from ..timestamps import display_timestamp
from ._common import SAVESYNC_HOME, console, open_manager, report


def register_backup_commands(main: click.Group) -> None:
    """Register the backup command group."""

    @main.group()
    def backup():
        """Backups — timestamped copies of an application's saves.

        The oldest versions are evicted once the retention limit is hit.
        """

    @backup.command("create")
    @click.argument("app_id", type=int)
    @click.option("--home", default=SAVESYNC_HOME, type=click.Path(), help="SaveSync home directory.")
    def backup_create(app_id: int, home: str):
        """Back up an application's save directory now.

        Examples:

            savesync backup create 413150
        """
        with open_manager(home) as manager:
            result = report(manager.backup(app_id))

        snap = result.value
        console.print(Panel(
            f"[bold green]Backup created[/]\n"
            f"Version: {snap.timestamp}\n"
            f"Size: {snap.size_mb}\n"
            f"Path: [cyan]{snap.path}[/]",
            title="Backup Complete",
            border_style="green",
        ))

    @backup.command("list")
    @click.argument("app_id", type=int)
    @click.option("--home", default=SAVESYNC_HOME, type=click.Path(), help="SaveSync home directory.")
    def backup_list(app_id: int, home: str):
        """List an application's backups, newest first."""
        with open_manager(home) as manager:
            snapshots = report(manager.list_backups(app_id)).value

        if not snapshots:
            console.print("\n[dim]No backups found.[/]\n")
            return

        table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
        table.add_column("Version", style="cyan")
        table.add_column("Created", style="dim")
        table.add_column("Size", justify="right")
        table.add_column("Staged")

        for snap in snapshots:
            staged = "[green]zip[/]" if snap.has_artifact else ""
            table.add_row(snap.timestamp, display_timestamp(snap.timestamp), snap.size_mb, staged)

        console.print(f"\n[bold]{len(snapshots)}[/] backup(s):\n")
        console.print(table)
        console.print()

    @backup.command("stage")
    @click.argument("app_id", type=int)
    @click.argument("version", required=False)
    @click.option("--home", default=SAVESYNC_HOME, type=click.Path(), help="SaveSync home directory.")
    def backup_stage(app_id: int, version: Optional[str], home: str):
        """Compress a backup into a zip ready for upload.

        VERSION defaults to the newest backup.
        """
        with open_manager(home) as manager:
            artifact = report(manager.stage(app_id, version)).value

        size_mb = artifact.size_bytes / 1024 / 1024
        console.print(f"\n  [green]Staged[/] {artifact.timestamp} ({size_mb:.1f} MB)")
        console.print(f"  [cyan]{artifact.path}[/]\n")

    @backup.command("delete")
    @click.argument("app_id", type=int)
    @click.argument("version")
    @click.option("--home", default=SAVESYNC_HOME, type=click.Path(), help="SaveSync home directory.")
    def backup_delete(app_id: int, version: str, home: str):
        """Delete one backup and its zip."""
        with open_manager(home) as manager:
            report(manager.delete_backup(app_id, version))
        console.print(f"\n  [green]Deleted[/] {version}\n")

    @backup.command("restore")
    @click.argument("app_id", type=int)
    @click.argument("version")
    @click.option("--home", default=SAVESYNC_HOME, type=click.Path(), help="SaveSync home directory.")
    @click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
    def backup_restore(app_id: int, version: str, home: str, yes: bool):
        """Overwrite the live saves with a backup.

        This replaces the current save files. You are asked to confirm
        unless --yes is given.

        Examples:

            savesync backup restore 413150 07-03-2025_21-04-59
        """
        with open_manager(home) as manager:
            coordinator = report(manager.prepare_restore(app_id, version)).value
            app = coordinator.app

            prompt = (
                f"Restore {app.name} to {display_timestamp(version)}? "
                "Current save files will be overwritten"
            )
            if not yes and not click.confirm(prompt, default=False):
                coordinator.cancel()
                console.print("\n[yellow]Restore cancelled.[/]\n")
                return

            console.print(f"\n[cyan]Restoring {app.name}...[/]")
            result = report(manager.confirm_restore(coordinator))

        console.print(Panel(
            f"[bold green]Restore complete[/]\n"
            f"Application: {app.name}\n"
            f"Version: {result.value.timestamp}\n"
            f"Target: [cyan]{app.save_path}[/]",
            title="Restore Complete",
            border_style="green",
        ))
