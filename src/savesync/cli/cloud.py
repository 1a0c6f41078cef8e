"""Cloud commands: login, logout, status, upload."""

from __future__ import annotations

from typing import Optional

import click
from rich.panel import Panel

from ._common import SAVESYNC_HOME, console, open_manager, report


def register_cloud_commands(main: click.Group) -> None:
    """Register the cloud command group."""

    @main.group()
    def cloud():
        """Cloud sync — upload staged backups to the remote store.

        The remote is chosen in config.yaml (remote.backend_type):
        gdrive for Google Drive, local for a mounted folder.
        """

    @cloud.command("login")
    @click.option("--home", default=SAVESYNC_HOME, type=click.Path(), help="SaveSync home directory.")
    def cloud_login(home: str):
        """Sign in to the remote store.

        For Google Drive this opens the browser consent page.
        """
        with open_manager(home) as manager:
            console.print(f"\n[cyan]Signing in to {manager.session.provider.name}...[/]")
            identity = report(manager.login()).value

        console.print(f"  [green]Signed in as[/] [bold]{identity.display_name}[/]\n")

    @cloud.command("logout")
    @click.option("--home", default=SAVESYNC_HOME, type=click.Path(), help="SaveSync home directory.")
    def cloud_logout(home: str):
        """Forget the stored session."""
        with open_manager(home) as manager:
            report(manager.logout())
        console.print("\n  [green]Signed out.[/]\n")

    @cloud.command("status")
    @click.option("--home", default=SAVESYNC_HOME, type=click.Path(), help="SaveSync home directory.")
    def cloud_status(home: str):
        """Show whether a valid session exists, and the last upload."""
        with open_manager(home) as manager:
            state = report(manager.check_status()).value
            record = manager.session.record
            provider = manager.session.provider.name
            root_folder = manager.ctx.config.remote.root_folder

        if state.connected:
            who = f"[green]Connected[/] as [bold]{state.identity.display_name}[/]"
        else:
            who = "[yellow]Not signed in[/]"

        last = record.last_upload.isoformat()[:19] if record.last_upload else "never"
        lines = [
            f"Remote: {provider} ({root_folder})",
            f"Session: {who}",
            f"Uploads: {record.upload_count}",
            f"Last upload: {last}",
        ]
        if record.last_location:
            lines.append(f"Last location: [cyan]{record.last_location}[/]")
        if record.last_error:
            lines.append(f"Last error: [red]{record.last_error}[/]")

        console.print(Panel("\n".join(lines), title="Cloud Sync", border_style="cyan"))

    @cloud.command("upload")
    @click.argument("app_id", type=int)
    @click.argument("version", required=False)
    @click.option("--home", default=SAVESYNC_HOME, type=click.Path(), help="SaveSync home directory.")
    def cloud_upload(app_id: int, version: Optional[str], home: str):
        """Upload a backup, staging it first if needed.

        VERSION defaults to the newest backup.

        Examples:

            savesync cloud upload 413150

            savesync cloud upload 413150 07-03-2025_21-04-59
        """
        with open_manager(home) as manager:
            manager.session.check_status()
            location = report(manager.upload(app_id, version)).value

        console.print(f"\n  [green]Uploaded[/] -> [cyan]{location}[/]\n")
