"""Application listing command."""

from __future__ import annotations

import click
from rich.table import Table

from ..timestamps import display_timestamp
from ._common import SAVESYNC_HOME, console, open_manager


def register_apps_commands(main: click.Group) -> None:
    """Register the apps command."""

    @main.command("apps")
    @click.option("--home", default=SAVESYNC_HOME, type=click.Path(), help="SaveSync home directory.")
    def apps(home: str):
        """List tracked applications and their latest backup.

        Applications are read from applications.yaml in the home directory.
        """
        with open_manager(home) as manager:
            found = manager.apps()
            watched = set(manager.watch.enabled_ids())

        if not found:
            console.print("\n[dim]No applications found. Add them to applications.yaml.[/]\n")
            return

        table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
        table.add_column("ID", justify="right")
        table.add_column("Name", style="cyan")
        table.add_column("Last backup", style="dim")
        table.add_column("Auto")

        for app in found:
            last = display_timestamp(app.last_snapshot_id) if app.last_snapshot_id else "never"
            auto = "[green]on[/]" if app.id in watched else "[dim]off[/]"
            table.add_row(str(app.id), app.name, last, auto)

        console.print(f"\n[bold]{len(found)}[/] application(s):\n")
        console.print(table)
        console.print()
