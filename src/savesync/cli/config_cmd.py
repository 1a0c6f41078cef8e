"""Config commands: show, retention."""

from __future__ import annotations

import click
import yaml

from ..config import CONFIG_FILENAME
from ._common import SAVESYNC_HOME, console, open_manager, report


def register_config_commands(main: click.Group) -> None:
    """Register the config command group."""

    @main.group("config")
    def config_group():
        """Settings stored in config.yaml."""

    @config_group.command("show")
    @click.option("--home", default=SAVESYNC_HOME, type=click.Path(), help="SaveSync home directory.")
    def config_show(home: str):
        """Print the effective configuration."""
        with open_manager(home) as manager:
            data = manager.ctx.config.model_dump(mode="json")
            path = manager.ctx.home / CONFIG_FILENAME

        console.print(f"\n[dim]{path}[/]\n")
        click.echo(yaml.dump(data, default_flow_style=False))

    @config_group.command("retention")
    @click.argument("limit", type=int)
    @click.option("--home", default=SAVESYNC_HOME, type=click.Path(), help="SaveSync home directory.")
    def config_retention(limit: int, home: str):
        """Set how many versions to keep per application.

        Takes effect on the next backup; nothing is deleted now.
        """
        with open_manager(home) as manager:
            result = report(manager.set_retention_limit(limit))
        console.print(f"\n  [green]{result.message}[/]\n")
