"""
SaveSync CLI — versioned game saves from the command line.

Each command group lives in its own module and is attached to the main
group through a register function.

Entry point: savesync.cli:main
"""

from __future__ import annotations

import logging

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__, prog_name="savesync")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def main(verbose: bool):
    """SaveSync — snapshots, retention and cloud sync for save data."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .apps import register_apps_commands
from .backup import register_backup_commands
from .cloud import register_cloud_commands
from .config_cmd import register_config_commands
from .watch import register_watch_commands

register_apps_commands(main)
register_backup_commands(main)
register_cloud_commands(main)
register_config_commands(main)
register_watch_commands(main)
