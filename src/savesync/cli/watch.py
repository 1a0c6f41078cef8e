"""Watch commands: enable, disable, list, run."""

from __future__ import annotations

import logging

import click

from ._common import SAVESYNC_HOME, console, open_manager, report


def _setup_file_logging(log_file) -> None:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file)
    handler.setFormatter(
        logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s")
    )
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(logging.INFO)


def register_watch_commands(main: click.Group) -> None:
    """Register the watch command group."""

    @main.group()
    def watch():
        """Auto-backup — snapshot saves whenever they change."""

    @watch.command("enable")
    @click.argument("app_id", type=int)
    @click.option("--home", default=SAVESYNC_HOME, type=click.Path(), help="SaveSync home directory.")
    def watch_enable(app_id: int, home: str):
        """Back up APP_ID automatically while `savesync watch run` is active."""
        with open_manager(home) as manager:
            report(manager.set_watch(app_id, True))
        console.print(f"\n  [green]Auto-backup enabled[/] for {app_id}\n")

    @watch.command("disable")
    @click.argument("app_id", type=int)
    @click.option("--home", default=SAVESYNC_HOME, type=click.Path(), help="SaveSync home directory.")
    def watch_disable(app_id: int, home: str):
        """Stop automatic backups for APP_ID."""
        with open_manager(home) as manager:
            report(manager.set_watch(app_id, False))
        console.print(f"\n  [yellow]Auto-backup disabled[/] for {app_id}\n")

    @watch.command("list")
    @click.option("--home", default=SAVESYNC_HOME, type=click.Path(), help="SaveSync home directory.")
    def watch_list(home: str):
        """Show which applications are backed up automatically."""
        with open_manager(home) as manager:
            enabled = manager.watch.enabled_ids()
            names = {app.id: app.name for app in manager.discovery.scan()}

        if not enabled:
            console.print("\n[dim]No applications have auto-backup enabled.[/]\n")
            return
        console.print(f"\n[bold]{len(enabled)}[/] watched:\n")
        for app_id in enabled:
            console.print(f"  {app_id}  [cyan]{names.get(app_id, '?')}[/]")
        console.print()

    @watch.command("run")
    @click.option("--home", default=SAVESYNC_HOME, type=click.Path(), help="SaveSync home directory.")
    def watch_run(home: str):
        """Watch enabled save directories in the foreground (Ctrl+C to stop)."""
        with open_manager(home) as manager:
            log_file = manager.ctx.log_dir / "watch.log"
            _setup_file_logging(log_file)
            watcher = manager.watcher()

            console.print(f"\n  [green]Watching[/] {len(manager.watch.enabled_ids())} application(s)")
            console.print(f"  Tick: {watcher.poll_interval}s | Settle: {watcher.settle_seconds}s")
            console.print(f"  Log: {log_file}")
            console.print("  [dim]Running in foreground (Ctrl+C to stop)[/]\n")
            watcher.run_forever()
