"""
Backup commands for the projects file.

Every write of the projects file leaves a timestamped copy in
``.projection/backups/``; these commands browse, prune and restore them.
"""

from __future__ import annotations

import click
from rich.panel import Panel
from rich.table import Table

from projection.config.commands import get_config_value
from projection.context import Context, console, pass_context
from projection.core.backup import (
    DEFAULT_KEEP_COUNT,
    DEFAULT_KEEP_DAYS,
    BackupInfo,
    RetentionPolicy,
    list_backups,
    rollback_file,
)


def _retention(days: int | None, keep: int | None) -> RetentionPolicy:
    """Build a retention policy, filling unset values from config."""
    if days is None:
        configured = get_config_value("backup.keep_days", DEFAULT_KEEP_DAYS)
        days = None if configured is None else int(configured)
    if keep is None:
        keep = int(get_config_value("backup.keep_count", DEFAULT_KEEP_COUNT))
    return RetentionPolicy(keep_count=keep, keep_days=days)


def _format_age(days: float) -> str:
    """Format an age in days as '5m ago', '3h ago', '2w ago', ..."""
    minutes = days * 24 * 60
    for limit, divisor, unit in (
        (60, 1, "m"),
        (60 * 24, 60, "h"),
        (60 * 24 * 7, 60 * 24, "d"),
        (60 * 24 * 30, 60 * 24 * 7, "w"),
    ):
        if minutes < limit:
            return f"{int(minutes / divisor)}{unit} ago"
    return f"{int(days / 30)}mo ago"


def _backups(ctx: Context) -> tuple[str, list[BackupInfo]]:
    paths = ctx.paths()
    return paths.projects_file.name, list_backups(paths.backups, paths.projects_file.stem)


@click.group()
def backup():
    """Inspect, prune and restore backups of the projects file."""
    pass


@backup.command(name="list")
@click.option("-n", "--limit", type=int, default=10, help="Show at most this many backups")
@click.option("--all", "show_all", is_flag=True, help="Show every backup")
@pass_context
def list_cmd(ctx: Context, limit: int, show_all: bool):
    """List backups, newest first.

    The # column is the index to pass to 'backup rollback -i'.
    """
    name, backups = _backups(ctx)
    if not backups:
        console.print(f"[dim]No backups of {name} yet[/dim]")
        return

    shown = backups if show_all else backups[:limit]

    table = Table(title=f"Backups of [bold]{name}[/bold]", header_style="bold cyan")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Taken", style="green")
    table.add_column("Age", style="yellow", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("File", style="dim")

    for index, info in enumerate(shown):
        table.add_row(
            str(index),
            info.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            _format_age(info.age_days),
            info.size_human,
            info.path.name,
        )
    console.print(table)

    if len(shown) < len(backups):
        console.print(f"[dim]{len(backups) - len(shown)} older backup(s) hidden, use --all[/dim]")


@backup.command(name="clean")
@click.option("--days", type=int, default=None, help="Delete backups older than this (default from config)")
@click.option("--keep", type=int, default=None, help="Always keep this many newest backups (default from config)")
@click.option("--dry-run", "-n", is_flag=True, help="Only show what would be deleted")
@click.option("--force", "-f", is_flag=True, help="Do not ask for confirmation")
@pass_context
def clean_cmd(ctx: Context, days: int | None, keep: int | None, dry_run: bool, force: bool):
    """Delete old backups.

    A backup is kept while it is one of the --keep newest or younger than
    --days.
    """
    _, backups = _backups(ctx)
    expired = _retention(days, keep).expired(backups)

    if not expired:
        console.print("[green]Nothing to clean.[/green]")
        return

    console.print(f"[bold]{len(expired)} backup(s) past retention:[/bold]")
    for info in expired:
        console.print(f"  [red]-[/red] {info.path.name} [dim]{_format_age(info.age_days)}[/dim]")

    if dry_run:
        console.print("[yellow]Dry run, nothing deleted.[/yellow]")
        return
    if not force and not click.confirm("Delete these backups?"):
        console.print("[yellow]Cancelled[/yellow]")
        return

    failed = 0
    for info in expired:
        try:
            info.path.unlink(missing_ok=True)
        except OSError as e:
            failed += 1
            console.print(f"[red]Could not delete {info.path.name}: {e}[/red]")

    console.print(f"[green]Deleted {len(expired) - failed} backup(s)[/green]")


@backup.command(name="rollback")
@click.option("-i", "--index", type=int, default=0, help="Backup to restore, as numbered by 'backup list'")
@click.option("--dry-run", "-n", is_flag=True, help="Show the backup without restoring it")
@click.option("--force", "-f", is_flag=True, help="Do not ask for confirmation")
@pass_context
def rollback_cmd(ctx: Context, index: int, dry_run: bool, force: bool):
    """Restore the projects file from a backup.

    The current file is backed up first, so the rollback can be undone.
    """
    name, backups = _backups(ctx)
    if not backups:
        console.print(f"[red]No backups of {name} to restore[/red]")
        return
    if not 0 <= index < len(backups):
        console.print(f"[red]No backup #{index} (there are {len(backups)})[/red]")
        return

    info = backups[index]
    console.print(Panel(
        f"[bold]File:[/bold] {name}\n"
        f"[bold]Backup:[/bold] {info.path.name}\n"
        f"[bold]Taken:[/bold] {info.timestamp:%Y-%m-%d %H:%M:%S} ({_format_age(info.age_days)})\n"
        f"[bold]Size:[/bold] {info.size_human}",
        title="Rollback",
    ))

    if dry_run:
        console.print("[yellow]Dry run, nothing restored.[/yellow]")
        return
    if not force and not click.confirm("Restore this backup?"):
        console.print("[yellow]Cancelled[/yellow]")
        return

    paths = ctx.paths()
    try:
        rollback_file(paths.projects_file, paths.backups, index)
    except OSError as e:
        console.print(f"[red]Rollback failed: {e}[/red]")
        raise click.Abort() from e

    console.print(f"[green]Restored {name} from {info.path.name}[/green]")
