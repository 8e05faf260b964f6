"""
Site settings commands.

Settings live in ``.projection/config.yaml`` as nested YAML and are addressed
with dotted keys such as ``backup.keep_count``. Only the keys in SETTINGS are
accepted; anything unset falls back to its default.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click
import yaml
from rich.table import Table

from projection.context import console
from projection.core.backup import DEFAULT_KEEP_COUNT, DEFAULT_KEEP_DAYS
from projection.core.config import SCREENSHOTS_DIR_NAME, get_paths, get_setting, load_settings

TRUE_WORDS = ("true", "1", "yes", "on")
FALSE_WORDS = ("false", "0", "no", "off")


@dataclass(frozen=True)
class Setting:
    """A known setting: its type, default and a one-line description."""

    key: str
    type: type
    default: Any
    description: str

    def parse(self, raw: str) -> Any:
        """Convert a command-line string to this setting's type.

        Raises:
            ValueError: If ``raw`` is not a valid value
        """
        if self.type is bool:
            word = raw.strip().lower()
            if word in TRUE_WORDS:
                return True
            if word in FALSE_WORDS:
                return False
            raise ValueError(raw)
        if self.type is int:
            return int(raw)
        return raw


SETTINGS: dict[str, Setting] = {
    s.key: s
    for s in (
        Setting("backup.enabled", bool, True, "Back up the projects file before every write"),
        Setting("backup.keep_days", int, DEFAULT_KEEP_DAYS, "Delete backups older than this many days"),
        Setting("backup.keep_count", int, DEFAULT_KEEP_COUNT, "Always keep this many newest backups"),
        Setting("thumbnails.dir", str, SCREENSHOTS_DIR_NAME, "Thumbnail directory, relative to the site root"),
    )
}


def get_config_path() -> Path:
    return get_paths().config_file


def load_config() -> dict[str, Any]:
    """Load the site's settings (empty dict when unset)."""
    return load_settings(get_paths())


def save_config(settings: dict[str, Any]) -> None:
    path = get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(settings, default_flow_style=False, sort_keys=False))


def get_config_value(key: str, default: Any = None) -> Any:
    """Look up a dotted key in the site's settings."""
    return get_setting(load_config(), key, default)


def set_config_value(key: str, value: Any) -> None:
    """Store ``value`` under a dotted key, creating parent tables as needed."""
    settings = load_config()
    *parents, leaf = key.split(".")

    table = settings
    for part in parents:
        if not isinstance(table.get(part), dict):
            table[part] = {}
        table = table[part]
    table[leaf] = value

    save_config(settings)


def _lookup(key: str) -> Setting | None:
    setting = SETTINGS.get(key)
    if setting is None:
        console.print(f"[red]Unknown setting: {key}[/red]")
        console.print("[dim]Known settings: " + ", ".join(SETTINGS) + "[/dim]")
    return setting


@click.group()
def config():
    """View and change site settings (.projection/config.yaml)."""
    pass


@config.command(name="show")
@click.option("--all", "show_all", is_flag=True, help="Include settings left at their default")
def show_cmd(show_all: bool):
    """Show customised settings, or every setting with --all."""
    settings = load_config()

    rows = []
    for setting in SETTINGS.values():
        value = get_setting(settings, setting.key)
        if value is None and not show_all:
            continue
        shown = f"[dim]{setting.default}[/dim]" if value is None else str(value)
        rows.append((setting.key, shown, str(setting.default), setting.description))

    if not rows:
        console.print("[dim]All settings are at their defaults (see --all).[/dim]")
    else:
        table = Table(title="Configuration", header_style="bold cyan")
        table.add_column("Setting")
        table.add_column("Value", style="green")
        table.add_column("Default", style="dim")
        table.add_column("Description", style="dim")
        for row in rows:
            table.add_row(*row)
        console.print(table)

    console.print(f"[dim]Config file: {get_config_path()}[/dim]")


@config.command(name="get")
@click.argument("key")
def get_cmd(key: str):
    """Print one setting, e.g. 'projection config get backup.keep_days'."""
    setting = _lookup(key)
    if setting is None:
        return

    value = get_config_value(key)
    if value is None:
        console.print(f"{key} = {setting.default} [dim](default)[/dim]")
    else:
        console.print(f"{key} = {value}")


@config.command(name="set")
@click.argument("key")
@click.argument("value")
def set_cmd(key: str, value: str):
    """Change a setting.

    Examples:
        projection config set backup.keep_count 5
        projection config set backup.enabled false
    """
    setting = _lookup(key)
    if setting is None:
        return

    try:
        parsed = setting.parse(value)
    except ValueError:
        console.print(f"[red]Invalid value type: {key} expects {setting.type.__name__}[/red]")
        return

    set_config_value(key, parsed)
    console.print(f"[green]{key} = {parsed}[/green]")
