"""
Main CLI dispatcher for projection.

Usage:
    projection init                          # Create a starter projects file
    projection projects [list|show|add|edit|remove|tags]
    projection thumbnails [set|stage|commit|cancel|remove|list|orphans]
    projection backup [list|rollback|clean]
    projection config [show|get|set]
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from projection import __version__
from projection.context import Context, console, pass_context


@click.group()
@click.version_option(version=__version__, prog_name="projection")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "-p", "--projects-file",
    type=click.Path(dir_okay=False),
    envvar="PROJECTION_PROJECTS_FILE",
    help="Projects file (default: projects.yaml/.yml/.json in the site root)",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, projects_file: str | None) -> None:
    """Manage the projects of a portfolio site.

    Edits projects.yaml (or .json) without disturbing comments or formatting,
    and keeps project thumbnails in step with the records.
    """
    ctx.obj = Context(verbose=verbose, projects_file=projects_file)

    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


@main.command()
@click.option(
    "--format", "fmt",
    type=click.Choice(["yaml", "json"]),
    default="yaml",
    help="Format of the new projects file",
)
@pass_context
def init(ctx: Context, fmt: str) -> None:
    """Create a starter projects file and the .projection/ directory."""
    from projection.core.config import DATA_DIR_NAME, find_projects_file
    from projection.projects.store import ProjectStore

    site_root = Path.cwd()
    existing = find_projects_file(site_root, ctx.projects_file)
    if existing is not None:
        console.print(f"[yellow]Projects file already exists: {existing}[/yellow]")
        return

    if ctx.projects_file:
        target = Path(ctx.projects_file)
        if not target.is_absolute():
            target = site_root / target
    else:
        target = site_root / ("projects.json" if fmt == "json" else "projects.yaml")

    (site_root / DATA_DIR_NAME / "backups").mkdir(parents=True, exist_ok=True)
    ProjectStore.initialize(target)
    console.print(f"  [green]Created[/green] {target.name}")

    # Backups are local state, not site content
    gitignore_path = site_root / ".gitignore"
    gitignore_entry = f"{DATA_DIR_NAME}/backups/"
    if gitignore_path.exists():
        content = gitignore_path.read_text()
        if gitignore_entry not in content:
            with open(gitignore_path, "a") as f:
                f.write(f"\n# projection backups\n{gitignore_entry}\n")
            console.print(f"  [green]Updated[/green] .gitignore with {gitignore_entry}")

    console.print()
    console.print("[green]Done![/green] Add projects with 'projection projects add'.")


# Import and register command groups (imports after main definition intentional)
from projection.backup.commands import backup  # noqa: E402
from projection.config.commands import config  # noqa: E402
from projection.projects.commands import projects  # noqa: E402
from projection.thumbnails.commands import thumbnails  # noqa: E402

main.add_command(projects)
main.add_command(thumbnails)
main.add_command(backup)
main.add_command(config)


if __name__ == "__main__":
    main()
