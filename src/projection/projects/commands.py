"""CLI commands for managing project records."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import click
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from projection.context import Context, console, fail, pass_context
from projection.core.errors import ProjectionError
from projection.projects.models import Project, tag_counts
from projection.thumbnails.commands import read_upload


def _truncate(text: str, max_len: int) -> str:
    """Truncate text with ellipsis if it exceeds max_len."""
    if len(text) > max_len:
        return text[:max_len] + "..."
    return text


@click.group(name="projects")
def projects() -> None:
    """Manage project records.

    Changes are written in place: comments and formatting in the projects
    file are kept, and a backup is taken before every write.
    """
    pass


@projects.command(name="list")
@click.option("-t", "--tag", multiple=True, help="Filter by tag(s)")
@click.option("--featured", is_flag=True, help="Only featured projects")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@pass_context
def list_projects(ctx: Context, tag: tuple[str, ...], featured: bool, as_json: bool) -> None:
    """List projects in file order."""
    loaded = list(ctx.coordinator().store)

    results = [
        p for p in loaded
        if (not tag or set(tag) & set(p.tags or []))
        and (not featured or p.featured)
    ]

    if as_json:
        click.echo(json.dumps([p.to_dict() for p in results], indent=2, default=str))
        return

    if not results:
        console.print("[yellow]No projects found matching criteria[/yellow]")
        return

    table = Table(title=f"Projects ({len(results)})", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="green")
    table.add_column("Title")
    table.add_column("Date", style="dim")
    table.add_column("Tags", style="blue")
    table.add_column("Thumbnail", style="dim")
    table.add_column("★", justify="center")

    for p in results:
        table.add_row(
            p.id,
            _truncate(p.title or "", 40),
            str(p.creation_date),
            ", ".join(p.tags or []),
            p.thumbnail_link or "-",
            "★" if p.featured else "",
        )

    console.print(table)


@projects.command()
@click.argument("project_id")
@pass_context
def show(ctx: Context, project_id: str) -> None:
    """Show a single project record."""
    coordinator = ctx.coordinator()
    project = coordinator.store.get(project_id)
    if project is None:
        console.print(f"[red]Project not found: {project_id}[/red]")
        raise SystemExit(1)

    json_str = json.dumps(project.to_dict(), indent=2, default=str)
    syntax = Syntax(json_str, "json", theme="monokai", line_numbers=False)
    console.print(Panel(syntax, title=f"Project: {project_id}"))

    final = coordinator.thumbnails.find_final(project_id)
    staged = coordinator.thumbnails.find_temp(project_id)
    if final or staged:
        console.print(f"[dim]Thumbnail file: {final or '-'}  staged: {staged or '-'}[/dim]")


@projects.command()
@click.option("--id", "project_id", required=True, help="URL slug, e.g. my-project")
@click.option("--title", required=True)
@click.option("--description", required=True)
@click.option("--date", "creation_date", help="Creation date YYYY-MM-DD (default: today)")
@click.option("-t", "--tag", multiple=True, help="Tag (repeatable)")
@click.option("--page-link", required=True, help="Primary link to the project")
@click.option("--source-link", help="Source code link")
@click.option("--featured/--no-featured", default=None, help="Highlight the project")
@click.option(
    "--thumbnail",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Image file to use as thumbnail",
)
@pass_context
def add(
    ctx: Context,
    project_id: str,
    title: str,
    description: str,
    creation_date: str | None,
    tag: tuple[str, ...],
    page_link: str,
    source_link: str | None,
    featured: bool | None,
    thumbnail: Path | None,
) -> None:
    """Add a new project.

    A thumbnail is staged first and committed together with the record.
    """
    coordinator = ctx.coordinator()
    project = Project(
        id=project_id,
        title=title,
        description=description,
        creation_date=creation_date or date.today().isoformat(),
        tags=list(tag),
        page_link=page_link,
        source_link=source_link,
        featured=featured,
    )

    try:
        project.validate("create")
        staged = None
        if thumbnail is not None:
            coordinator.upload_thumbnail(project_id, read_upload(thumbnail), edit=True)
            staged = project_id
        created = coordinator.create_project(project, staged_image_id=staged)
    except ProjectionError as e:
        fail(e)
        return

    console.print(f"[green]Added project {created.id}[/green]")
    if created.thumbnail_link:
        console.print(f"  [dim]thumbnail: {created.thumbnail_link}[/dim]")


@projects.command()
@click.argument("project_id")
@click.option("--title")
@click.option("--description")
@click.option("--date", "creation_date", help="Creation date YYYY-MM-DD")
@click.option("-t", "--tag", multiple=True, help="Replace tags (repeatable)")
@click.option("--page-link")
@click.option("--source-link")
@click.option("--featured/--no-featured", default=None)
@click.option(
    "--thumbnail",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Replace the thumbnail with this image",
)
@click.option("--clear-thumbnail", is_flag=True, help="Remove the thumbnail")
@pass_context
def edit(
    ctx: Context,
    project_id: str,
    title: str | None,
    description: str | None,
    creation_date: str | None,
    tag: tuple[str, ...],
    page_link: str | None,
    source_link: str | None,
    featured: bool | None,
    thumbnail: Path | None,
    clear_thumbnail: bool,
) -> None:
    """Edit fields of an existing project."""
    coordinator = ctx.coordinator()
    project = coordinator.store.get(project_id)
    if project is None:
        console.print(f"[red]Project not found: {project_id}[/red]")
        raise SystemExit(1)

    updates = {
        "title": title,
        "description": description,
        "creation_date": creation_date,
        "page_link": page_link,
        "source_link": source_link,
        "featured": featured,
    }
    for attr, value in updates.items():
        if value is not None:
            setattr(project, attr, value)
    if tag:
        project.tags = list(tag)
    if clear_thumbnail:
        project.thumbnail_link = None

    staged = None
    try:
        if thumbnail is not None:
            coordinator.upload_thumbnail(project_id, read_upload(thumbnail), edit=True)
            staged = project_id
        coordinator.update_project(project_id, project, staged_image_id=staged)
    except ProjectionError as e:
        if staged:
            coordinator.cancel_edit(project_id)
        fail(e)
        return

    console.print(f"[green]Updated project {project_id}[/green]")


@projects.command()
@click.argument("project_id")
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation prompt")
@pass_context
def remove(ctx: Context, project_id: str, yes: bool) -> None:
    """Remove a project and its thumbnail."""
    coordinator = ctx.coordinator()
    if project_id not in coordinator.store:
        console.print(f"[red]Project not found: {project_id}[/red]")
        raise SystemExit(1)

    if not yes and not click.confirm(f"Remove project '{project_id}' and its thumbnail?"):
        console.print("[dim]Cancelled[/dim]")
        return

    try:
        coordinator.delete_project(project_id)
    except ProjectionError as e:
        fail(e)
        return

    console.print(f"[green]Removed project {project_id}[/green]")


@projects.command()
@pass_context
def tags(ctx: Context) -> None:
    """Show tag usage across projects."""
    loaded = list(ctx.coordinator().store)
    counts = tag_counts(loaded)
    if not counts:
        console.print("[yellow]No tags in use[/yellow]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Tag", style="blue")
    table.add_column("Projects", justify="right")
    for name, count in counts:
        table.add_row(name, str(count))
    console.print(table)
