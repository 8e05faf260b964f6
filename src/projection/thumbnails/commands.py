"""
Thumbnail CLI commands.

Thumbnails live in the site's screenshots directory, one per project, named
after the project id. ``stage``/``commit``/``cancel`` expose the staged upload
protocol for scripting an edit session by hand.
"""

from __future__ import annotations

import mimetypes
from pathlib import Path

import click
from rich.table import Table

from projection.context import Context, console, fail, pass_context
from projection.core.errors import ProjectionError
from projection.thumbnails.manager import ImageUpload


def read_upload(path: Path, mime_type: str | None = None) -> ImageUpload:
    """Read an image file into an ImageUpload.

    The MIME type is guessed from the file name unless given explicitly.
    """
    if mime_type is None:
        mime_type, _ = mimetypes.guess_type(path.name)
    data = path.read_bytes()
    return ImageUpload(data=data, mime_type=mime_type or "application/octet-stream", size=len(data))


_image_argument = click.argument(
    "image",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
_mime_option = click.option("--mime", "mime_type", help="MIME type (default: guessed from file name)")


@click.group()
def thumbnails():
    """Manage project thumbnails."""
    pass


@thumbnails.command(name="set")
@click.argument("project_id")
@_image_argument
@_mime_option
@pass_context
def set_cmd(ctx: Context, project_id: str, image: Path, mime_type: str | None):
    """Replace a project's thumbnail right away.

    The record's thumbnailLink is pointed at the new file when the project
    exists.
    """
    coordinator = ctx.coordinator()
    try:
        ref = coordinator.upload_thumbnail(project_id, read_upload(image, mime_type))
    except ProjectionError as e:
        fail(e)
        return
    console.print(f"[green]Saved[/green] {ref}")


@thumbnails.command(name="stage")
@click.argument("project_id")
@_image_argument
@_mime_option
@pass_context
def stage_cmd(ctx: Context, project_id: str, image: Path, mime_type: str | None):
    """Stage a thumbnail for a pending edit."""
    coordinator = ctx.coordinator(load=False)
    try:
        ref = coordinator.upload_thumbnail(project_id, read_upload(image, mime_type), edit=True)
    except ProjectionError as e:
        fail(e)
        return
    console.print(f"[green]Staged[/green] {ref}")
    console.print(f"[dim]Commit with 'projection thumbnails commit {project_id}'[/dim]")


@thumbnails.command(name="commit")
@click.argument("project_id")
@pass_context
def commit_cmd(ctx: Context, project_id: str):
    """Promote a staged thumbnail to the final one."""
    coordinator = ctx.coordinator(load=False)
    try:
        ref = coordinator.commit_thumbnail(project_id)
    except ProjectionError as e:
        fail(e)
        return
    if ref is None:
        console.print(f"[yellow]No staged thumbnail for {project_id}[/yellow]")
        return
    console.print(f"[green]Committed[/green] {ref}")


@thumbnails.command(name="cancel")
@click.argument("project_id")
@pass_context
def cancel_cmd(ctx: Context, project_id: str):
    """Discard a staged thumbnail."""
    coordinator = ctx.coordinator(load=False)
    try:
        coordinator.cancel_edit(project_id)
    except ProjectionError as e:
        fail(e)
        return
    console.print(f"[green]Discarded staged thumbnail for {project_id}[/green]")


@thumbnails.command(name="remove")
@click.argument("project_id")
@click.option("--temp", is_flag=True, help="Remove the staged thumbnail instead")
@pass_context
def remove_cmd(ctx: Context, project_id: str, temp: bool):
    """Delete a project's thumbnail and clear its thumbnailLink."""
    coordinator = ctx.coordinator()
    try:
        coordinator.remove_thumbnail(project_id, temp=temp)
    except ProjectionError as e:
        fail(e)
        return
    kind = "staged thumbnail" if temp else "thumbnail"
    console.print(f"[green]Removed {kind} for {project_id}[/green]")


@thumbnails.command(name="list")
@pass_context
def list_cmd(ctx: Context):
    """List thumbnails in the screenshots directory."""
    coordinator = ctx.coordinator()
    refs = coordinator.thumbnails.list_assets()
    if not refs:
        console.print(f"[dim]No thumbnails in {coordinator.thumbnails.screenshots_dir}[/dim]")
        return

    known = set(coordinator.store.ids())
    table = Table(title=f"Thumbnails ({len(refs)})", show_header=True, header_style="bold cyan")
    table.add_column("File", style="green")
    table.add_column("Project")
    table.add_column("State")
    table.add_column("Size", justify="right", style="blue")

    for ref in refs:
        if ref.is_temp:
            state = "[yellow]staged[/yellow]"
        elif ref.project_id in known:
            state = "final"
        else:
            state = "[red]orphan[/red]"
        size = coordinator.thumbnails.path_for(ref).stat().st_size
        table.add_row(ref.filename, ref.project_id, state, f"{size / 1024:.1f} KB")

    console.print(table)


@thumbnails.command(name="orphans")
@click.option("--clean", is_flag=True, help="Delete the orphaned files")
@click.option("--dry-run", "-n", is_flag=True, help="Preview what would be deleted")
@pass_context
def orphans_cmd(ctx: Context, clean: bool, dry_run: bool):
    """Find thumbnails that no project owns.

    Staged files count as orphans: they only live for one edit session.
    """
    coordinator = ctx.coordinator()
    if clean:
        removed = coordinator.clean_orphans(dry_run=dry_run)
    else:
        removed = coordinator.thumbnails.find_orphans(coordinator.store.ids())

    if not removed:
        console.print("[green]No orphaned thumbnails[/green]")
        return

    for path in removed:
        console.print(f"  [red]x[/red] {path.name}")

    if clean and not dry_run:
        console.print(f"\n[green]Deleted {len(removed)} orphaned thumbnail(s)[/green]")
    elif clean:
        console.print("\n[yellow]DRY RUN - no files deleted[/yellow]")
    else:
        console.print(f"\n[dim]{len(removed)} orphan(s). Use --clean to delete them.[/dim]")
