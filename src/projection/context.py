"""Shared click context and error reporting for projection commands."""

from __future__ import annotations

import sys

import click
from rich.console import Console

from projection.core.errors import ProjectionError

console = Console()


class Context:
    """Shared context for all commands."""

    def __init__(self, verbose: bool = False, projects_file: str | None = None):
        self.verbose = verbose
        self.projects_file = projects_file
        self.console = console

    def paths(self):
        """Resolve site paths for this invocation."""
        from projection.core.config import get_paths

        return get_paths(projects_file=self.projects_file)

    def coordinator(self, load: bool = True):
        """Build a coordinator for the site, reading the projects file.

        Exits with status 1 when the site or projects file cannot be read.
        """
        from projection.projects.coordinator import ProjectCoordinator

        try:
            paths = self.paths()
        except FileNotFoundError as e:
            console.print(f"[red]{e}[/red]")
            sys.exit(1)

        coordinator = ProjectCoordinator.from_paths(paths)
        if load:
            try:
                coordinator.load()
            except FileNotFoundError:
                console.print(f"[red]Projects file not found: {paths.projects_file}[/red]")
                console.print("[dim]Run 'projection init' to create one.[/dim]")
                sys.exit(1)
            except ProjectionError as e:
                fail(e)
        return coordinator


pass_context = click.make_pass_decorator(Context, ensure=True)


def fail(error: ProjectionError) -> None:
    """Print a projection error and exit with status 1."""
    console.print(f"[red]{error.to_user_message()}[/red]")
    sys.exit(1)
