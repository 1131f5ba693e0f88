"""``buildcache status`` — inspect the local build cache.

Reports which of the existing-cache directories are populated and
what the cache directory currently holds.  Makes no network calls.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from buildcache.cli._common import fail, settings_or_exit
from buildcache.core.errors import BuildCacheError

console = Console()


def status_cmd(
    project_root: Optional[Path] = typer.Option(
        None,
        "--project-root",
        "-p",
        help="Root of the build tree (default: $PROJECT_ROOT or the current directory).",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Show the local cache state."""
    settings = settings_or_exit(verbose, project_root=project_root)
    try:
        root = settings.require_project_root()
    except BuildCacheError as exc:
        fail(exc)

    dirs = Table(title="Build directories", show_lines=False)
    dirs.add_column("Directory", style="cyan")
    dirs.add_column("State")
    for relative in settings.existing_cache_dirs:
        path = root / relative
        if path.is_dir() and any(path.iterdir()):
            dirs.add_row(relative, "[green]populated[/green]")
        elif path.is_dir():
            dirs.add_row(relative, "[yellow]empty[/yellow]")
        else:
            dirs.add_row(relative, "[dim]missing[/dim]")
    console.print(dirs)

    cache_dir = settings.cache_dir
    files = sorted(p for p in cache_dir.iterdir() if p.is_file()) if cache_dir.is_dir() else []
    if not files:
        console.print(f"[dim]No archive output in {cache_dir}[/dim]")
        return

    outputs = Table(title=f"Cache directory: {cache_dir}", show_lines=False)
    outputs.add_column("File", style="cyan")
    for path in files:
        outputs.add_row(path.name)
    console.print(outputs)
