"""``buildcache clean`` — delete the local build cache.

Removes the build directories the archive would snapshot, plus the cache
output and download staging directories.  Asks first unless ``--yes``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from buildcache.cli._common import fail, settings_or_exit
from buildcache.core.errors import BuildCacheError
from buildcache.core.pipeline import always_overwrite, clean_cache

console = Console()


def _confirm_clean(targets: list[Path]) -> bool:
    console.print("[yellow]This will delete the local build cache:[/yellow]")
    for path in targets:
        console.print(f"  {path}")
    return typer.confirm("Are you sure?", default=False)


def clean_cmd(
    project_root: Optional[Path] = typer.Option(
        None,
        "--project-root",
        "-p",
        help="Root of the build tree (default: $PROJECT_ROOT or the current directory).",
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Delete without asking."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Delete the local build directories and cache directories."""
    settings = settings_or_exit(verbose, project_root=project_root)
    try:
        result = clean_cache(settings, confirm=always_overwrite if yes else _confirm_clean)
    except BuildCacheError as exc:
        fail(exc)

    if result.declined:
        console.print("[yellow]Cancelled; nothing was deleted[/yellow]")
        raise typer.Exit(code=0)
    if not result.removed:
        console.print("[dim]No local build cache to clean[/dim]")
        return
    console.print(f"[green]Cache cleaned[/green] ({len(result.removed)} directories removed)")
