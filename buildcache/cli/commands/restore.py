"""``buildcache restore`` — restore the build cache from the latest release.

Locates the newest release carrying the cache marker, downloads its
assets into a private staging area, reassembles and verifies the
archive, then unpacks it over the build tree.

Exit codes: 0 on success or when the user declines to overwrite an
existing cache, 3 when no cache release exists, 1 on any other failure.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from buildcache.cli._common import fail, settings_or_exit
from buildcache.core.errors import BuildCacheError, NotFoundError
from buildcache.core.pipeline import RestorePipeline, always_overwrite
from buildcache.models.states import StagingPolicy
from buildcache.remote.client import ReleaseIndexClient

console = Console()

EXIT_NOT_FOUND = 3


def _confirm_overwrite(existing: list[Path]) -> bool:
    for path in existing:
        console.print(f"[yellow]Existing build cache:[/yellow] {path}")
    return typer.confirm("Existing cache found. Overwrite?", default=False)


def restore_cmd(
    project_root: Optional[Path] = typer.Option(
        None,
        "--project-root",
        "-p",
        help="Root of the build tree (default: $PROJECT_ROOT or the current directory).",
    ),
    repository: Optional[str] = typer.Option(
        None,
        "--repository",
        "-r",
        help="owner/name of the repository holding the cache releases.",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Overwrite an existing local cache without asking.",
    ),
    staging_policy: Optional[StagingPolicy] = typer.Option(
        None,
        "--staging-policy",
        case_sensitive=False,
        help="When to remove the download staging area.",
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        "-w",
        min=1,
        help="Number of concurrent asset downloads.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Download, verify and unpack the latest build cache release."""
    settings = settings_or_exit(
        verbose,
        project_root=project_root,
        repository=repository,
        staging_policy=staging_policy,
        download_workers=workers,
    )
    console.print(f"Looking for build cache in [bold]{settings.repository}[/bold]...")

    client = ReleaseIndexClient.from_settings(settings)
    pipeline = RestorePipeline.from_settings(
        settings,
        client=client,
        confirm=always_overwrite if yes else _confirm_overwrite,
    )
    try:
        result = pipeline.run()
    except NotFoundError as exc:
        fail(exc, code=EXIT_NOT_FOUND)
    except BuildCacheError as exc:
        staging = pipeline.staging_dir
        if staging is not None and staging.exists():
            console.print(f"[dim]Staging area kept for inspection:[/dim] {staging}")
        fail(exc)
    finally:
        client.close()

    if result.declined:
        console.print("[yellow]Restore cancelled; existing cache left untouched[/yellow]")
        raise typer.Exit(code=0)

    lines = [
        f"[bold]Release:[/bold]  {result.release.tag if result.release else '-'}",
        f"[bold]Archive:[/bold]  {result.archive_name}",
        f"[bold]Entries:[/bold]  {result.entry_count}",
        f"[bold]Target:[/bold]   {settings.project_root}",
    ]
    console.print()
    console.print(
        Panel(
            "\n".join(lines),
            title="[bold green]Build cache restored[/bold green]",
            border_style="green",
            padding=(1, 2),
        )
    )
    console.print()
