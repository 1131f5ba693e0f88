"""``buildcache releases`` — list the releases that carry a build cache."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from buildcache.cli._common import fail, settings_or_exit
from buildcache.core.errors import BuildCacheError
from buildcache.remote.client import ReleaseIndexClient
from buildcache.remote.locator import ReleaseLocator

console = Console()


def releases_cmd(
    repository: Optional[str] = typer.Option(
        None,
        "--repository",
        "-r",
        help="owner/name of the repository holding the cache releases.",
    ),
    limit: int = typer.Option(10, "--limit", "-n", min=1, help="Maximum releases to show."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Show the newest cache releases with their asset counts."""
    settings = settings_or_exit(verbose, repository=repository)

    client = ReleaseIndexClient.from_settings(settings)
    locator = ReleaseLocator(
        client,
        settings.repository,
        marker=settings.cache_marker,
        page_size=settings.release_page_size,
    )
    try:
        releases = locator.list_cache_releases(limit=limit)
    except BuildCacheError as exc:
        fail(exc)
    finally:
        client.close()

    if not releases:
        console.print(f"[yellow]No build cache releases found in {settings.repository}[/yellow]")
        return

    table = Table(title=f"Build cache releases: {settings.repository}", show_lines=False)
    table.add_column("Tag", style="cyan", no_wrap=True)
    table.add_column("Created", style="dim")
    table.add_column("Assets", justify="right")
    table.add_column("Description")

    for release in releases:
        created = release.created_at.strftime("%Y-%m-%d %H:%M") if release.created_at else "-"
        marked = len(release.marked_assets(settings.cache_marker))
        summary = release.body.strip().splitlines()[0] if release.body.strip() else release.name
        table.add_row(release.tag, created, str(marked), summary)

    console.print(table)
