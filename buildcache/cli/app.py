"""Main Typer application — imports and registers all CLI commands.

Entry point: ``buildcache`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import typer

from buildcache.cli.commands.archive import archive_cmd
from buildcache.cli.commands.clean import clean_cmd
from buildcache.cli.commands.releases import releases_cmd
from buildcache.cli.commands.restore import restore_cmd
from buildcache.cli.commands.status import status_cmd

app = typer.Typer(
    name="buildcache",
    help="buildcache: archive and restore the build cache via release assets.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="archive", help="Archive the build cache for upload.")(archive_cmd)
app.command(name="restore", help="Restore the build cache from the latest release.")(restore_cmd)
app.command(name="releases", help="List releases that carry a build cache.")(releases_cmd)
app.command(name="status", help="Show the local build cache status.")(status_cmd)
app.command(name="clean", help="Delete the local build cache.")(clean_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
