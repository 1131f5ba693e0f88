"""``buildcache archive`` — build, split and checksum the cache archive.

Writes the archive (or its parts), the checksum and manifest files,
``metadata.json``, ``exclude.txt`` and the ``archive-files.txt`` upload
list into the cache directory.  Uploading is left to the CI workflow.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from buildcache.cli._common import fail, settings_or_exit
from buildcache.core.errors import BuildCacheError
from buildcache.core.pipeline import ArchivePipeline

console = Console()


def archive_cmd(
    project_root: Optional[Path] = typer.Option(
        None,
        "--project-root",
        "-p",
        help="Root of the build tree (default: $PROJECT_ROOT or the current directory).",
    ),
    max_part_size: Optional[str] = typer.Option(
        None,
        "--max-part-size",
        "-s",
        help="Split the archive into parts no larger than this (e.g. 1900M).",
    ),
    compression_level: Optional[int] = typer.Option(
        None,
        "--level",
        min=1,
        max=9,
        help="gzip compression level.",
    ),
    keep_original: bool = typer.Option(
        False,
        "--keep-original",
        help="Keep the whole archive after splitting it into parts.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Archive the build directories for upload as release assets."""
    overrides: dict[str, object] = {
        "project_root": project_root,
        "max_part_size": max_part_size,
        "compression_level": compression_level,
    }
    if keep_original:
        overrides["delete_original_after_split"] = False
    settings = settings_or_exit(verbose, **overrides)

    try:
        report = ArchivePipeline(settings).run()
    except BuildCacheError as exc:
        fail(exc)

    if report is None:
        console.print("[yellow]No build directories found to archive[/yellow]")
        raise typer.Exit(code=0)

    split = report.split
    lines = [
        f"[bold]Archive:[/bold]      {split.artifact_name}",
        f"[bold]Size:[/bold]         {split.original_size} bytes",
        f"[bold]SHA-256:[/bold]      {split.checksum}",
        f"[bold]Directories:[/bold]  {len(report.archive.directories)}",
        f"[bold]Entries:[/bold]      {report.archive.entry_count}",
    ]
    if split.was_split:
        lines.append(f"[bold]Parts:[/bold]        {split.manifest.part_count}")
    lines.append(f"[bold]Upload list:[/bold]  {report.upload_list_path}")

    console.print()
    console.print(
        Panel(
            "\n".join(lines),
            title="[bold green]Build cache archived[/bold green]",
            border_style="green",
            padding=(1, 2),
        )
    )
    for path in report.upload_files:
        console.print(f"  [dim]{path.name}[/dim]")
    console.print()
