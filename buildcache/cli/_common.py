"""Helpers shared by the CLI commands: settings, logging, error reporting."""

from __future__ import annotations

import logging
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from buildcache.config import CacheSettings, load_settings
from buildcache.core.errors import BuildCacheError, ConfigurationError

console = Console()


def configure_logging(level: str) -> None:
    """Route log records through Rich on stderr at *level*."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def settings_or_exit(verbose: bool = False, **overrides: Any) -> CacheSettings:
    """Load settings with CLI overrides (``None`` values are ignored)."""
    try:
        settings = load_settings(**{k: v for k, v in overrides.items() if v is not None})
    except ConfigurationError as exc:
        configure_logging("INFO")
        fail(exc)
    configure_logging("DEBUG" if verbose else settings.log_level)
    return settings


def fail(exc: BuildCacheError, code: int = 1) -> NoReturn:
    """Print a labelled diagnostic for *exc* and exit with *code*."""
    logging.getLogger("buildcache").debug("Fatal: %r", exc)
    console.print(f"[bold red]{exc.label.capitalize()}:[/bold red] {escape(str(exc))}")
    raise typer.Exit(code=code)
