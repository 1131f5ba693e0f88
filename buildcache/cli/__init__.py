"""buildcache CLI — Typer-based command-line interface.

Provides the ``buildcache`` command with subcommands for creating the
cache archive, restoring it from the latest release, listing cache
releases and checking the local cache.

All output uses Rich for formatted terminal display.
"""
