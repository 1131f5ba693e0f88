"""Collects descriptive build metadata (revision, branch, host, user)."""

from __future__ import annotations

import getpass
import logging
import platform
import subprocess
from pathlib import Path

from buildcache.models.metadata import BuildMetadata

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


def _git(project_root: Path, *args: str) -> str | None:
    """Run ``git -C <root> <args>`` and return stripped stdout, or None."""
    try:
        result = subprocess.run(
            ["git", "-C", str(project_root), *args],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (subprocess.SubprocessError, OSError) as exc:
        logger.debug("git %s failed: %s", " ".join(args), exc)
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def git_commit(project_root: Path) -> str:
    return _git(project_root, "rev-parse", "HEAD") or UNKNOWN


def git_short_commit(project_root: Path) -> str:
    return _git(project_root, "rev-parse", "--short", "HEAD") or UNKNOWN


def git_branch(project_root: Path) -> str:
    return _git(project_root, "rev-parse", "--abbrev-ref", "HEAD") or UNKNOWN


def _build_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return UNKNOWN


def collect_build_metadata(project_root: Path, architecture: str) -> BuildMetadata:
    """Snapshot the current build environment."""
    return BuildMetadata(
        git_commit=git_commit(project_root),
        git_branch=git_branch(project_root),
        architecture=architecture,
        hostname=platform.node() or UNKNOWN,
        build_user=_build_user(),
    )
