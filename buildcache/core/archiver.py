"""Archive Builder — snapshot the build's work directories into one archive.

Directory patterns may contain wildcards (``script/myth*/work``) and match
at any depth below the project root, the way ``find -path "*/<pattern>"``
does: a ``*`` also matches across ``/``, so ``script/myth*/work`` covers
``script/mythtv/plugins/work`` too.  Symlinked directories are not
followed.

Exclusion patterns use glob syntax and apply to paths relative to each
matched directory:

- ``*.log``     matches any entry whose base name matches
- ``stamps/``   trailing slash: directories only (and everything below)
- ``a/b/*.o``   a pattern containing ``/`` matches the whole relative path

Finding nothing to archive is not an error: ``build()`` returns ``None``.
"""

from __future__ import annotations

import fnmatch
import json
import logging
import os
import tarfile
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from pathlib import Path

from buildcache.core.build_info import collect_build_metadata, git_short_commit
from buildcache.core.capabilities import (
    Archiver,
    Compressor,
    GzipCompressor,
    TarArchiver,
)
from buildcache.core.errors import ArchiveError
from buildcache.models.metadata import BuildMetadata
from buildcache.models.results import ArchiveResult

logger = logging.getLogger(__name__)

METADATA_FILE = "metadata.json"
EXCLUDE_FILE = "exclude.txt"


class ExclusionRules:
    """Compiled exclusion patterns; callable as an ``ExcludeFn``."""

    def __init__(self, patterns: Iterable[str]) -> None:
        self.patterns: list[str] = []
        self._rules: list[tuple[str, bool, bool]] = []  # (glob, dir_only, anchored)
        for raw in patterns:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            self.patterns.append(line)
            dir_only = line.endswith("/")
            glob = line.rstrip("/")
            if glob:
                self._rules.append((glob, dir_only, "/" in glob))

    def __call__(self, relative: str, is_dir: bool) -> bool:
        relative = relative.strip("/")
        name = relative.rsplit("/", 1)[-1]
        for glob, dir_only, anchored in self._rules:
            if dir_only and not is_dir:
                continue
            subject = relative if anchored else name
            if fnmatch.fnmatchcase(subject, glob):
                return True
        return False

    def write(self, path: Path) -> Path:
        """Record the resolved exclusion list for traceability."""
        lines = ["# Exclusion patterns applied to the build cache archive"]
        lines.extend(self.patterns)
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path


def find_build_directories(root: Path, patterns: Sequence[str]) -> list[str]:
    """Resolve *patterns* to directories below *root*.

    Returns sorted POSIX paths relative to *root*, de-duplicated, with
    directories nested inside another match dropped.
    """
    globs = [f"*/{p}" for p in (raw.strip().strip("/") for raw in patterns) if p]
    found: set[str] = set()
    if not globs:
        return []
    for dirpath, dirnames, _filenames in os.walk(root):
        base = Path(dirpath).relative_to(root).as_posix()
        descend: list[str] = []
        for name in sorted(dirnames):
            if os.path.islink(os.path.join(dirpath, name)):
                continue
            relative = name if base == "." else f"{base}/{name}"
            if any(fnmatch.fnmatchcase(f"/{relative}", glob) for glob in globs):
                logger.info("  Found: %s", relative)
                found.add(relative)
            else:
                descend.append(name)
        # Anything below a match is already inside that match's archive.
        dirnames[:] = descend

    collapsed: list[str] = []
    for relative in sorted(found):
        if any(relative.startswith(parent + "/") for parent in collapsed):
            continue
        collapsed.append(relative)
    return collapsed


class ArchiveBuilder:
    """Builds the compressed cache archive.

    Parameters
    ----------
    project_root:
        Root that archive member paths are relative to.
    output_dir:
        Directory that receives the archive, metadata and exclusion list.
    compressor / archiver:
        Byte-level backends; gzip and tar by default.
    clock:
        Source of the local timestamp used in the archive name.
    """

    def __init__(
        self,
        project_root: Path,
        output_dir: Path,
        *,
        prefix: str = "minimyth2-build-cache",
        compression_level: int = 6,
        architecture: str = "aarch64",
        compressor: Compressor | None = None,
        archiver: Archiver | None = None,
        clock: Callable[[], datetime] = datetime.now,
        revision: Callable[[Path], str] = git_short_commit,
    ) -> None:
        self.project_root = Path(project_root)
        self.output_dir = Path(output_dir)
        self.prefix = prefix
        self.compression_level = compression_level
        self.architecture = architecture
        self._compressor = compressor or GzipCompressor()
        self._archiver = archiver or TarArchiver()
        self._clock = clock
        self._revision = revision

    def archive_name(self) -> str:
        """``<prefix>-<YYYYmmdd-HHMMSS>-<short-rev>.tar.gz``."""
        timestamp = self._clock().strftime("%Y%m%d-%H%M%S")
        revision = self._revision(self.project_root)
        return (
            f"{self.prefix}-{timestamp}-{revision}"
            f"{self._archiver.suffix}{self._compressor.suffix}"
        )

    def write_metadata(self, metadata: BuildMetadata) -> Path:
        path = self.output_dir / METADATA_FILE
        path.write_text(
            json.dumps(metadata.model_dump(mode="json"), indent=2) + "\n",
            encoding="utf-8",
        )
        logger.info("Build metadata created")
        return path

    def build(
        self,
        directory_patterns: Sequence[str],
        exclude_patterns: Sequence[str],
    ) -> ArchiveResult | None:
        """Archive every matched directory, or return ``None`` if none match."""
        metadata = collect_build_metadata(self.project_root, self.architecture)
        rules = ExclusionRules(exclude_patterns)
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            metadata_path = self.write_metadata(metadata)
            exclude_path = rules.write(self.output_dir / EXCLUDE_FILE)
        except OSError as exc:
            raise ArchiveError(
                f"Cannot write to cache directory {self.output_dir}: {exc}"
            ) from exc
        logger.info("Exclusion list created (%d patterns)", len(rules.patterns))

        logger.info("Scanning for build directories...")
        directories = find_build_directories(self.project_root, directory_patterns)
        if not directories:
            logger.warning("No build directories found to archive")
            return None
        logger.info("Found %d directories to archive", len(directories))

        archive_path = self.output_dir / self.archive_name()
        logger.info("Creating archive: %s", archive_path.name)
        try:
            with self._compressor.open_write(archive_path, self.compression_level) as stream:
                entry_count = self._archiver.create(
                    stream, self.project_root, directories, rules
                )
        except (OSError, tarfile.TarError, EOFError) as exc:
            raise ArchiveError(f"Failed to create archive {archive_path.name}: {exc}") from exc

        size = archive_path.stat().st_size
        logger.info(
            "Archive created: %s (%d entries, %d bytes)", archive_path.name, entry_count, size
        )
        return ArchiveResult(
            archive_path=archive_path,
            directories=directories,
            entry_count=entry_count,
            size_bytes=size,
            metadata=metadata,
            metadata_path=metadata_path,
            exclude_path=exclude_path,
        )
