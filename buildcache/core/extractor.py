"""Extractor — unpack a verified archive into the build tree.

Relative paths are preserved and existing files are overwritten.  There
is no rollback: on failure the target is left as far as extraction got.
"""

from __future__ import annotations

import logging
import tarfile
import zlib
from pathlib import Path

from buildcache.core.capabilities import Archiver, Compressor, GzipCompressor, TarArchiver
from buildcache.core.errors import ExtractionError

logger = logging.getLogger(__name__)


class Extractor:
    """Unpacks archives with the configured compression and archive backends."""

    def __init__(
        self,
        compressor: Compressor | None = None,
        archiver: Archiver | None = None,
    ) -> None:
        self._compressor = compressor or GzipCompressor()
        self._archiver = archiver or TarArchiver()

    def extract(self, archive: Path, target_root: Path) -> int:
        """Unpack *archive* below *target_root*; returns the entry count."""
        archive = Path(archive)
        target_root = Path(target_root)
        logger.info("Extracting %s to %s...", archive.name, target_root)
        try:
            target_root.mkdir(parents=True, exist_ok=True)
            with self._compressor.open_read(archive) as stream:
                count = self._archiver.extract(stream, target_root)
        except (OSError, EOFError, tarfile.TarError, zlib.error) as exc:
            raise ExtractionError(f"Failed to extract {archive.name}: {exc}") from exc
        logger.info("Archive extracted successfully (%d entries)", count)
        return count
