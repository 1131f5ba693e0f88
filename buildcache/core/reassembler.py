"""Reassembler — turn the staged assets back into one verified archive.

With a manifest present, parts are concatenated strictly in the
manifest's ``parts`` order (never by sorting file names, which breaks
once there are ten or more parts) and the result must hash to the
manifest checksum.  Without one, the staging area must hold exactly one
complete archive, which is verified against a ``.sha256`` file when one
lists it.

A checksum mismatch is fatal and never retried: a reassembled file is
deleted, since the corruption cannot be traced to a single part.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from buildcache.core.capabilities import Digester, Sha256Digester
from buildcache.core.errors import IntegrityError, ManifestParseError, MissingArtifactError
from buildcache.core.hasher import CHUNK_SIZE, digest_file, digests_match, read_checksum_file
from buildcache.core.splitter import CHECKSUM_SUFFIX, MANIFEST_SUFFIX, PART_SEPARATOR
from buildcache.models.manifest import SplitManifest

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIXES: tuple[str, ...] = (".tar.gz", ".tgz")


class Assembly(BaseModel):
    """An archive ready for verification.

    ``expected`` is the recorded digest (``None`` when nothing records
    one); ``actual`` is filled in when the digest was computed while
    reassembling.
    """

    model_config = ConfigDict(frozen=True)

    path: Path
    reassembled: bool
    expected: str | None = None
    actual: str | None = None
    part_count: int = 0


class Reassembler:
    """Reconstructs and verifies the archive held in a staging directory.

    Parameters
    ----------
    digester:
        Digest backend; must match the one used when splitting.
    archive_suffixes:
        File name endings that identify a complete archive.
    """

    def __init__(
        self,
        digester: Digester | None = None,
        *,
        archive_suffixes: tuple[str, ...] = ARCHIVE_SUFFIXES,
    ) -> None:
        self._digester = digester or Sha256Digester()
        self._archive_suffixes = archive_suffixes

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    @staticmethod
    def find_manifest(staging_dir: Path) -> Path | None:
        """The staging area's manifest, or ``None`` if the archive is whole."""
        manifests = sorted(p for p in staging_dir.glob(f"*{MANIFEST_SUFFIX}") if p.is_file())
        if len(manifests) > 1:
            raise ManifestParseError(
                f"Expected one manifest, found {len(manifests)}: "
                + ", ".join(p.name for p in manifests)
            )
        return manifests[0] if manifests else None

    def find_complete_archive(self, staging_dir: Path) -> Path:
        """The single non-part archive in *staging_dir*."""
        candidates = sorted(
            p
            for p in staging_dir.iterdir()
            if p.is_file()
            and p.name.endswith(self._archive_suffixes)
            and PART_SEPARATOR not in p.name
        )
        if not candidates:
            raise MissingArtifactError(f"No archive found in {staging_dir}")
        if len(candidates) > 1:
            raise MissingArtifactError(
                "Expected exactly one archive, found "
                + ", ".join(p.name for p in candidates)
            )
        return candidates[0]

    @staticmethod
    def recorded_checksum(archive: Path) -> str | None:
        """The digest a ``.sha256`` file beside *archive* records for it."""
        for checksum_path in sorted(archive.parent.glob(f"*{CHECKSUM_SUFFIX}")):
            try:
                records = read_checksum_file(checksum_path)
            except (OSError, ValueError) as exc:
                raise IntegrityError(
                    f"Unreadable checksum file {checksum_path.name}: {exc}"
                ) from exc
            for record in records:
                if record.file_name == archive.name:
                    return record.digest
        return None

    # ------------------------------------------------------------------
    # Assemble
    # ------------------------------------------------------------------

    def assemble(self, staging_dir: Path) -> Assembly:
        """Locate the whole archive, or rebuild it from its parts."""
        staging_dir = Path(staging_dir)
        logger.info("Checking for split archives...")
        manifest_path = self.find_manifest(staging_dir)
        if manifest_path is None:
            logger.info("No split archive found, looking for complete archive...")
            archive = self.find_complete_archive(staging_dir)
            logger.info("Found complete archive: %s", archive.name)
            return Assembly(
                path=archive,
                reassembled=False,
                expected=self.recorded_checksum(archive),
            )

        logger.info("Found split archive manifest: %s", manifest_path.name)
        manifest = SplitManifest.load(manifest_path)
        return self.concatenate(staging_dir, manifest)

    def concatenate(self, staging_dir: Path, manifest: SplitManifest) -> Assembly:
        """Concatenate the manifest's parts, in manifest order, into one file."""
        part_paths = [staging_dir / name for name in manifest.parts]
        missing = [p.name for p in part_paths if not p.is_file()]
        if missing:
            raise MissingArtifactError(
                f"Missing {len(missing)} of {manifest.part_count} parts: "
                + ", ".join(missing)
            )

        try:
            total = sum(p.stat().st_size for p in part_paths)
        except OSError as exc:
            raise MissingArtifactError(f"Cannot read part: {exc}") from exc
        if total != manifest.original_size:
            raise IntegrityError(
                f"Parts total {total} bytes but the manifest records "
                f"{manifest.original_size}"
            )

        output = staging_dir / manifest.original_file
        logger.info(
            "Reassembling %d parts into %s...", manifest.part_count, manifest.original_file
        )
        state = self._digester.new()
        try:
            with open(output, "wb") as dst:
                for path in part_paths:
                    with open(path, "rb") as src:
                        while chunk := src.read(CHUNK_SIZE):
                            state.update(chunk)
                            dst.write(chunk)
                dst.flush()
                os.fsync(dst.fileno())
        except OSError as exc:
            if output.is_file():
                output.unlink()
            raise MissingArtifactError(
                f"Failed to reassemble {manifest.original_file}: {exc}"
            ) from exc

        logger.info("Archive reassembled: %s", manifest.original_file)
        return Assembly(
            path=output,
            reassembled=True,
            expected=manifest.checksum,
            actual=state.hexdigest(),
            part_count=manifest.part_count,
        )

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify(self, assembly: Assembly) -> Path:
        """Compare digests; on mismatch discard a reassembled file and raise."""
        if assembly.expected is None:
            logger.warning(
                "No checksum recorded for %s, skipping verification", assembly.path.name
            )
            return assembly.path

        try:
            actual = assembly.actual or digest_file(assembly.path, self._digester)
        except OSError as exc:
            raise MissingArtifactError(f"Cannot read {assembly.path.name}: {exc}") from exc
        if not digests_match(assembly.expected, actual):
            if assembly.reassembled:
                assembly.path.unlink(missing_ok=True)
            logger.error("Checksum mismatch! expected=%s actual=%s", assembly.expected, actual)
            raise IntegrityError(
                f"{assembly.path.name} does not match its recorded checksum: "
                f"expected {assembly.expected}, got {actual}",
                expected=assembly.expected,
                actual=actual,
            )

        logger.info("Checksum verification passed for %s", assembly.path.name)
        return assembly.path

    def reassemble(self, staging_dir: Path) -> Path:
        """Assemble and verify; return the path of the verified archive."""
        return self.verify(self.assemble(staging_dir))
