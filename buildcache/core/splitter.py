"""Part Splitter — keep each uploaded asset under the host's size limit.

An artifact no larger than the limit is delivered whole with a checksum
file.  A larger artifact is cut into consecutive ``max_part_size`` chunks
(the last one holds the remainder) named ``<artifact>.part-NN``, and a
manifest records the original size, the ordered part list and the digest
of the *original* byte stream.  The original is deleted only after the
parts and the manifest are durably on disk.
"""

from __future__ import annotations

import logging
import math
import os
from pathlib import Path

from buildcache.core.capabilities import Digester, Sha256Digester
from buildcache.core.errors import SplitError
from buildcache.core.hasher import CHUNK_SIZE, write_checksum_file
from buildcache.models.manifest import ChecksumRecord, SplitManifest, SplitResult, parse_size

logger = logging.getLogger(__name__)

PART_SEPARATOR = ".part-"
MANIFEST_SUFFIX = ".manifest"
CHECKSUM_SUFFIX = ".sha256"


def part_name(artifact_name: str, index: int, part_count: int) -> str:
    """Name of part *index*, zero-padded to fit *part_count* (at least 2)."""
    width = max(2, len(str(part_count - 1)))
    return f"{artifact_name}{PART_SEPARATOR}{index:0{width}d}"


def _fsync_file(path: Path) -> None:
    with open(path, "rb") as fh:
        os.fsync(fh.fileno())


def _fsync_dir(path: Path) -> None:
    # Directory fsync is not available on every platform.
    try:
        fd = os.open(path, os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


class PartSplitter:
    """Splits oversized artifacts and emits checksum/manifest files.

    Parameters
    ----------
    digester:
        Digest backend; SHA-256 by default.
    delete_original:
        Remove the unsplit artifact once its parts are written.
    """

    def __init__(
        self,
        digester: Digester | None = None,
        *,
        delete_original: bool = True,
    ) -> None:
        self._digester = digester or Sha256Digester()
        self._delete_original = delete_original

    def split(
        self,
        artifact: Path,
        max_part_size: int,
        *,
        part_size_label: str | int | None = None,
    ) -> SplitResult:
        """Split *artifact* if it exceeds *max_part_size* bytes.

        ``part_size_label`` is what the manifest records as ``part_size``
        (e.g. ``"1900M"``); the byte count is used when omitted.
        """
        if (
            isinstance(max_part_size, bool)
            or not isinstance(max_part_size, int)
            or max_part_size <= 0
        ):
            raise SplitError(
                f"Maximum part size must be a positive integer, got {max_part_size!r}"
            )
        if part_size_label is not None:
            try:
                label_bytes = parse_size(part_size_label)
            except ValueError as exc:
                raise SplitError(str(exc)) from exc
            if label_bytes != max_part_size:
                raise SplitError(
                    f"Part size label {part_size_label!r} is {label_bytes} bytes, "
                    f"not {max_part_size}"
                )

        artifact = Path(artifact)
        try:
            total_size = artifact.stat().st_size
        except FileNotFoundError as exc:
            raise SplitError(f"Artifact not found: {artifact}") from exc
        except OSError as exc:
            raise SplitError(f"Cannot read artifact {artifact}: {exc}") from exc

        checksum_path = artifact.with_name(artifact.name + CHECKSUM_SUFFIX)

        try:
            if total_size <= max_part_size:
                return self._checksum_whole(artifact, total_size, checksum_path)
            return self._split_parts(
                artifact,
                total_size,
                max_part_size,
                checksum_path,
                part_size_label if part_size_label is not None else max_part_size,
            )
        except OSError as exc:
            raise SplitError(f"Failed to split {artifact.name}: {exc}") from exc

    # ------------------------------------------------------------------
    # Whole artifact
    # ------------------------------------------------------------------

    def _checksum_whole(
        self, artifact: Path, total_size: int, checksum_path: Path
    ) -> SplitResult:
        state = self._digester.new()
        try:
            with open(artifact, "rb") as fh:
                while chunk := fh.read(CHUNK_SIZE):
                    state.update(chunk)
        except FileNotFoundError as exc:
            raise SplitError(f"Artifact vanished while hashing: {artifact}") from exc

        record = ChecksumRecord(digest=state.hexdigest(), file_name=artifact.name)
        write_checksum_file(checksum_path, [record])
        logger.info(
            "Archive %s (%d bytes) is within the part limit, no split needed",
            artifact.name,
            total_size,
        )
        return SplitResult(
            artifact_name=artifact.name,
            original_size=total_size,
            checksum=record,
            files=[artifact, checksum_path],
        )

    # ------------------------------------------------------------------
    # Split
    # ------------------------------------------------------------------

    def _split_parts(
        self,
        artifact: Path,
        total_size: int,
        max_part_size: int,
        checksum_path: Path,
        part_size_label: str | int,
    ) -> SplitResult:
        part_count = math.ceil(total_size / max_part_size)
        logger.warning(
            "Archive size (%d bytes) exceeds the part limit (%d bytes); splitting into %d parts",
            total_size,
            max_part_size,
            part_count,
        )

        state = self._digester.new()
        part_paths: list[Path] = []
        written = 0
        try:
            with open(artifact, "rb") as src:
                for index in range(part_count):
                    path = artifact.with_name(part_name(artifact.name, index, part_count))
                    remaining = min(max_part_size, total_size - written)
                    with open(path, "wb") as dst:
                        while remaining > 0:
                            chunk = src.read(min(CHUNK_SIZE, remaining))
                            if not chunk:
                                raise SplitError(
                                    f"Artifact {artifact.name} shrank while splitting "
                                    f"({written} of {total_size} bytes read)"
                                )
                            state.update(chunk)
                            dst.write(chunk)
                            remaining -= len(chunk)
                            written += len(chunk)
                        dst.flush()
                        os.fsync(dst.fileno())
                    part_paths.append(path)
                    logger.debug("Wrote part %s", path.name)
                if src.read(1):
                    raise SplitError(f"Artifact {artifact.name} grew while splitting")
        except FileNotFoundError as exc:
            raise SplitError(f"Artifact vanished while splitting: {artifact}") from exc

        digest = state.hexdigest()
        record = ChecksumRecord(digest=digest, file_name=artifact.name)
        write_checksum_file(checksum_path, [record])
        _fsync_file(checksum_path)

        manifest = SplitManifest(
            original_file=artifact.name,
            original_size=total_size,
            part_size=part_size_label,
            part_count=part_count,
            checksum=digest,
            parts=[p.name for p in part_paths],
        )
        manifest_path = artifact.with_name(artifact.name + MANIFEST_SUFFIX)
        tmp_path = manifest_path.with_name(manifest_path.name + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as fh:
                fh.write(manifest.to_json())
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, manifest_path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
        _fsync_dir(artifact.parent)
        logger.info("Manifest created: %s", manifest_path.name)

        files = [*part_paths, checksum_path, manifest_path]
        if self._delete_original:
            artifact.unlink()
            logger.info("Removed original archive %s", artifact.name)
        else:
            files.insert(0, artifact)

        logger.info("Archive split into %d parts", part_count)
        return SplitResult(
            artifact_name=artifact.name,
            original_size=total_size,
            checksum=record,
            manifest=manifest,
            files=files,
        )
