"""Byte-level capability backends used by the archive and restore pipelines.

Defines the ``Digester``, ``Compressor`` and ``Archiver`` Protocols that the
pipeline components depend on, together with the default implementations
(SHA-256, gzip, tar).  Components accept any object satisfying a protocol,
so tests can substitute in-memory fakes and deployments can swap in a
different hash or compression backend without touching pipeline logic.
"""

from __future__ import annotations

import gzip
import hashlib
import logging
import os
import tarfile
from collections.abc import Callable, Sequence
from pathlib import Path, PurePosixPath
from typing import IO, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# (path relative to the matched directory, is_directory) -> excluded?
ExcludeFn = Callable[[str, bool], bool]


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class HashState(Protocol):
    """Incremental hash object (the ``hashlib`` interface subset we use)."""

    def update(self, data: bytes, /) -> None: ...

    def hexdigest(self) -> str: ...


@runtime_checkable
class Digester(Protocol):
    """Protocol for content digest backends.

    ``name`` is recorded in diagnostics; ``new()`` starts a fresh
    incremental hash.
    """

    name: str

    def new(self) -> HashState:
        """Return a fresh incremental hash state."""
        ...


@runtime_checkable
class Compressor(Protocol):
    """Protocol for stream compression backends."""

    suffix: str

    def open_write(self, path: Path, level: int) -> IO[bytes]:
        """Open *path* for writing compressed bytes at *level*."""
        ...

    def open_read(self, path: Path) -> IO[bytes]:
        """Open *path* for reading decompressed bytes."""
        ...


@runtime_checkable
class Archiver(Protocol):
    """Protocol for directory-tree archive backends.

    ``create`` writes every directory in *directories* (given relative to
    *root*) into *fileobj*, skipping entries for which *exclude* returns
    ``True``.  ``extract`` unpacks *fileobj* below *target*.
    """

    suffix: str

    def create(
        self,
        fileobj: IO[bytes],
        root: Path,
        directories: Sequence[str],
        exclude: ExcludeFn,
    ) -> int:
        """Archive *directories* and return the number of entries written."""
        ...

    def extract(self, fileobj: IO[bytes], target: Path) -> int:
        """Extract into *target* and return the number of entries unpacked."""
        ...


# ---------------------------------------------------------------------------
# Default implementations
# ---------------------------------------------------------------------------


class Sha256Digester:
    """SHA-256 via ``hashlib`` — the digest ``sha256sum`` also produces."""

    name = "sha256"

    def new(self) -> HashState:
        return hashlib.sha256()


class GzipCompressor:
    """gzip compression via the standard ``gzip`` module."""

    suffix = ".gz"

    def open_write(self, path: Path, level: int) -> IO[bytes]:
        return gzip.open(path, "wb", compresslevel=level)

    def open_read(self, path: Path) -> IO[bytes]:
        return gzip.open(path, "rb")


def _within(path: str, root: str) -> bool:
    return os.path.commonpath([path, root]) == root


def contained_filter(member: tarfile.TarInfo, dest_path: str) -> tarfile.TarInfo:
    """Extraction filter that keeps every write inside *dest_path*.

    Member names must be relative and free of ``..``, and may not resolve
    through an already extracted symlink to a place outside the target.
    Hard links must point at another member.  Symlink targets and
    permission bits are kept as archived, so the restored tree matches the
    one that was archived.
    """
    name = member.name.rstrip("/")
    if name.startswith("/") or os.path.isabs(name):
        raise tarfile.AbsolutePathError(member)
    root = os.path.realpath(dest_path)
    target = os.path.join(root, name)
    if ".." in PurePosixPath(name).parts:
        raise tarfile.OutsideDestinationError(member, target)

    # A symlink member replaces whatever is at its own path, so only its
    # parent has to resolve inside the target.
    if member.issym():
        resolved = os.path.join(
            os.path.realpath(os.path.dirname(target)), os.path.basename(target)
        )
    else:
        resolved = os.path.realpath(target)
    if not _within(resolved, root):
        raise tarfile.OutsideDestinationError(member, resolved)

    if member.islnk():
        linked = os.path.realpath(os.path.join(root, member.linkname))
        if os.path.isabs(member.linkname) or not _within(linked, root):
            raise tarfile.LinkOutsideDestinationError(member, linked)
    return member


class TarArchiver:
    """Streaming tar archiver.

    Members are stored with paths relative to the archive root.  Extraction
    goes through ``contained_filter``: links and modes come back as they
    were archived, but no entry can be written outside the target.
    """

    suffix = ".tar"

    def create(
        self,
        fileobj: IO[bytes],
        root: Path,
        directories: Sequence[str],
        exclude: ExcludeFn,
    ) -> int:
        count = 0

        with tarfile.open(fileobj=fileobj, mode="w|", format=tarfile.PAX_FORMAT) as tar:
            for directory in directories:
                prefix = directory.rstrip("/") + "/"

                def _filter(
                    info: tarfile.TarInfo, _prefix: str = prefix
                ) -> tarfile.TarInfo | None:
                    nonlocal count
                    relative = info.name[len(_prefix):] if info.name.startswith(_prefix) else ""
                    if relative and exclude(relative, info.isdir()):
                        logger.debug("Excluded: %s", info.name)
                        return None
                    count += 1
                    return info

                tar.add(root / directory, arcname=directory.rstrip("/"), filter=_filter)

        return count

    def extract(self, fileobj: IO[bytes], target: Path) -> int:
        with tarfile.open(fileobj=fileobj, mode="r|") as tar:
            tar.extractall(path=target, filter=contained_filter)
            return len(tar.getmembers())
