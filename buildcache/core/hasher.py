"""Checksum helpers — stream digests and ``sha256sum``-compatible files.

A checksum file holds one line per subject, ``"<hex-digest>  <name>"``, so
it can be checked with ``sha256sum -c``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import IO

from buildcache.core.capabilities import Digester, Sha256Digester
from buildcache.models.manifest import ChecksumRecord

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

_DEFAULT_DIGESTER = Sha256Digester()


def digest_stream(stream: IO[bytes], digester: Digester | None = None) -> str:
    """Return the hex digest of everything remaining in *stream*."""
    state = (digester or _DEFAULT_DIGESTER).new()
    while chunk := stream.read(CHUNK_SIZE):
        state.update(chunk)
    return state.hexdigest()


def digest_file(path: Path, digester: Digester | None = None) -> str:
    """Return the hex digest of the file at *path*."""
    with open(path, "rb") as fh:
        return digest_stream(fh, digester)


def digests_match(expected: str, actual: str) -> bool:
    """Compare two hex digests, ignoring case and surrounding whitespace."""
    return expected.strip().lower() == actual.strip().lower()


# ---------------------------------------------------------------------------
# Checksum files
# ---------------------------------------------------------------------------


def write_checksum_file(path: Path, records: Iterable[ChecksumRecord]) -> Path:
    """Write *records* to *path* in ``sha256sum`` format."""
    lines = [record.to_line() for record in records]
    path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
    logger.debug("Wrote %d checksum record(s) to %s", len(lines), path)
    return path


def read_checksum_file(path: Path) -> list[ChecksumRecord]:
    """Parse a ``sha256sum``-format file; blank lines are skipped."""
    records: list[ChecksumRecord] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        if line.strip():
            records.append(ChecksumRecord.from_line(line))
    return records

