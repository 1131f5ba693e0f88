"""Split manifest and checksum record models.

The manifest is the authoritative description of a split artifact: its
``parts`` list fixes the reassembly order, which must never be re-derived
from file-name sorting.
"""

from __future__ import annotations

import json
import math
import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from buildcache.core.errors import ManifestParseError

_SIZE_RE = re.compile(r"^\s*(\d+)\s*([KMGTP]?)(?:i?B)?\s*$", re.IGNORECASE)
_SIZE_MULTIPLIERS = {"": 1, "K": 1024, "M": 1024**2, "G": 1024**3, "T": 1024**4, "P": 1024**5}
_HEX_RE = re.compile(r"^[0-9a-f]+$")


def parse_size(value: str | int) -> int:
    """Convert a size like ``1900M`` or ``2G`` (IEC, as ``numfmt``) to bytes.

    Plain integers and digit strings are taken as a byte count.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid size: {value!r}")
    if isinstance(value, int):
        return value
    match = _SIZE_RE.match(value)
    if not match:
        raise ValueError(f"Invalid size: {value!r}")
    number, unit = match.groups()
    return int(number) * _SIZE_MULTIPLIERS[unit.upper()]


def is_bare_name(name: str) -> bool:
    """True if *name* is a plain file name with no directory component."""
    return bool(name) and name not in (".", "..") and "/" not in name and "\\" not in name


class ChecksumRecord(BaseModel):
    """Integrity attestation for one file: ``(digest, file name)``."""

    model_config = ConfigDict(frozen=True)

    digest: str
    file_name: str

    def to_line(self) -> str:
        """Render as a ``sha256sum`` line (two spaces = text mode)."""
        return f"{self.digest}  {self.file_name}"

    @classmethod
    def from_line(cls, line: str) -> ChecksumRecord:
        """Parse ``"<hex>  <name>"`` (or binary-mode ``"<hex> *<name>"``)."""
        parts = line.strip().split(None, 1)
        if len(parts) != 2:
            raise ValueError(f"Malformed checksum line: {line!r}")
        digest, name = parts
        return cls(digest=digest.lower(), file_name=name.lstrip("*"))


class SplitManifest(BaseModel):
    """Describes how a split artifact's parts reassemble into the original.

    Invariants checked on construction:
    - ``len(parts) == part_count``
    - ``part_count == ceil(original_size / part_size_bytes)``
    - ``checksum`` is a hex digest of the *original* byte stream
    - every part name is a bare file name
    """

    model_config = ConfigDict(frozen=True)

    original_file: str
    original_size: int
    part_size: str | int  # "1900M" as configured, or a byte count
    part_count: int
    checksum: str
    parts: list[str]

    @field_validator("checksum")
    @classmethod
    def _checksum_is_hex(cls, value: str) -> str:
        value = value.strip().lower()
        if not _HEX_RE.match(value):
            raise ValueError(f"checksum is not a hex digest: {value!r}")
        return value

    @field_validator("original_file")
    @classmethod
    def _original_is_bare(cls, value: str) -> str:
        if not is_bare_name(value):
            raise ValueError(f"original_file must be a bare file name: {value!r}")
        return value

    @model_validator(mode="after")
    def _check_layout(self) -> SplitManifest:
        if self.original_size < 0:
            raise ValueError("original_size must not be negative")
        size = self.part_size_bytes
        if size <= 0:
            raise ValueError(f"part_size must be positive, got {self.part_size!r}")
        if len(self.parts) != self.part_count:
            raise ValueError(
                f"part_count is {self.part_count} but {len(self.parts)} parts are listed"
            )
        expected = math.ceil(self.original_size / size)
        if self.part_count != expected:
            raise ValueError(
                f"part_count {self.part_count} does not match "
                f"ceil({self.original_size} / {size}) = {expected}"
            )
        for name in self.parts:
            if not is_bare_name(name):
                raise ValueError(f"part name must be a bare file name: {name!r}")
        if len(set(self.parts)) != len(self.parts):
            raise ValueError("part names must be unique")
        return self

    @property
    def part_size_bytes(self) -> int:
        """The part size limit as a byte count."""
        return parse_size(self.part_size)

    # ------------------------------------------------------------------
    # JSON I/O
    # ------------------------------------------------------------------

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json"), indent=2) + "\n"

    @classmethod
    def from_json(cls, text: str) -> SplitManifest:
        """Parse manifest JSON, raising ``ManifestParseError`` on any defect."""
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ManifestParseError(f"Manifest is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ManifestParseError("Manifest must be a JSON object")
        try:
            return cls.model_validate(data)
        except (ValidationError, ValueError) as exc:
            raise ManifestParseError(f"Manifest is invalid: {exc}") from exc

    @classmethod
    def load(cls, path: Path) -> SplitManifest:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ManifestParseError(f"Cannot read manifest {path}: {exc}") from exc
        return cls.from_json(text)


class SplitResult(BaseModel):
    """Outcome of the Part Splitter.

    Exactly one of ``manifest`` (split) or ``checksum`` (whole artifact)
    describes the deliverable; ``files`` lists everything written.
    """

    model_config = ConfigDict(frozen=True)

    artifact_name: str
    original_size: int
    checksum: ChecksumRecord
    manifest: SplitManifest | None = None
    files: list[Path] = []

    @property
    def was_split(self) -> bool:
        return self.manifest is not None
