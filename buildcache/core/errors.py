"""Build cache error taxonomy.

Every component reports success or one of these specific failures to its
caller.  ``NotFoundError`` is the only one that callers treat as
non-fatal to the surrounding build ("no cache available"); everything
else aborts the remaining pipeline stages.
"""

from __future__ import annotations


class BuildCacheError(RuntimeError):
    """Base class for all build cache failures."""

    label: str = "cache error"


class ConfigurationError(BuildCacheError):
    """Raised for invalid settings (part-size limit, project root, ...)."""

    label = "configuration error"


class NotFoundError(BuildCacheError):
    """Raised when no qualifying cache release (or asset) exists."""

    label = "no cache available"


class DownloadError(BuildCacheError):
    """Raised on transport, authentication or partial-asset failures.

    ``asset`` names the asset whose download failed, or is ``None`` when
    the failure happened while talking to the release index.
    """

    label = "download failed"

    def __init__(self, message: str, *, asset: str | None = None) -> None:
        super().__init__(message)
        self.asset = asset


class ManifestParseError(BuildCacheError):
    """Raised when a split manifest is malformed or missing fields."""

    label = "invalid manifest"


class IntegrityError(BuildCacheError):
    """Raised when a digest does not match the recorded checksum.

    Never retried: a mismatch cannot be localized to a single part.
    """

    label = "integrity check failed"

    def __init__(
        self, message: str, *, expected: str = "", actual: str = ""
    ) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class MissingArtifactError(BuildCacheError):
    """Raised when the staging area holds no usable artifact or part.

    Also covers a part or archive that cannot be read, and a reassembled
    archive that cannot be written.
    """

    label = "missing artifact"


class ExtractionError(BuildCacheError):
    """Raised when an archive cannot be unpacked into the target root."""

    label = "extraction failed"


class SplitError(BuildCacheError):
    """Raised for a non-positive part size or an unreadable source artifact.

    I/O failures while writing parts, the checksum file or the manifest
    are reported the same way.
    """

    label = "split failed"


class ArchiveError(BuildCacheError):
    """Raised when the compressed archive cannot be written."""

    label = "archive failed"


class CleanError(BuildCacheError):
    """Raised when a local cache directory cannot be removed."""

    label = "clean failed"
