"""buildcache data models — all Pydantic v2, all frozen (immutable)."""

from buildcache.models.manifest import ChecksumRecord, SplitManifest, SplitResult, parse_size
from buildcache.models.metadata import BuildMetadata
from buildcache.models.release import CacheRelease, ReleaseAsset
from buildcache.models.results import ArchiveReport, ArchiveResult, CleanResult, RestoreResult
from buildcache.models.states import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    RestoreState,
    StagingPolicy,
    StateTransition,
)

__all__ = [
    # manifest
    "ChecksumRecord",
    "SplitManifest",
    "SplitResult",
    "parse_size",
    # metadata
    "BuildMetadata",
    # release
    "CacheRelease",
    "ReleaseAsset",
    # results
    "ArchiveResult",
    "ArchiveReport",
    "RestoreResult",
    "CleanResult",
    # states
    "RestoreState",
    "StagingPolicy",
    "StateTransition",
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
]
