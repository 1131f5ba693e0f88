"""Result records returned by the archive and restore pipelines."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict

from buildcache.models.manifest import SplitResult
from buildcache.models.metadata import BuildMetadata
from buildcache.models.release import CacheRelease
from buildcache.models.states import RestoreState, StateTransition


class ArchiveResult(BaseModel):
    """A freshly written compressed archive and its traceability files."""

    model_config = ConfigDict(frozen=True)

    archive_path: Path
    directories: list[str]  # relative to the project root, sorted
    entry_count: int
    size_bytes: int
    metadata: BuildMetadata
    metadata_path: Path
    exclude_path: Path


class ArchiveReport(BaseModel):
    """Everything the archive pipeline produced for the external uploader."""

    model_config = ConfigDict(frozen=True)

    archive: ArchiveResult
    split: SplitResult
    upload_list_path: Path
    upload_files: list[Path]


class RestoreResult(BaseModel):
    """Outcome of one restore invocation."""

    model_config = ConfigDict(frozen=True)

    final_state: RestoreState
    history: list[StateTransition] = []
    release: CacheRelease | None = None
    archive_name: str | None = None
    entry_count: int = 0
    staging_dir: Path | None = None
    staging_removed: bool = False
    declined: bool = False

    @property
    def succeeded(self) -> bool:
        return self.final_state == RestoreState.DONE


class CleanResult(BaseModel):
    """Outcome of clearing the local build cache."""

    model_config = ConfigDict(frozen=True)

    removed: list[Path] = []
    declined: bool = False
