"""Archive and restore pipelines — the coordinators for cache operations.

``ArchivePipeline`` runs Archive Builder -> Part Splitter -> upload list.
``RestorePipeline`` runs Release Locator -> Asset Fetcher -> Reassembler
-> Extractor under the restore state machine.  Both are strictly
sequential; any component failure aborts the remaining stages and is
re-raised to the caller.  ``clean_cache`` removes the local cache once
the caller confirms.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path

from buildcache.config import CacheSettings
from buildcache.core.archiver import ArchiveBuilder, find_build_directories
from buildcache.core.capabilities import Archiver, Compressor, Digester
from buildcache.core.errors import ArchiveError, CleanError, DownloadError
from buildcache.core.extractor import Extractor
from buildcache.core.reassembler import Reassembler
from buildcache.core.splitter import PartSplitter
from buildcache.core.state_machine import RestoreStateMachine
from buildcache.models.results import ArchiveReport, CleanResult, RestoreResult
from buildcache.models.states import RestoreState, StagingPolicy
from buildcache.remote.client import ReleaseIndexClient
from buildcache.remote.fetcher import AssetFetcher
from buildcache.remote.locator import ReleaseLocator

logger = logging.getLogger(__name__)

UPLOAD_LIST_FILE = "archive-files.txt"

# Receives the non-empty cache directories found locally; returns True to
# overwrite them.
OverwriteDecision = Callable[[list[Path]], bool]


def always_overwrite(existing: list[Path]) -> bool:
    return True


def never_overwrite(existing: list[Path]) -> bool:
    return False


def detect_existing_cache(project_root: Path, candidates: list[str]) -> list[Path]:
    """Candidate directories below *project_root* that exist and are non-empty."""
    found: list[Path] = []
    for relative in candidates:
        path = project_root / relative
        if path.is_dir() and any(path.iterdir()):
            logger.warning("Existing build cache found at: %s", relative)
            found.append(path)
    if not found:
        logger.info("No existing build cache found")
    return found


def write_upload_list(output_dir: Path, files: list[Path]) -> Path:
    """Write the files the external uploader should attach, one per line."""
    path = output_dir / UPLOAD_LIST_FILE
    try:
        path.write_text("".join(f"{f}\n" for f in files), encoding="utf-8")
    except OSError as exc:
        raise ArchiveError(f"Failed to write upload list {path}: {exc}") from exc
    logger.info("Found %d files to upload", len(files))
    return path


# ---------------------------------------------------------------------------
# Archive
# ---------------------------------------------------------------------------


class ArchivePipeline:
    """Builds, splits and checksums the cache archive.

    Parameters
    ----------
    settings:
        Immutable configuration.
    digester / compressor / archiver:
        Optional byte-level backends passed through to the components.
    """

    def __init__(
        self,
        settings: CacheSettings,
        *,
        digester: Digester | None = None,
        compressor: Compressor | None = None,
        archiver: Archiver | None = None,
    ) -> None:
        self.settings = settings
        self._digester = digester
        self._compressor = compressor
        self._archiver = archiver

    def run(self) -> ArchiveReport | None:
        """Return the report, or ``None`` when there was nothing to archive."""
        root = self.settings.require_project_root()
        output_dir = self.settings.cache_dir
        logger.info("Cache directory: %s", output_dir)

        builder = ArchiveBuilder(
            root,
            output_dir,
            prefix=self.settings.archive_prefix,
            compression_level=self.settings.compression_level,
            architecture=self.settings.architecture,
            compressor=self._compressor,
            archiver=self._archiver,
        )
        archive = builder.build(
            self.settings.directory_patterns, self.settings.exclude_patterns
        )
        if archive is None:
            return None

        splitter = PartSplitter(
            self._digester, delete_original=self.settings.delete_original_after_split
        )
        split = splitter.split(
            archive.archive_path,
            self.settings.max_part_size_bytes,
            part_size_label=self.settings.max_part_size,
        )

        upload_files = [*split.files, archive.metadata_path]
        upload_list = write_upload_list(output_dir, upload_files)
        logger.info("Archive process completed; files ready for upload")
        return ArchiveReport(
            archive=archive,
            split=split,
            upload_list_path=upload_list,
            upload_files=upload_files,
        )


# ---------------------------------------------------------------------------
# Restore
# ---------------------------------------------------------------------------


class RestorePipeline:
    """Locates, downloads, verifies and unpacks the latest cache.

    After ``run()`` (successful or not) ``machine`` holds the transition
    history and ``staging_dir`` the staging area that was used.

    Parameters
    ----------
    settings:
        Immutable configuration.
    locator / fetcher:
        Remote components, usually built by ``from_settings``.
    confirm:
        Decides whether an existing local cache may be overwritten.
    staging_policy:
        Overrides ``settings.staging_policy``.
    """

    def __init__(
        self,
        settings: CacheSettings,
        *,
        locator: ReleaseLocator,
        fetcher: AssetFetcher,
        reassembler: Reassembler | None = None,
        extractor: Extractor | None = None,
        confirm: OverwriteDecision = never_overwrite,
        staging_policy: StagingPolicy | None = None,
    ) -> None:
        self.settings = settings
        self.locator = locator
        self.fetcher = fetcher
        self.reassembler = reassembler or Reassembler()
        self.extractor = extractor or Extractor()
        self._confirm = confirm
        self.staging_policy = staging_policy or settings.staging_policy
        self.machine = RestoreStateMachine()
        self.staging_dir: Path | None = None

    @classmethod
    def from_settings(
        cls,
        settings: CacheSettings,
        *,
        client: ReleaseIndexClient | None = None,
        confirm: OverwriteDecision = never_overwrite,
    ) -> RestorePipeline:
        """Wire the default remote components from *settings*."""
        client = client or ReleaseIndexClient.from_settings(settings)
        locator = ReleaseLocator(
            client,
            settings.repository,
            marker=settings.cache_marker,
            page_size=settings.release_page_size,
        )
        fetcher = AssetFetcher(locator, max_workers=settings.download_workers)
        return cls(settings, locator=locator, fetcher=fetcher, confirm=confirm)

    def _allocate_staging(self) -> Path:
        # One directory per invocation; concurrent restores never share it.
        staging_root = self.settings.staging_root
        try:
            staging_root.mkdir(parents=True, exist_ok=True)
            return Path(tempfile.mkdtemp(prefix="restore-", dir=staging_root))
        except OSError as exc:
            raise DownloadError(
                f"Cannot create staging area in {staging_root}: {exc}"
            ) from exc

    def _cleanup(self, succeeded: bool) -> bool:
        if self.staging_dir is None:
            return False
        if not self.staging_policy.should_clean(succeeded):
            logger.info("Keeping staging area %s", self.staging_dir)
            return False
        logger.info("Cleaning up temporary files...")
        shutil.rmtree(self.staging_dir, ignore_errors=True)
        try:
            os.rmdir(self.settings.staging_root)
        except OSError:
            pass  # still holds other invocations' staging areas
        return not self.staging_dir.exists()

    def run(self) -> RestoreResult:
        """Execute the restore; raises the failing component's error."""
        machine = self.machine
        try:
            root = self.settings.require_project_root()

            existing = detect_existing_cache(root, self.settings.existing_cache_dirs)
            if existing and not self._confirm(existing):
                machine.transition(RestoreState.ABORTED, reason="overwrite declined")
                logger.info("Restore cancelled by user")
                return RestoreResult(
                    final_state=machine.state, history=machine.history, declined=True
                )

            machine.transition(RestoreState.LOCATING_RELEASE)
            release = self.locator.locate()

            machine.transition(RestoreState.DOWNLOADING)
            self.staging_dir = self._allocate_staging()
            self.fetcher.fetch(release, self.staging_dir)

            machine.transition(RestoreState.REASSEMBLING)
            assembly = self.reassembler.assemble(self.staging_dir)

            machine.transition(RestoreState.VERIFYING)
            archive = self.reassembler.verify(assembly)

            machine.transition(RestoreState.EXTRACTING)
            count = self.extractor.extract(archive, root)

            machine.transition(RestoreState.DONE)
        except Exception as exc:
            machine.abort(f"{type(exc).__name__}: {exc}")
            self._cleanup(succeeded=False)
            raise

        removed = self._cleanup(succeeded=True)
        logger.info("Build cache restored successfully from %s", release.tag)
        return RestoreResult(
            final_state=machine.state,
            history=machine.history,
            release=release,
            archive_name=archive.name,
            entry_count=count,
            staging_dir=self.staging_dir,
            staging_removed=removed,
        )


# ---------------------------------------------------------------------------
# Clean
# ---------------------------------------------------------------------------


def clean_cache(
    settings: CacheSettings, confirm: OverwriteDecision = never_overwrite
) -> CleanResult:
    """Remove the build directories plus the cache and staging directories.

    *confirm* receives every path about to be removed; nothing is touched
    unless it returns ``True``.
    """
    root = settings.require_project_root()
    targets = [root / d for d in find_build_directories(root, settings.directory_patterns)]
    targets += [p for p in (settings.cache_dir, settings.staging_root) if p.exists()]
    if not targets:
        logger.info("No local build cache to clean")
        return CleanResult()
    if not confirm(targets):
        logger.info("Clean cancelled by user")
        return CleanResult(declined=True)

    logger.info("Cleaning cache...")
    for path in targets:
        try:
            if path.is_symlink():
                path.unlink()
            else:
                shutil.rmtree(path)
        except OSError as exc:
            raise CleanError(f"Failed to remove {path}: {exc}") from exc
        logger.debug("Removed %s", path)
    logger.info("Cache cleaned (%d directories removed)", len(targets))
    return CleanResult(removed=targets)
