"""Asset Fetcher — download a release's cache assets into a staging area.

Each asset is one atomic unit: it is streamed into ``<name>.partial`` and
renamed to its final name only after the whole body (and, when the index
reports one, the expected byte count) has arrived.  The first failure
aborts the fetch with a ``DownloadError`` naming the asset.

Downloads are sequential unless ``max_workers > 1``; assets are
independent, and reassembly order comes from the manifest, never from
arrival order.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from pathlib import Path

import httpx

from buildcache.core.errors import DownloadError, NotFoundError
from buildcache.models.manifest import is_bare_name
from buildcache.models.release import CacheRelease, ReleaseAsset
from buildcache.remote.locator import ReleaseLocator

logger = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".partial"


class AssetFetcher:
    """Downloads marked assets of one release.

    Parameters
    ----------
    locator:
        Used to resolve a release tag and to reach the HTTP client.
    max_workers:
        Number of concurrent downloads; 1 means sequential.
    """

    def __init__(self, locator: ReleaseLocator, *, max_workers: int = 1) -> None:
        self._locator = locator
        self._max_workers = max(1, max_workers)

    def resolve_assets(self, release: CacheRelease) -> list[ReleaseAsset]:
        """The release's assets carrying the cache marker."""
        assets = release.marked_assets(self._locator.marker)
        if not assets:
            raise NotFoundError(
                f"Release {release.tag!r} has no {self._locator.marker!r} assets"
            )
        for asset in assets:
            if not is_bare_name(asset.name):
                raise DownloadError(
                    f"Refusing asset with unsafe name {asset.name!r}", asset=asset.name
                )
        return assets

    def fetch(self, release: CacheRelease | str, staging_dir: Path) -> list[Path]:
        """Download every marked asset of *release* into *staging_dir*.

        *release* may be a tag, which is resolved through the index first.
        Returns the downloaded paths in index order.
        """
        if isinstance(release, str):
            release = self._locator.get_release(release)

        assets = self.resolve_assets(release)
        staging_dir = Path(staging_dir)
        staging_dir.mkdir(parents=True, exist_ok=True)
        logger.info(
            "Downloading %d asset(s) from release %s into %s",
            len(assets),
            release.tag,
            staging_dir,
        )

        if self._max_workers == 1 or len(assets) == 1:
            return [self._download(asset, staging_dir) for asset in assets]

        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            futures = [pool.submit(self._download, asset, staging_dir) for asset in assets]
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for future in pending:
                future.cancel()
            for future in futures:
                if future in done and (error := future.exception()) is not None:
                    raise error
        return [f.result() for f in futures]

    def _download(self, asset: ReleaseAsset, staging_dir: Path) -> Path:
        target = staging_dir / asset.name
        partial = staging_dir / f"{asset.name}{PARTIAL_SUFFIX}"
        logger.info("Downloading: %s", asset.name)
        try:
            with open(partial, "wb") as sink:
                written = self._locator.client.download(asset.download_url, sink)
                sink.flush()
                os.fsync(sink.fileno())
            if asset.size is not None and written != asset.size:
                raise DownloadError(
                    f"Incomplete download of {asset.name}: "
                    f"got {written} of {asset.size} bytes",
                    asset=asset.name,
                )
            os.replace(partial, target)
        except httpx.HTTPError as exc:
            partial.unlink(missing_ok=True)
            raise DownloadError(
                f"Failed to download {asset.name}: {exc}", asset=asset.name
            ) from exc
        except OSError as exc:
            partial.unlink(missing_ok=True)
            raise DownloadError(
                f"Failed to write {asset.name} to staging: {exc}", asset=asset.name
            ) from exc
        except DownloadError:
            partial.unlink(missing_ok=True)
            raise
        logger.info("Downloaded: %s (%d bytes)", asset.name, written)
        return target
