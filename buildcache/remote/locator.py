"""Release Locator — find the most recent release that carries a cache.

The index's natural ordering (most recent first) is an external contract
and is never re-sorted here.  "No qualifying release" is reported as
``NotFoundError`` so callers can tell it apart from transport or
authentication failures (``DownloadError``).
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from buildcache.core.errors import DownloadError, NotFoundError
from buildcache.models.release import CacheRelease
from buildcache.remote.client import ReleaseIndexClient

logger = logging.getLogger(__name__)


def _describe(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status in (401, 403):
            return f"authentication failed (HTTP {status})"
        return f"HTTP {status}"
    return f"{type(exc).__name__}: {exc}"


class ReleaseLocator:
    """Queries the release index of one repository.

    Parameters
    ----------
    client:
        The HTTP client to query through.
    repository:
        ``owner/name`` of the repository holding the cache releases.
    marker:
        Substring identifying cache releases and assets.
    page_size:
        How many releases to inspect (one page of the index).
    """

    def __init__(
        self,
        client: ReleaseIndexClient,
        repository: str,
        *,
        marker: str = "build-cache",
        page_size: int = 30,
    ) -> None:
        self.client = client
        self.repository = repository
        self.marker = marker
        self.page_size = page_size

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            return self.client.get_json(path, params=params)
        except httpx.HTTPError as exc:
            raise DownloadError(
                f"Release index query for {self.repository} failed: {_describe(exc)}"
            ) from exc
        except ValueError as exc:
            raise DownloadError(
                f"Release index for {self.repository} returned invalid JSON: {exc}"
            ) from exc

    def _parse(self, item: Any) -> CacheRelease:
        try:
            return CacheRelease.from_api(item)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise DownloadError(
                f"Unexpected release index response for {self.repository}: "
                f"malformed release entry ({type(exc).__name__}: {exc})"
            ) from exc

    def list_releases(self) -> list[CacheRelease]:
        """One page of releases, in the index's own order."""
        data = self._get(
            f"/repos/{self.repository}/releases", params={"per_page": self.page_size}
        )
        if not isinstance(data, list):
            raise DownloadError(
                f"Unexpected release index response for {self.repository}: "
                f"expected a list, got {type(data).__name__}"
            )
        return [self._parse(item) for item in data]

    def list_cache_releases(self, limit: int = 10) -> list[CacheRelease]:
        """Releases carrying the cache marker, most recent first."""
        return [r for r in self.list_releases() if r.has_marker(self.marker)][:limit]

    def locate(self) -> CacheRelease:
        """Return the most recent release carrying the cache marker."""
        logger.info("Searching for latest build cache release in %s...", self.repository)
        for release in self.list_releases():
            if release.has_marker(self.marker):
                logger.info("Found build cache in release: %s", release.tag)
                return release
        logger.warning("No build cache found in recent releases")
        raise NotFoundError(
            f"No release of {self.repository} carries a {self.marker!r} cache "
            f"(checked {self.page_size} most recent)"
        )

    def get_release(self, tag: str) -> CacheRelease:
        """Fetch one release by tag; ``NotFoundError`` if the tag is unknown."""
        try:
            data = self.client.get_json(f"/repos/{self.repository}/releases/tags/{tag}")
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                raise NotFoundError(f"Release {tag!r} not found in {self.repository}") from exc
            raise DownloadError(f"Release lookup for {tag!r} failed: {_describe(exc)}") from exc
        except httpx.HTTPError as exc:
            raise DownloadError(f"Release lookup for {tag!r} failed: {_describe(exc)}") from exc
        except ValueError as exc:
            raise DownloadError(f"Release {tag!r} returned invalid JSON: {exc}") from exc
        return self._parse(data)
