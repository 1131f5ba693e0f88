"""Release index access: locating cache releases and fetching their assets."""

from buildcache.remote.client import ReleaseIndexClient
from buildcache.remote.fetcher import AssetFetcher
from buildcache.remote.locator import ReleaseLocator

__all__ = ["ReleaseIndexClient", "ReleaseLocator", "AssetFetcher"]
