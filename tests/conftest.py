"""Shared test fixtures for buildcache."""

from __future__ import annotations

import os
import random
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import httpx
import pytest
from tenacity import wait_none

from buildcache.config import CacheSettings
from buildcache.remote.client import ReleaseIndexClient

REPOSITORY = "warpme/minimyth2"

_ENV_VARS = ("GITHUB_REPOSITORY", "GITHUB_TOKEN", "PROJECT_ROOT", "ARCH")


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep the developer's environment and any .env file out of the tests."""
    for name in list(os.environ):
        if name.startswith("BUILDCACHE_") or name in _ENV_VARS:
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


def _payload(seed: int, size: int) -> bytes:
    # Pseudo-random so gzip cannot shrink it below the part size.
    return random.Random(seed).randbytes(size)


# ---------------------------------------------------------------------------
# Build tree factories
# ---------------------------------------------------------------------------

KEPT_FILES: dict[str, bytes] = {
    "script/kernel/work/linux-6.6/vmlinux": _payload(1, 32 * 1024),
    "script/kernel/work/linux-6.6/.config": b"CONFIG_ARM64=y\nCONFIG_SMP=y\n",
    "script/meta/minimyth/work/rootfs/etc/hostname": b"minimyth\n",
    "script/mythtv/work/mythtv-34/libmythbase.so": _payload(2, 16 * 1024),
}

EXCLUDED_FILES: dict[str, bytes] = {
    "script/kernel/work/build.log": b"make: Leaving directory\n",
    "script/kernel/work/stamps/configure": b"",
    "script/meta/minimyth/work/images/firmware.img": b"\x00" * 512,
    "script/mythtv/work/mythtv-34/mythtv-34.tar.gz": b"not really gzip",
    "script/mythtv/work/mythtv-34/.git/HEAD": b"ref: refs/heads/master\n",
}


def _write_tree(root: Path, files: dict[str, bytes]) -> None:
    for relative, data in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)


@pytest.fixture
def source_root(tmp_dir: Path) -> Path:
    """A project root holding a populated build tree."""
    root = tmp_dir / "source"
    _write_tree(root, KEPT_FILES)
    _write_tree(root, EXCLUDED_FILES)
    return root


@pytest.fixture
def target_root(tmp_dir: Path) -> Path:
    """An empty project root to restore into."""
    root = tmp_dir / "target"
    root.mkdir()
    return root


@pytest.fixture
def make_settings() -> Callable[..., CacheSettings]:
    """Factory fixture: settings with test-friendly defaults."""

    def _factory(project_root: Path, **overrides: Any) -> CacheSettings:
        overrides.setdefault("max_part_size", "4K")
        return CacheSettings(project_root=project_root, **overrides)

    return _factory


# ---------------------------------------------------------------------------
# Fake release index
# ---------------------------------------------------------------------------


class FakeReleaseIndex:
    """In-memory GitHub releases API served through ``httpx.MockTransport``.

    Releases added later are listed first, like the real index.  Paths in
    ``failures`` answer with the queued status codes before serving
    normally.
    """

    def __init__(self, repository: str = REPOSITORY) -> None:
        self.repository = repository
        self.releases: list[dict[str, Any]] = []
        self.blobs: dict[str, bytes] = {}
        self.failures: dict[str, list[int]] = {}
        self.requests: list[httpx.Request] = []

    def asset_url(self, tag: str, name: str) -> str:
        return f"https://github.com/{self.repository}/releases/download/{tag}/{name}"

    def add_release(
        self,
        tag: str,
        assets: dict[str, bytes] | None = None,
        *,
        created_at: str = "2024-05-01T12:00:00Z",
        body: str = "",
        sizes: dict[str, int] | None = None,
    ) -> dict[str, Any]:
        entries = []
        for name, data in (assets or {}).items():
            url = self.asset_url(tag, name)
            self.blobs[url] = data
            size = (sizes or {}).get(name, len(data))
            entries.append({"name": name, "browser_download_url": url, "size": size})
        release = {
            "tag_name": tag,
            "name": tag,
            "created_at": created_at,
            "body": body,
            "assets": entries,
        }
        self.releases.insert(0, release)
        return release

    def publish(self, tag: str, files: list[Path], **kwargs: Any) -> dict[str, Any]:
        """Attach local files as the assets of a new release."""
        return self.add_release(tag, {p.name: p.read_bytes() for p in files}, **kwargs)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        queued = self.failures.get(path)
        if queued:
            return httpx.Response(queued.pop(0))

        releases_path = f"/repos/{self.repository}/releases"
        if path == releases_path:
            return httpx.Response(200, json=self.releases)
        if path.startswith(releases_path + "/tags/"):
            tag = path.rsplit("/", 1)[-1]
            for release in self.releases:
                if release["tag_name"] == tag:
                    return httpx.Response(200, json=release)
            return httpx.Response(404, json={"message": "Not Found"})

        url = str(request.url)
        if url in self.blobs:
            return httpx.Response(200, content=self.blobs[url])
        return httpx.Response(404, json={"message": "Not Found"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def api_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == "api.github.com"]


@pytest.fixture
def release_index() -> FakeReleaseIndex:
    return FakeReleaseIndex()


@pytest.fixture
def make_client() -> Iterator[Callable[..., ReleaseIndexClient]]:
    """Factory fixture: a client bound to a fake index, with no retry delay."""
    clients: list[ReleaseIndexClient] = []

    def _factory(index: FakeReleaseIndex, **kwargs: Any) -> ReleaseIndexClient:
        client = ReleaseIndexClient(
            transport=index.transport(), retry_wait=wait_none(), **kwargs
        )
        clients.append(client)
        return client

    yield _factory
    for client in clients:
        client.close()


@pytest.fixture
def kept_files() -> dict[str, bytes]:
    """Files the archive must carry, keyed by path relative to the root."""
    return dict(KEPT_FILES)


@pytest.fixture
def excluded_files() -> dict[str, bytes]:
    """Files the default exclusion list must keep out of the archive."""
    return dict(EXCLUDED_FILES)
