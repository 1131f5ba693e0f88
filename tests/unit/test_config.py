"""Tests for CacheSettings — defaults, environment aliases and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from buildcache.config import (
    DEFAULT_DIRECTORY_PATTERNS,
    DEFAULT_EXISTING_CACHE_DIRS,
    CacheSettings,
    load_settings,
)
from buildcache.core.errors import ConfigurationError
from buildcache.models.states import StagingPolicy


class TestDefaults:
    def test_defaults(self, tmp_dir: Path):
        settings = CacheSettings()
        assert settings.repository == "warpme/minimyth2"
        assert settings.token == ""
        assert settings.cache_marker == "build-cache"
        assert settings.max_part_size == "1900M"
        assert settings.max_part_size_bytes == 1900 * 1024 * 1024
        assert settings.compression_level == 6
        assert settings.staging_policy == StagingPolicy.ON_SUCCESS
        assert settings.project_root.resolve() == tmp_dir.resolve()  # cwd
        assert settings.directory_patterns == DEFAULT_DIRECTORY_PATTERNS
        assert settings.existing_cache_dirs == DEFAULT_EXISTING_CACHE_DIRS

    def test_derived_paths(self, tmp_dir: Path):
        settings = CacheSettings(project_root=tmp_dir)
        assert settings.cache_dir == tmp_dir / "build-cache"
        assert settings.staging_root == tmp_dir / "build-cache-download"

    def test_derived_paths_expand_home(self, tmp_dir: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("HOME", str(tmp_dir))
        settings = CacheSettings(project_root=Path("~/minimyth2"), cache_dir_name="out")
        assert settings.cache_dir == tmp_dir / "minimyth2" / "out"
        assert settings.staging_root == tmp_dir / "minimyth2" / "build-cache-download"

    def test_frozen(self):
        settings = CacheSettings()
        with pytest.raises(ValidationError):
            settings.repository = "other/repo"  # type: ignore[misc]

    def test_default_lists_are_not_shared(self):
        a = CacheSettings()
        a.directory_patterns.append("script/extra/work")
        assert "script/extra/work" not in CacheSettings().directory_patterns


class TestEnvironment:
    def test_workflow_variable_names(self, monkeypatch: pytest.MonkeyPatch, tmp_dir: Path):
        monkeypatch.setenv("GITHUB_REPOSITORY", "someone/fork")
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_secret")
        monkeypatch.setenv("PROJECT_ROOT", str(tmp_dir))
        monkeypatch.setenv("ARCH", "x86_64")
        settings = CacheSettings()
        assert settings.repository == "someone/fork"
        assert settings.token == "ghp_secret"
        assert settings.project_root == tmp_dir
        assert settings.architecture == "x86_64"

    def test_prefixed_variables(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("BUILDCACHE_MAX_PART_SIZE", "2G")
        monkeypatch.setenv("BUILDCACHE_COMPRESSION_LEVEL", "9")
        monkeypatch.setenv("BUILDCACHE_STAGING_POLICY", "always")
        monkeypatch.setenv("BUILDCACHE_DIRECTORY_PATTERNS", '["script/kernel/work"]')
        settings = CacheSettings()
        assert settings.max_part_size_bytes == 2 * 1024**3
        assert settings.compression_level == 9
        assert settings.staging_policy == StagingPolicy.ALWAYS
        assert settings.directory_patterns == ["script/kernel/work"]

    def test_dotenv_file(self, tmp_dir: Path):
        (tmp_dir / ".env").write_text("BUILDCACHE_CACHE_MARKER=nightly-cache\n")
        assert CacheSettings().cache_marker == "nightly-cache"


class TestValidation:
    @pytest.mark.parametrize("size", ["0", 0, -5, "0M", "lots", "12Q"])
    def test_bad_part_size(self, size):
        with pytest.raises(ConfigurationError):
            load_settings(max_part_size=size)

    def test_plain_byte_count(self):
        assert load_settings(max_part_size="1048576").max_part_size_bytes == 1048576

    @pytest.mark.parametrize("level", [0, 10])
    def test_bad_compression_level(self, level: int):
        with pytest.raises(ConfigurationError):
            load_settings(compression_level=level)

    def test_bad_staging_policy(self):
        with pytest.raises(ConfigurationError):
            load_settings(staging_policy="sometimes")

    def test_require_project_root(self, tmp_dir: Path):
        assert load_settings(project_root=tmp_dir).require_project_root() == tmp_dir.resolve()

    def test_missing_project_root(self, tmp_dir: Path):
        settings = load_settings(project_root=tmp_dir / "nope")
        with pytest.raises(ConfigurationError, match="does not exist"):
            settings.require_project_root()
