"""Build cache configuration — env-driven, immutable.

Centralized settings using pydantic-settings.  Reads from a .env file and
``BUILDCACHE_*`` environment variables; the variable names used by the CI
workflows (``GITHUB_REPOSITORY``, ``GITHUB_TOKEN``, ``PROJECT_ROOT``,
``ARCH``) are accepted as aliases.

The settings object is frozen and handed to each component at
construction, so no component reads the environment on its own.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from buildcache.core.errors import ConfigurationError
from buildcache.models.manifest import parse_size
from buildcache.models.states import StagingPolicy

DEFAULT_DIRECTORY_PATTERNS: list[str] = [
    "script/meta/minimyth/work",
    "script/meta/miniarch/work",
    "script/bootloaders/work",
    "script/kernel/work",
    "script/lib/work",
    "script/utils/work",
    "script/X11/work",
    "script/myth*/work",
    "script/opengl/work",
    "script/python*/work",
    "script/devel/work",
]

# Firmware images, final outputs, temp files, logs, VCS data, download
# cache and the cookies/stamps that would force rebuilds.
DEFAULT_EXCLUDE_PATTERNS: list[str] = [
    "*.img",
    "*.img.gz",
    "*.img.xz",
    "*.img.bz2",
    "*.iso",
    "*.tar.gz",
    "*.tar.bz2",
    "*.tar.xz",
    "*.zip",
    "images/",
    "main/",
    "boot/",
    "*.tmp",
    "*.temp",
    "*~",
    ".*.swp",
    "*.log",
    "log/",
    ".git/",
    ".gitignore",
    "download/",
    "cookies/",
    "stamps/",
]

DEFAULT_EXISTING_CACHE_DIRS: list[str] = [
    "script/meta/minimyth/work",
    "script/meta/miniarch/work",
]


class CacheSettings(BaseSettings):
    """Build cache settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export GITHUB_REPOSITORY=warpme/minimyth2
        export GITHUB_TOKEN=ghp_...
        export BUILDCACHE_MAX_PART_SIZE=1900M
        export BUILDCACHE_COMPRESSION_LEVEL=9

    Or via .env file::

        BUILDCACHE_PROJECT_ROOT=/srv/minimyth2
        BUILDCACHE_DOWNLOAD_WORKERS=4
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="BUILDCACHE_",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    # Remote release index
    repository: str = Field(
        "warpme/minimyth2",
        validation_alias=AliasChoices("BUILDCACHE_REPOSITORY", "GITHUB_REPOSITORY"),
    )
    token: str = Field(
        "",
        validation_alias=AliasChoices("BUILDCACHE_TOKEN", "GITHUB_TOKEN"),
    )
    api_url: str = "https://api.github.com"
    cache_marker: str = "build-cache"
    release_page_size: int = Field(30, ge=1, le=100)

    # Local layout
    project_root: Path = Field(
        default_factory=Path.cwd,
        validation_alias=AliasChoices("BUILDCACHE_PROJECT_ROOT", "PROJECT_ROOT"),
    )
    cache_dir_name: str = "build-cache"
    staging_dir_name: str = "build-cache-download"
    archive_prefix: str = "minimyth2-build-cache"

    # Archive
    max_part_size: str | int = "1900M"  # GitHub's asset limit is 2 GiB
    compression_level: int = Field(6, ge=1, le=9)
    architecture: str = Field(
        "aarch64",
        validation_alias=AliasChoices("BUILDCACHE_ARCHITECTURE", "ARCH"),
    )
    directory_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_DIRECTORY_PATTERNS)
    )
    exclude_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS)
    )
    delete_original_after_split: bool = True

    # Restore
    existing_cache_dirs: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXISTING_CACHE_DIRS)
    )
    staging_policy: StagingPolicy = StagingPolicy.ON_SUCCESS
    download_workers: int = Field(1, ge=1)

    # HTTP
    http_timeout_seconds: float = Field(60.0, gt=0)
    http_max_attempts: int = Field(3, ge=1)

    # Observability
    log_level: str = "INFO"

    @field_validator("max_part_size")
    @classmethod
    def _part_size_positive(cls, value: str | int) -> str | int:
        if parse_size(value) <= 0:
            raise ValueError(f"max_part_size must be positive, got {value!r}")
        return value

    @property
    def max_part_size_bytes(self) -> int:
        return parse_size(self.max_part_size)

    @property
    def cache_dir(self) -> Path:
        """Where the archive pipeline writes its deliverables."""
        return self.project_root.expanduser() / self.cache_dir_name

    @property
    def staging_root(self) -> Path:
        """Parent of the per-invocation restore staging directories."""
        return self.project_root.expanduser() / self.staging_dir_name

    def require_project_root(self) -> Path:
        """Return the resolved project root, or raise ``ConfigurationError``."""
        root = self.project_root.expanduser()
        if not root.is_dir():
            raise ConfigurationError(f"Project root does not exist: {root}")
        return root.resolve()


def load_settings(**overrides: Any) -> CacheSettings:
    """Build settings from the environment plus *overrides*.

    Validation failures surface as ``ConfigurationError``.
    """
    try:
        return CacheSettings(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
