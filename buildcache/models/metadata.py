"""Build metadata written beside every archive (descriptive only)."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_serializer

METADATA_SCHEMA_VERSION = "1.0"


class BuildMetadata(BaseModel):
    """Who built the cache, from which revision, for which architecture.

    Never validated on restore; it exists for traceability only.
    """

    model_config = ConfigDict(frozen=True)

    version: str = METADATA_SCHEMA_VERSION
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    git_commit: str = "unknown"
    git_branch: str = "unknown"
    architecture: str = "aarch64"
    hostname: str = "unknown"
    build_user: str = "unknown"

    @field_serializer("created_at")
    def _utc_iso(self, value: datetime) -> str:
        return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
