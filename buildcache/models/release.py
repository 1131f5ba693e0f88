"""Remote release index models (read-only, externally owned)."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class ReleaseAsset(BaseModel):
    """One downloadable asset attached to a release."""

    model_config = ConfigDict(frozen=True)

    name: str
    download_url: str
    size: int | None = None


class CacheRelease(BaseModel):
    """A release as reported by the remote index."""

    model_config = ConfigDict(frozen=True)

    tag: str
    created_at: datetime | None = None
    name: str = ""
    body: str = ""
    assets: list[ReleaseAsset] = []

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> CacheRelease:
        """Build from a GitHub REST ``release`` object."""
        return cls(
            tag=payload.get("tag_name") or "",
            created_at=payload.get("created_at"),
            name=payload.get("name") or "",
            body=payload.get("body") or "",
            assets=[
                ReleaseAsset(
                    name=asset["name"],
                    download_url=asset["browser_download_url"],
                    size=asset.get("size"),
                )
                for asset in payload.get("assets") or []
            ],
        )

    def has_marker(self, marker: str) -> bool:
        """True if the tag or any asset name contains *marker*."""
        return marker in self.tag or any(marker in a.name for a in self.assets)

    def marked_assets(self, marker: str) -> list[ReleaseAsset]:
        """Assets whose name contains *marker*, in index order."""
        return [a for a in self.assets if marker in a.name]
