"""Per-source partial results consumed by the merge step."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class StorefrontFragment:
    """DLsite product data."""

    description: str | None = None
    genres: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.description and not self.genres


@dataclass
class CatalogFragment:
    """Getchu synopsis."""

    description: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.description


@dataclass
class VndbFragment:
    """VNDB description and content-filtered imagery."""

    vndb_id: str | None = None
    description: str | None = None
    cover_url: str | None = None
    cover_is_portrait: bool = False
    screenshot_urls: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.description or self.cover_url or self.screenshot_urls)
