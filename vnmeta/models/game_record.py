"""Game record and search candidate models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

_EROGAMESCAPE_GAME_URL = (
    "https://erogamescape.dyndns.org/~ap2/ero/toukei_kaiseki/game.php?game={0}"
)
_DMM_COVER_URL = "https://pics.dmm.co.jp/digital/pcgame/{0}/{0}pl.jpg"
_DMM_DETAIL_URL = "https://dlsoft.dmm.co.jp/detail/{0}/"
_DLSITE_WORK_URL = "https://www.dlsite.com/{0}/work/=/product_id/{1}.html"

DEFAULT_DLSITE_DOMAIN = "pro"


def is_url(value: str | None) -> bool:
    return bool(value) and value.startswith("http")


@dataclass(frozen=True)
class Link:
    name: str
    url: str


@dataclass
class GameRecord:
    """Fully resolved metadata for one ErogameScape game id."""

    id: int
    title: str = ""
    reading: str = ""  # furigana
    brand_name: str = ""
    brand_url: str = ""
    release_date: date | None = None
    median: int | None = None
    average: int | None = None
    review_count: int | None = None
    dmm_id: str | None = None
    dmm_subsc_id: str | None = None
    dlsite_id: str | None = None
    dlsite_domain: str | None = None
    official_genre: str | None = None
    introduction: str | None = None  # "shoukai": free text or a URL
    description: str | None = None
    is_adult: bool = False
    series: str | None = None
    tags: list[str] = field(default_factory=list)
    genres: list[str] = field(default_factory=list)
    features: list[str] = field(default_factory=list)
    background_urls: list[str] = field(default_factory=list)
    vndb_cover_url: str | None = None
    vndb_cover_is_portrait: bool = False

    @property
    def cover_url(self) -> str | None:
        """Best cover: portrait VNDB art, then the DMM package image, then any VNDB art."""
        if self.vndb_cover_url and self.vndb_cover_is_portrait:
            return self.vndb_cover_url
        dmm = self.dmm_subsc_id or self.dmm_id
        if dmm:
            return _DMM_COVER_URL.format(dmm)
        return self.vndb_cover_url or None

    @property
    def erogamescape_url(self) -> str:
        return _EROGAMESCAPE_GAME_URL.format(self.id)

    @property
    def age_rating(self) -> str:
        return "18+" if self.is_adult else "All ages"

    @property
    def platform(self) -> str:
        return "pc_windows"

    @property
    def region(self) -> str:
        return "japan"

    @property
    def links(self) -> list[Link]:
        links = [Link("ErogameScape", self.erogamescape_url)]
        if self.brand_url:
            links.append(Link("Official site", self.brand_url))
        if is_url(self.introduction) and self.introduction != self.brand_url:
            links.append(Link("Introduction", self.introduction))
        if self.dlsite_id:
            domain = self.dlsite_domain or DEFAULT_DLSITE_DOMAIN
            links.append(Link("DLsite", _DLSITE_WORK_URL.format(domain, self.dlsite_id)))
        if self.dmm_id:
            links.append(Link("DMM", _DMM_DETAIL_URL.format(self.dmm_id)))
        return links


@dataclass(frozen=True)
class SearchCandidate:
    """Lightweight search hit used only for disambiguation."""

    id: int
    title: str
    reading: str = ""
    brand_name: str = ""
    release_date: date | None = None
    median: int | None = None
    review_count: int | None = None

    @property
    def label(self) -> str:
        if self.brand_name:
            return f"{self.title} ({self.brand_name})"
        return self.title

    @property
    def details(self) -> str:
        parts: list[str] = []
        if self.release_date:
            parts.append(f"Release: {self.release_date.isoformat()}")
        if self.median is not None:
            parts.append(f"Median: {self.median}")
        if self.review_count is not None:
            parts.append(f"Reviews: {self.review_count}")
        return " | ".join(parts)
