"""VNDB provider — Kana API (description, cover and screenshots)."""

from __future__ import annotations

import re
from typing import Any

import httpx
from loguru import logger

from vnmeta.core.extractors import get_dict, get_float, get_list, get_str, load_json
from vnmeta.core.normalize import normalize_title
from vnmeta.core.rate_limiter import CancelToken
from vnmeta.models.fragments import VndbFragment
from vnmeta.models.game_record import GameRecord
from vnmeta.scrapers.base import EnrichmentProvider

API_URL = "https://api.vndb.org/kana/vn"

_SEARCH_FIELDS = "title,alttitle"
_DETAIL_FIELDS = (
    "title,description,"
    "image.url,image.dims,image.sexual,image.violence,"
    "screenshots.url,screenshots.sexual,screenshots.violence"
)

# Images at or above this level on either axis are not shown
SAFE_SCORE_LIMIT = 1.0

_MARKUP_RE = re.compile(r"\[/?[a-z]+(?:=[^\]]+)?\]")


def strip_markup(text: str) -> str:
    """Remove VNDB's ``[url=...]``/``[spoiler]`` style tags."""
    return _MARKUP_RE.sub("", text).strip()


def is_safe_image(image: Any) -> bool:
    """Both the sexual and violence scores are present and below the limit."""
    sexual = get_float(image, "sexual")
    violence = get_float(image, "violence")
    if sexual is None or violence is None:
        return False
    return sexual < SAFE_SCORE_LIMIT and violence < SAFE_SCORE_LIMIT


def is_portrait(image: Any) -> bool:
    dims = get_list(image, "dims")
    if len(dims) != 2:
        return False
    width, height = dims
    if not isinstance(width, int) or not isinstance(height, int):
        return False
    return height > width


class VNDBProvider(EnrichmentProvider[VndbFragment]):
    """Two-phase lookup: exact title match in a search, then an id detail query."""

    def __init__(
        self,
        client: httpx.Client,
        endpoint: str = API_URL,
        search_results: int = 5,
    ) -> None:
        super().__init__(client)
        self._endpoint = endpoint
        self._search_results = search_results

    @property
    def name(self) -> str:
        return "vndb"

    @property
    def display_name(self) -> str:
        return "VNDB"

    def enrich(
        self, record: GameRecord, cancel: CancelToken | None = None
    ) -> VndbFragment:
        return self.fetch(record.title, cancel)

    def fetch(self, title: str, cancel: CancelToken | None = None) -> VndbFragment:
        if not title:
            return VndbFragment()

        vndb_id = self.find_id_by_title(title, cancel)
        if vndb_id is None:
            return VndbFragment()

        fragment = VndbFragment(vndb_id=vndb_id)
        logger.info(f"VNDB detail: {vndb_id}")
        try:
            data = self._query(["id", "=", vndb_id], _DETAIL_FIELDS, 1, cancel)
        except httpx.HTTPError as e:
            logger.warning(f"VNDB detail error ({vndb_id}): {e}")
            return fragment

        results = get_list(data, "results")
        if results:
            self._apply_detail(fragment, results[0])
        logger.info(
            f"VNDB: description={bool(fragment.description)}, "
            f"cover={bool(fragment.cover_url)}, "
            f"safe screenshots={len(fragment.screenshot_urls)}"
        )
        return fragment

    def find_id_by_title(
        self, title: str, cancel: CancelToken | None = None
    ) -> str | None:
        """Id of the first search hit whose title or alttitle equals *title*."""
        logger.info(f"VNDB title search: {title}")
        try:
            data = self._query(
                ["search", "=", title], _SEARCH_FIELDS, self._search_results, cancel
            )
        except httpx.HTTPError as e:
            logger.warning(f"VNDB search error ({title}): {e}")
            return None

        wanted = normalize_title(title)
        results = get_list(data, "results")
        for item in results:
            vndb_id = get_str(item, "id")
            if not vndb_id:
                continue
            names = (get_str(item, "title"), get_str(item, "alttitle"))
            if any(name and normalize_title(name) == wanted for name in names):
                logger.info(f"VNDB title match: {names[0]} ({vndb_id})")
                return vndb_id

        logger.info(f"VNDB no title match: {title} ({len(results)} candidate(s))")
        return None

    @staticmethod
    def _apply_detail(fragment: VndbFragment, item: Any) -> None:
        description = get_str(item, "description")
        if description:
            fragment.description = strip_markup(description) or None

        image = get_dict(item, "image")
        cover = get_str(image, "url")
        if cover and is_safe_image(image):
            fragment.cover_url = cover
            fragment.cover_is_portrait = is_portrait(image)

        for shot in get_list(item, "screenshots"):
            url = get_str(shot, "url")
            if not url or url == fragment.cover_url:
                continue
            if is_safe_image(shot):
                fragment.screenshot_urls.append(url)

    def _query(
        self,
        filters: list[Any],
        fields: str,
        results: int,
        cancel: CancelToken | None = None,
    ) -> Any:
        resp = self._send(
            "POST",
            self._endpoint,
            cancel,
            json={"filters": filters, "fields": fields, "results": results},
        )
        return load_json(resp.text)
