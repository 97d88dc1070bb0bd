"""DLsite provider — storefront product JSON (synopsis and genres)."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from vnmeta.core.extractors import (
    find_json_array_names,
    find_json_string,
    get_list,
    get_str,
    load_json,
    names_of,
    unescape_slashes,
)
from vnmeta.core.rate_limiter import CancelToken
from vnmeta.models.fragments import StorefrontFragment
from vnmeta.models.game_record import DEFAULT_DLSITE_DOMAIN, GameRecord
from vnmeta.scrapers.base import EnrichmentProvider

_PRODUCT_API = "https://www.dlsite.com/{domain}/api/=/product.json"


class DLsiteProvider(EnrichmentProvider[StorefrontFragment]):
    """Short synopsis (``intro_s``) and genre names from the DLsite product API."""

    @property
    def name(self) -> str:
        return "dlsite"

    @property
    def display_name(self) -> str:
        return "DLsite"

    def enrich(
        self, record: GameRecord, cancel: CancelToken | None = None
    ) -> StorefrontFragment:
        return self.fetch(record.dlsite_id, record.dlsite_domain, cancel)

    def fetch(
        self,
        product_id: str | None,
        domain: str | None = None,
        cancel: CancelToken | None = None,
    ) -> StorefrontFragment:
        if not product_id:
            return StorefrontFragment()

        url = _PRODUCT_API.format(domain=domain or DEFAULT_DLSITE_DOMAIN)
        logger.info(f"DLsite API: {url}?workno={product_id}")
        try:
            resp = self._send("GET", url, cancel, params={"workno": product_id})
        except httpx.HTTPError as e:
            logger.warning(f"DLsite API error ({product_id}): {e}")
            return StorefrontFragment()

        return self.parse_product(resp.text)

    @staticmethod
    def parse_product(raw: str) -> StorefrontFragment:
        """Extract the synopsis and genre list from a product document."""
        raw = unescape_slashes(raw)
        data: Any = load_json(raw)
        if isinstance(data, list):
            data = data[0] if data else None

        if isinstance(data, dict):
            return StorefrontFragment(
                description=get_str(data, "intro_s"),
                genres=names_of(get_list(data, "genres")),
            )

        # Not valid JSON: look the fields up individually
        return StorefrontFragment(
            description=find_json_string(raw, "intro_s"),
            genres=find_json_array_names(raw, "genres"),
        )
