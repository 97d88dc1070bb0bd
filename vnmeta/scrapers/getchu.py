"""Getchu provider — scraped synopsis from the catalog site."""

from __future__ import annotations

import re
from typing import Iterator

import httpx
from bs4 import BeautifulSoup
from loguru import logger

from vnmeta.core.extractors import element_text
from vnmeta.core.normalize import titles_match
from vnmeta.core.rate_limiter import CancelToken
from vnmeta.models.fragments import CatalogFragment
from vnmeta.models.game_record import GameRecord
from vnmeta.scrapers.base import EnrichmentProvider

_SEARCH_URL = "https://www.getchu.com/php/nsearch.phtml"
_DETAIL_URL = "https://www.getchu.com/soft.phtml"

# Age gate; without it every page is the confirmation screen
_AGE_COOKIE = "getchu_adalt_flag=getchu.com"
_ENCODING = "euc-jp"

_ID_RE = re.compile(r"id=(\d+)")

# Newer titles carry a "Story" section, older ones only "Introduction"
SECTION_STORY = "ストーリー"
SECTION_INTRODUCTION = "商品紹介"


class GetchuProvider(EnrichmentProvider[CatalogFragment]):
    """Finds the game on Getchu by title and reads its story text."""

    @property
    def name(self) -> str:
        return "getchu"

    @property
    def display_name(self) -> str:
        return "Getchu"

    def enrich(
        self, record: GameRecord, cancel: CancelToken | None = None
    ) -> CatalogFragment:
        return self.fetch(record.title, cancel)

    def fetch(self, title: str, cancel: CancelToken | None = None) -> CatalogFragment:
        if not title:
            return CatalogFragment()

        for getchu_id in self.iter_candidates(title, cancel):
            description = self.fetch_description(getchu_id, cancel)
            if description:
                return CatalogFragment(description=description)
        return CatalogFragment()

    def iter_candidates(
        self, title: str, cancel: CancelToken | None = None
    ) -> Iterator[str]:
        """Lazily yield Getchu ids whose listed title matches *title*."""
        logger.info(f"Getchu search: {title}")
        try:
            html = self._get_html(
                _SEARCH_URL,
                cancel,
                params={
                    "genre": "pc_soft",
                    "search_type": "match",
                    "search_keyword": title,
                },
            )
        except httpx.HTTPError as e:
            logger.warning(f"Getchu search error ({title}): {e}")
            return

        yield from self.find_ids_by_title(html, title)

    @staticmethod
    def find_ids_by_title(html: str, title: str) -> list[str]:
        """Ids of ``a.blueb`` result links matching *title*, in page order."""
        soup = BeautifulSoup(html, "lxml")
        ids: list[str] = []
        for link in soup.find_all("a", class_="blueb"):
            href = link.get("href", "")
            if "soft.phtml?id=" not in href:
                continue
            link_title = link.get_text().strip()
            if not titles_match(link_title, title):
                continue
            match = _ID_RE.search(href)
            if match and match.group(1) not in ids:
                logger.debug(f"Getchu candidate: {link_title} (ID:{match.group(1)})")
                ids.append(match.group(1))
        return ids

    def fetch_description(
        self, getchu_id: str, cancel: CancelToken | None = None
    ) -> str | None:
        logger.info(f"Getchu detail: {getchu_id}")
        try:
            html = self._get_html(_DETAIL_URL, cancel, params={"id": getchu_id})
        except httpx.HTTPError as e:
            logger.warning(f"Getchu detail error ({getchu_id}): {e}")
            return None
        return self.parse_description(html)

    @staticmethod
    def parse_description(html: str) -> str | None:
        soup = BeautifulSoup(html, "lxml")
        return extract_section(soup, SECTION_STORY) or extract_section(
            soup, SECTION_INTRODUCTION
        )

    def _get_html(
        self, url: str, cancel: CancelToken | None = None, **kwargs
    ) -> str:
        resp = self._send("GET", url, cancel, headers={"Cookie": _AGE_COOKIE}, **kwargs)
        return resp.content.decode(_ENCODING, errors="replace")


def extract_section(soup: BeautifulSoup, section_title: str) -> str | None:
    """First non-empty ``div.tablebody`` text following an ``h2.tabletitle`` heading."""
    for header in soup.find_all("h2", class_="tabletitle"):
        if section_title not in header.get_text():
            continue
        for sibling in header.find_next_siblings("div", class_="tablebody"):
            node = sibling.find("span", class_="bootstrap") or sibling
            text = element_text(node)
            if text:
                return text
    return None
