"""Search resolver — keyword search, automatic exact match and interactive picking."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx
from loguru import logger

from vnmeta.core.aggregator import parse_date, parse_int
from vnmeta.core.gateway import search_sql
from vnmeta.models.game_record import GameRecord, SearchCandidate

if TYPE_CHECKING:
    from vnmeta.core.aggregator import Aggregator
    from vnmeta.core.gateway import QueryGateway
    from vnmeta.core.rate_limiter import CancelToken


@dataclass(frozen=True)
class PickerItem:
    """What a human sees for one candidate."""

    name: str
    description: str


def candidate_from_row(row: dict[str, str]) -> SearchCandidate | None:
    game_id = parse_int(row.get("id"))
    if game_id is None:
        return None
    return SearchCandidate(
        id=game_id,
        title=row.get("gamename", ""),
        reading=row.get("furigana", ""),
        brand_name=row.get("brandname", ""),
        release_date=parse_date(row.get("sellday")),
        median=parse_int(row.get("median")),
        review_count=parse_int(row.get("count2")),
    )


class SearchResolver:
    """Keyword → ranked candidates → full record."""

    def __init__(
        self, gateway: QueryGateway, aggregator: Aggregator, limit: int = 30
    ) -> None:
        self._gateway = gateway
        self._aggregator = aggregator
        self._limit = limit

    def search(
        self, keyword: str, cancel: CancelToken | None = None
    ) -> list[SearchCandidate]:
        """Candidates whose title contains *keyword*, most-reviewed first."""
        if not keyword or not keyword.strip():
            return []
        rows = self._gateway.execute(search_sql(keyword, self._limit), cancel)
        candidates = [c for c in map(candidate_from_row, rows) if c is not None]
        logger.info(f"ErogameScape search '{keyword}': {len(candidates)} candidate(s)")
        return candidates

    def resolve(self, game_id: int, cancel: CancelToken | None = None) -> GameRecord | None:
        return self._aggregator.resolve(game_id, cancel)

    def resolve_automatic(
        self, name: str, cancel: CancelToken | None = None
    ) -> GameRecord | None:
        """Resolve only when a candidate's title equals *name* exactly."""
        for candidate in self.search(name, cancel):
            if candidate.title == name:
                return self.resolve(candidate.id, cancel)
        logger.info(f"No exact ErogameScape match for '{name}'")
        return None

    def interactive(self) -> InteractiveSearch:
        return InteractiveSearch(self)


class InteractiveSearch:
    """Picker session: the host calls :meth:`update` per query change and
    :meth:`select` with the position the user picked."""

    def __init__(self, resolver: SearchResolver) -> None:
        self._resolver = resolver
        self._candidates: list[SearchCandidate] = []

    @property
    def candidates(self) -> list[SearchCandidate]:
        return list(self._candidates)

    def update(self, term: str, cancel: CancelToken | None = None) -> list[PickerItem]:
        if not term or not term.strip():
            self._candidates = []
            return []
        try:
            candidates = self._resolver.search(term, cancel)
        except httpx.HTTPError as e:
            logger.error(f"ErogameScape search failed: {e}")
            self._candidates = []
            return []
        self._candidates = candidates
        return [PickerItem(c.label, c.details) for c in candidates]

    def select(self, index: int, cancel: CancelToken | None = None) -> GameRecord | None:
        if not 0 <= index < len(self._candidates):
            return None
        return self._resolver.resolve(self._candidates[index].id, cancel)
