"""Aggregator — core ErogameScape record plus per-source enrichment and fallback merge."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import date, datetime
from typing import TYPE_CHECKING, Callable, TypeVar

import httpx
from loguru import logger

from vnmeta.core.gateway import enrichment_sql, game_sql
from vnmeta.models.fragments import CatalogFragment, StorefrontFragment, VndbFragment
from vnmeta.models.game_record import GameRecord, is_url

if TYPE_CHECKING:
    from vnmeta.core.gateway import QueryGateway
    from vnmeta.core.rate_limiter import CancelToken
    from vnmeta.scrapers.base import EnrichmentProvider

F = TypeVar("F")

# Placeholder sell days (e.g. 2030-01-01) mean "not announced yet"
TBA_YEAR_THRESHOLD = 2030

DEFAULT_TAG_GROUPS = ("ジャンル", "背景", "傾向")  # genre, setting, tendency
DEFAULT_TAG_MIN_COUNT = 2

# Checked in order; the first matching qualifier is removed
_TAG_SUFFIXES = (
    "仕立てのゲーム",
    "のゲーム",
    "ゲーム",
    "ゲー",
    "なゲーム",
    "な作品",
    "系のゲーム",
    "系ゲーム",
)


def null_if_empty(value: str | None) -> str | None:
    return value if value else None


def parse_int(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        parsed = datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None
    if parsed.year >= TBA_YEAR_THRESHOLD:
        return None
    return parsed


def simplify_tag(title: str) -> str:
    """Drop a generic trailing qualifier: "SF仕立てのゲーム" → "SF", "夏ゲー" → "夏"."""
    for suffix in _TAG_SUFFIXES:
        if title.endswith(suffix) and len(title) > len(suffix):
            return title[: -len(suffix)]
    return title


def record_from_row(row: dict[str, str]) -> GameRecord:
    """Build the core record from a ``game_sql`` row."""
    return GameRecord(
        id=int(row["id"]),
        title=row.get("gamename", ""),
        reading=row.get("furigana", ""),
        brand_name=row.get("brandname", ""),
        brand_url=row.get("url", ""),
        release_date=parse_date(row.get("sellday")),
        median=parse_int(row.get("median")),
        average=parse_int(row.get("average2")),
        review_count=parse_int(row.get("count2")),
        dmm_id=null_if_empty(row.get("dmm")),
        dmm_subsc_id=null_if_empty(row.get("dmm_subsc")),
        official_genre=null_if_empty(row.get("genre")),
        introduction=null_if_empty(row.get("shoukai")),
        dlsite_id=null_if_empty(row.get("dlsite_id")),
        dlsite_domain=null_if_empty(row.get("dlsite_domain")),
        is_adult=row.get("erogame") == "t",
    )


def apply_enrichment_rows(
    record: GameRecord,
    rows: list[dict[str, str]],
    tag_groups: tuple[str, ...] | list[str] = DEFAULT_TAG_GROUPS,
    tag_min_count: int = DEFAULT_TAG_MIN_COUNT,
) -> None:
    """Fill tags, series and features from ``enrichment_sql`` rows."""
    for row in rows:
        src = row.get("src")
        value = row.get("val") or ""

        if src == "tag":
            count = parse_int(row.get("cnt")) or 0
            if count >= tag_min_count and row.get("grp", "") in tag_groups:
                tag = simplify_tag(value)
                if tag:
                    record.tags.append(tag)
        elif src == "series":
            if not record.series:
                record.series = null_if_empty(value)
        elif src == "feature":
            if value:
                record.features.append(value)


def merge_record(
    core: GameRecord,
    storefront: StorefrontFragment,
    catalog: CatalogFragment,
    vndb: VndbFragment,
) -> GameRecord:
    """Apply the fixed source priority per field; returns a new record.

    description: DLsite → Getchu → ErogameScape introduction (unless a URL) → VNDB
    genres: DLsite → ErogameScape official genre
    imagery: VNDB only
    """
    description = storefront.description or catalog.description or None
    if not description and core.introduction and not is_url(core.introduction):
        description = core.introduction
    if not description:
        description = vndb.description or None

    if storefront.genres:
        genres = list(storefront.genres)
    elif core.official_genre:
        genres = [core.official_genre]
    else:
        genres = []

    return replace(
        core,
        description=description,
        genres=genres,
        tags=list(core.tags),
        features=list(core.features),
        background_urls=list(vndb.screenshot_urls),
        vndb_cover_url=vndb.cover_url,
        vndb_cover_is_portrait=bool(vndb.cover_url) and vndb.cover_is_portrait,
    )


class Aggregator:
    """Resolves one ErogameScape id into a merged :class:`GameRecord`."""

    def __init__(
        self,
        gateway: QueryGateway,
        storefront: EnrichmentProvider[StorefrontFragment] | None = None,
        catalog: EnrichmentProvider[CatalogFragment] | None = None,
        vndb: EnrichmentProvider[VndbFragment] | None = None,
        tag_groups: tuple[str, ...] | list[str] = DEFAULT_TAG_GROUPS,
        tag_min_count: int = DEFAULT_TAG_MIN_COUNT,
    ) -> None:
        self._gateway = gateway
        self._storefront = storefront
        self._catalog = catalog
        self._vndb = vndb
        self._tag_groups = tuple(tag_groups)
        self._tag_min_count = tag_min_count

    def resolve(self, game_id: int, cancel: CancelToken | None = None) -> GameRecord | None:
        """Fetch, enrich and merge. Returns None when the id does not exist.

        Gateway errors on the core query propagate; every later step only
        ever reduces the number of populated fields.
        """
        rows = self._gateway.execute(game_sql(game_id), cancel)
        if not rows:
            logger.info(f"ErogameScape game not found: {game_id}")
            return None

        core = record_from_row(rows[0])
        self._enrich_tags(core, cancel)

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="enrich") as pool:
            storefront_future = pool.submit(
                self._run, self._storefront, core, StorefrontFragment, cancel
            )
            vndb_future = pool.submit(self._run, self._vndb, core, VndbFragment, cancel)
            storefront = storefront_future.result()
            vndb = vndb_future.result()

        catalog = CatalogFragment()
        if not storefront.description:
            catalog = self._run(self._catalog, core, CatalogFragment, cancel)

        record = merge_record(core, storefront, catalog, vndb)
        logger.info(
            f"Resolved {record.id} '{record.title}': "
            f"description={bool(record.description)}, genres={len(record.genres)}, "
            f"tags={len(record.tags)}, backgrounds={len(record.background_urls)}"
        )
        return record

    def _enrich_tags(self, record: GameRecord, cancel: CancelToken | None) -> None:
        try:
            rows = self._gateway.execute(enrichment_sql(record.id), cancel)
        except httpx.HTTPError as e:
            logger.warning(f"ErogameScape tag query failed ({record.id}): {e}")
            return
        apply_enrichment_rows(record, rows, self._tag_groups, self._tag_min_count)

    @staticmethod
    def _run(
        provider: EnrichmentProvider[F] | None,
        record: GameRecord,
        empty: Callable[[], F],
        cancel: CancelToken | None,
    ) -> F:
        if provider is None:
            return empty()
        try:
            return provider.enrich(record, cancel)
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            # Enrichers handle their own errors; this keeps one bad source isolated
            logger.warning(f"{provider.display_name} enrichment failed: {e}")
            return empty()
