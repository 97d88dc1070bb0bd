"""Tests for the aggregator and its fallback merge policy."""

from __future__ import annotations

import threading
from concurrent.futures import CancelledError
from datetime import date

import httpx
import pytest

from vnmeta.core.aggregator import (
    Aggregator,
    apply_enrichment_rows,
    merge_record,
    parse_date,
    record_from_row,
    simplify_tag,
)
from vnmeta.core.rate_limiter import CancelToken
from vnmeta.models.fragments import CatalogFragment, StorefrontFragment, VndbFragment
from vnmeta.models.game_record import GameRecord

CORE_ROW = {
    "id": "12345",
    "gamename": "Sample VN",
    "furigana": "さんぷるぶいえぬ",
    "sellday": "2020-04-24",
    "median": "82",
    "average2": "80",
    "count2": "456",
    "dmm": "sample_0001",
    "dmm_subsc": "",
    "genre": "学園ADV",
    "shoukai": "https://example.com/sample/",
    "dlsite_id": "VJ000001",
    "dlsite_domain": "",
    "erogame": "t",
    "brandname": "Sample Soft",
    "url": "https://example.com/",
}

ENRICHMENT_ROWS = [
    {"src": "tag", "val": "学園もののゲーム", "grp": "ジャンル", "cnt": "30"},
    {"src": "tag", "val": "SF仕立てのゲーム", "grp": "背景", "cnt": "5"},
    {"src": "tag", "val": "泣きゲー", "grp": "傾向", "cnt": "2"},
    {"src": "tag", "val": "夏ゲー", "grp": "傾向", "cnt": "1"},
    {"src": "tag", "val": "声優が豪華", "grp": "声優", "cnt": "40"},
    {"src": "series", "val": "Sample series", "grp": "", "cnt": "0"},
    {"src": "feature", "val": "フルボイス", "grp": "", "cnt": "0"},
    {"src": "feature", "val": "", "grp": "", "cnt": "0"},
]


class FakeGateway:
    """Answers game/enrichment queries from canned rows."""

    def __init__(self, core_rows=None, enrichment_rows=None, enrichment_error=None):
        self.core_rows = [CORE_ROW] if core_rows is None else core_rows
        self.enrichment_rows = ENRICHMENT_ROWS if enrichment_rows is None else enrichment_rows
        self.enrichment_error = enrichment_error
        self.queries: list[str] = []

    def execute(self, sql: str, cancel=None):
        if cancel is not None:
            cancel.raise_if_cancelled()
        self.queries.append(sql)
        if "povgroups_toukei" in sql:
            if self.enrichment_error:
                raise self.enrichment_error
            return self.enrichment_rows
        return self.core_rows


class StubProvider:
    def __init__(self, fragment=None, error=None, display_name="Stub", delay_event=None):
        self.fragment = fragment
        self.error = error
        self.display_name = display_name
        self.calls = 0
        self.threads: list[str] = []
        self.delay_event = delay_event

    def enrich(self, record: GameRecord, cancel=None):
        self.calls += 1
        self.threads.append(threading.current_thread().name)
        if self.delay_event is not None:
            self.delay_event.wait(2)
        if self.error:
            raise self.error
        return self.fragment


def core() -> GameRecord:
    return record_from_row(CORE_ROW)


class TestParsing:
    def test_record_from_row(self) -> None:
        record = core()
        assert record.id == 12345
        assert record.title == "Sample VN"
        assert record.release_date == date(2020, 4, 24)
        assert record.median == 82
        assert record.review_count == 456
        assert record.dmm_subsc_id is None
        assert record.dlsite_domain is None
        assert record.is_adult is True

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("2020-04-24", date(2020, 4, 24)),
            ("2030-01-01", None),
            ("2099-12-31", None),
            ("", None),
            (None, None),
            ("2020/04/24", None),
        ],
    )
    def test_parse_date(self, raw, expected) -> None:
        assert parse_date(raw) == expected

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("SF仕立てのゲーム", "SF"),
            ("学園もののゲーム", "学園もの"),
            ("泣きゲー", "泣き"),
            ("夏ゲー", "夏"),
            ("鬱系のゲーム", "鬱系"),
            ("シリアスなゲーム", "シリアスな"),
            ("燃え系ゲーム", "燃え系"),
            ("シリアスな作品", "シリアス"),
            ("ゲーム", "ゲーム"),
            ("純愛", "純愛"),
        ],
    )
    def test_simplify_tag(self, raw: str, expected: str) -> None:
        assert simplify_tag(raw) == expected


class TestEnrichmentRows:
    def test_tags_series_features(self) -> None:
        record = core()
        apply_enrichment_rows(record, ENRICHMENT_ROWS)
        assert record.tags == ["学園もの", "SF", "泣き"]
        assert record.series == "Sample series"
        assert record.features == ["フルボイス"]

    def test_custom_threshold(self) -> None:
        record = core()
        apply_enrichment_rows(record, ENRICHMENT_ROWS, tag_groups=["傾向"], tag_min_count=1)
        assert record.tags == ["泣き", "夏"]


class TestMergePolicy:
    def test_storefront_description_wins(self) -> None:
        merged = merge_record(
            core(),
            StorefrontFragment(description="A"),
            CatalogFragment(description="B"),
            VndbFragment(description="C"),
        )
        assert merged.description == "A"

    def test_catalog_before_introduction(self) -> None:
        record = core()
        record.introduction = "Plain sentence."
        merged = merge_record(
            record, StorefrontFragment(), CatalogFragment(description="B"), VndbFragment()
        )
        assert merged.description == "B"

    def test_introduction_text_used_when_sources_empty(self) -> None:
        record = core()
        record.introduction = "A plain sentence about the game."
        merged = merge_record(
            record, StorefrontFragment(), CatalogFragment(), VndbFragment()
        )
        assert merged.description == "A plain sentence about the game."

    def test_introduction_text_beats_vndb(self) -> None:
        record = core()
        record.introduction = "Japanese synopsis"
        merged = merge_record(
            record, StorefrontFragment(), CatalogFragment(), VndbFragment(description="English")
        )
        assert merged.description == "Japanese synopsis"

    def test_introduction_url_skipped_for_vndb(self) -> None:
        merged = merge_record(
            core(), StorefrontFragment(), CatalogFragment(), VndbFragment(description="C")
        )
        assert merged.description == "C"

    def test_nothing_available(self) -> None:
        merged = merge_record(core(), StorefrontFragment(), CatalogFragment(), VndbFragment())
        assert merged.description is None

    def test_genres_from_storefront(self) -> None:
        merged = merge_record(
            core(), StorefrontFragment(genres=["Drama"]), CatalogFragment(), VndbFragment()
        )
        assert merged.genres == ["Drama"]

    def test_genres_fall_back_to_official_genre(self) -> None:
        merged = merge_record(core(), StorefrontFragment(), CatalogFragment(), VndbFragment())
        assert merged.genres == ["学園ADV"]

    def test_images_from_vndb(self) -> None:
        vndb = VndbFragment(
            cover_url="https://t.vndb.org/cv/1.jpg",
            cover_is_portrait=True,
            screenshot_urls=["https://t.vndb.org/sf/1.jpg"],
        )
        merged = merge_record(core(), StorefrontFragment(), CatalogFragment(), vndb)
        assert merged.vndb_cover_url == "https://t.vndb.org/cv/1.jpg"
        assert merged.vndb_cover_is_portrait is True
        assert merged.background_urls == ["https://t.vndb.org/sf/1.jpg"]
        assert merged.cover_url == "https://t.vndb.org/cv/1.jpg"

    def test_core_is_not_mutated(self) -> None:
        record = core()
        merge_record(record, StorefrontFragment("A", ["Drama"]), CatalogFragment(), VndbFragment())
        assert record.description is None
        assert record.genres == []


class TestAggregator:
    def test_scenario_storefront_description_and_genres(self) -> None:
        storefront = StubProvider(StorefrontFragment("Short intro", ["Drama"]))
        catalog = StubProvider(CatalogFragment("Catalog text"))
        vndb = StubProvider(VndbFragment(description="English"))
        aggregator = Aggregator(FakeGateway(), storefront, catalog, vndb)

        record = aggregator.resolve(12345)

        assert record is not None
        assert record.title == "Sample VN"
        assert record.dlsite_id == "VJ000001"
        assert record.description == "Short intro"
        assert record.genres == ["Drama"]
        assert record.tags == ["学園もの", "SF", "泣き"]
        # the catalog is only consulted when the storefront has no synopsis
        assert catalog.calls == 0

    def test_catalog_consulted_without_storefront_text(self) -> None:
        catalog = StubProvider(CatalogFragment("Once upon a time..."))
        aggregator = Aggregator(
            FakeGateway(),
            StubProvider(StorefrontFragment()),
            catalog,
            StubProvider(VndbFragment()),
        )
        record = aggregator.resolve(12345)
        assert record.description == "Once upon a time..."
        assert catalog.calls == 1

    def test_unknown_id(self) -> None:
        aggregator = Aggregator(FakeGateway(core_rows=[]))
        assert aggregator.resolve(1) is None

    def test_failing_source_is_isolated(self) -> None:
        storefront = StubProvider(error=httpx.ConnectError("refused"), display_name="DLsite")
        vndb = StubProvider(VndbFragment(description="English", screenshot_urls=["s"]))
        aggregator = Aggregator(FakeGateway(), storefront, None, vndb)

        record = aggregator.resolve(12345)

        assert record.description == "English"
        assert record.background_urls == ["s"]
        assert record.genres == ["学園ADV"]

    def test_tag_query_failure_is_isolated(self) -> None:
        gateway = FakeGateway(enrichment_error=httpx.ReadTimeout("slow"))
        record = Aggregator(gateway).resolve(12345)
        assert record is not None
        assert record.tags == []
        assert record.series is None

    def test_storefront_and_vndb_run_concurrently(self) -> None:
        both_started = threading.Barrier(2, timeout=2)

        class BarrierProvider(StubProvider):
            def enrich(self, record, cancel=None):
                both_started.wait()
                return super().enrich(record, cancel)

        storefront = BarrierProvider(StorefrontFragment("A"))
        vndb = BarrierProvider(VndbFragment())
        record = Aggregator(FakeGateway(), storefront, None, vndb).resolve(12345)

        assert record.description == "A"
        assert storefront.threads[0] != vndb.threads[0]

    def test_cancellation_propagates(self) -> None:
        cancel = CancelToken()
        cancel.cancel()
        with pytest.raises(CancelledError):
            Aggregator(FakeGateway()).resolve(12345, cancel)

    def test_cancellation_from_source_propagates(self) -> None:
        storefront = StubProvider(error=CancelledError())
        with pytest.raises(CancelledError):
            Aggregator(FakeGateway(), storefront, None, None).resolve(12345)

    def test_core_query_error_propagates(self) -> None:
        class BrokenGateway(FakeGateway):
            def execute(self, sql, cancel=None):
                raise httpx.ConnectError("refused")

        with pytest.raises(httpx.ConnectError):
            Aggregator(BrokenGateway()).resolve(12345)
