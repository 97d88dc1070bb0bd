"""Tests for the ErogameScape SQL gateway."""

from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest

from conftest import html_table
from vnmeta.core.gateway import (
    SQL_ENDPOINT,
    enrichment_sql,
    escape_like,
    game_sql,
    search_sql,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("plain", "plain"),
        ("it's", "it''s"),
        ("100%", "100!%"),
        ("a_b", "a!_b"),
        ("wow!", "wow!!"),
        ("!%_'", "!!!%!_''"),
    ],
)
def test_escape_like(raw: str, expected: str) -> None:
    assert escape_like(raw) == expected


class TestQueries:
    def test_search_sql_escapes_keyword(self) -> None:
        sql = search_sql("50%_off's", limit=10)
        assert "LIKE '%50!%!_off''s%' ESCAPE '!'" in sql
        assert sql.endswith("ORDER BY g.count2 DESC LIMIT 10")

    def test_game_sql_uses_integer_id(self) -> None:
        assert game_sql(12345).endswith("WHERE g.id = 12345")

    def test_enrichment_sql_covers_three_sources(self) -> None:
        sql = enrichment_sql(7)
        assert sql.count("UNION ALL") == 2
        assert "pt.game = 7" in sql
        assert "b.game = 7" in sql
        assert "ab.game = 7" in sql


class TestExecute:
    def test_posts_form_encoded_sql(self, make_gateway) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, text=html_table(["id", "gamename"], [["1", "Sample VN"]])
            )

        rows = make_gateway(handler).execute("SELECT id, gamename FROM gamelist")

        assert rows == [{"id": "1", "gamename": "Sample VN"}]
        assert seen[0].method == "POST"
        assert str(seen[0].url) == SQL_ENDPOINT
        form = parse_qs(seen[0].content.decode())
        assert form["sql"] == ["SELECT id, gamename FROM gamelist"]

    def test_no_table_returns_empty(self, make_gateway) -> None:
        gateway = make_gateway(lambda r: httpx.Response(200, text="<p>SQL error</p>"))
        assert gateway.execute("SELECT") == []

    def test_error_status_raises(self, make_gateway) -> None:
        gateway = make_gateway(lambda r: httpx.Response(503, text="busy"))
        with pytest.raises(httpx.HTTPStatusError):
            gateway.execute("SELECT")
