"""ErogameScape SQL gateway — rate-limited queries against the SQL form."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from loguru import logger

from vnmeta.core.extractors import parse_first_table
from vnmeta.core.http import send_cancellable
from vnmeta.core.rate_limiter import CancelToken, RateLimiter

if TYPE_CHECKING:
    from vnmeta.config import Config

SQL_ENDPOINT = (
    "https://erogamescape.dyndns.org/~ap2/ero/toukei_kaiseki/sql_for_erogamer_form.php"
)

LIKE_ESCAPE = "!"


def escape_like(text: str) -> str:
    """Escape user text for ``LIKE '%...%' ESCAPE '!'`` inside a quoted literal."""
    return (
        text.replace("'", "''")
        .replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", f"{LIKE_ESCAPE}%")
        .replace("_", f"{LIKE_ESCAPE}_")
    )


def search_sql(keyword: str, limit: int = 30) -> str:
    return (
        "SELECT g.id, g.gamename, g.furigana, g.sellday, g.median, g.count2, "
        "b.brandname "
        "FROM gamelist g LEFT JOIN brandlist b ON g.brandname = b.id "
        f"WHERE g.gamename LIKE '%{escape_like(keyword)}%' ESCAPE '{LIKE_ESCAPE}' "
        f"ORDER BY g.count2 DESC LIMIT {int(limit)}"
    )


def game_sql(game_id: int) -> str:
    return (
        "SELECT g.id, g.gamename, g.furigana, g.sellday, g.median, g.average2, g.count2, "
        "g.dmm, g.dmm_subsc, g.genre, g.shoukai, g.dlsite_id, g.dlsite_domain, "
        "g.erogame, b.brandname, b.url "
        "FROM gamelist g LEFT JOIN brandlist b ON g.brandname = b.id "
        f"WHERE g.id = {int(game_id)}"
    )


def enrichment_sql(game_id: int) -> str:
    """Tags, series and features in one statement to save rate-limit waits."""
    gid = int(game_id)
    return (
        "(SELECT 'tag' AS src, p.title AS val, p.system_group AS grp, pt.count AS cnt "
        "FROM povgroups_toukei pt JOIN povlist p ON pt.pov = p.id "
        f"WHERE pt.game = {gid} ORDER BY pt.count DESC) "
        "UNION ALL "
        "(SELECT 'series', g.name, '', 0 "
        "FROM belong_to_gamegroup_list b JOIN gamegrouplist g ON b.gamegroup = g.id "
        f"WHERE b.game = {gid} LIMIT 1) "
        "UNION ALL "
        "(SELECT 'feature', al.title, '', 0 "
        "FROM attributegroupsboolean ab JOIN attributelist al ON ab.attribute = al.id "
        f"WHERE ab.game = {gid} AND ab.boolean = true)"
    )


class QueryGateway:
    """Issues SQL through the ErogameScape form and returns HTML table rows.

    All gateways built by the application share one :class:`RateLimiter`,
    so the courtesy spacing holds across unrelated resolutions.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        client: httpx.Client,
        endpoint: str = SQL_ENDPOINT,
    ) -> None:
        self._limiter = rate_limiter
        self._client = client
        self._endpoint = endpoint

    @classmethod
    def from_config(
        cls, config: Config, rate_limiter: RateLimiter, client: httpx.Client
    ) -> QueryGateway:
        return cls(rate_limiter, client, endpoint=config.sql_endpoint or SQL_ENDPOINT)

    def execute(self, sql: str, cancel: CancelToken | None = None) -> list[dict[str, str]]:
        """Run *sql* and return the first result table as ``column -> value`` rows.

        Raises ``httpx.HTTPError`` on transport failure or a non-2xx status.
        """
        self._limiter.acquire(cancel)
        logger.debug(f"ErogameScape SQL: {sql}")

        resp = send_cancellable(
            self._client, "POST", self._endpoint, cancel, data={"sql": sql}
        )
        resp.raise_for_status()

        rows = parse_first_table(resp.text)
        logger.debug(f"ErogameScape SQL returned {len(rows)} row(s)")
        return rows
