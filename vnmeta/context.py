"""Application context — service container and the surface exposed to hosts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from vnmeta.core.aggregator import Aggregator
from vnmeta.core.gateway import QueryGateway
from vnmeta.core.http import create_client
from vnmeta.core.images import fetch_image_bytes
from vnmeta.core.rate_limiter import get_rate_limiter
from vnmeta.core.search import SearchResolver
from vnmeta.scrapers.dlsite import DLsiteProvider
from vnmeta.scrapers.getchu import GetchuProvider
from vnmeta.scrapers.vndb import API_URL as VNDB_API_URL, VNDBProvider

if TYPE_CHECKING:
    from vnmeta.config import Config
    from vnmeta.core.rate_limiter import CancelToken, RateLimiter
    from vnmeta.models.game_record import GameRecord, SearchCandidate


@dataclass
class AppContext:
    """
    Central service container.

    Hosts (the CLI, a launcher plugin) receive this and only talk to
    :meth:`search`, :meth:`resolve`, :meth:`resolve_automatic` and
    :meth:`fetch_image_bytes`.
    """

    config: Config
    client: httpx.Client
    gateway: QueryGateway
    aggregator: Aggregator
    resolver: SearchResolver

    def search(
        self, keyword: str, cancel: CancelToken | None = None
    ) -> list[SearchCandidate]:
        return self.resolver.search(keyword, cancel)

    def resolve(self, game_id: int, cancel: CancelToken | None = None) -> GameRecord | None:
        return self.resolver.resolve(game_id, cancel)

    def resolve_automatic(
        self, name: str, cancel: CancelToken | None = None
    ) -> GameRecord | None:
        return self.resolver.resolve_automatic(name, cancel)

    def fetch_image_bytes(
        self, url: str, cancel: CancelToken | None = None
    ) -> bytes | None:
        return fetch_image_bytes(self.client, url, cancel)

    def close(self) -> None:
        self.client.close()


def create_context(
    config: Config,
    rate_limiter: RateLimiter | None = None,
    transport: httpx.BaseTransport | None = None,
) -> AppContext:
    """Wire all services and return an AppContext."""
    client_kwargs = {"transport": transport} if transport is not None else {}
    client = create_client(config, **client_kwargs)

    limiter = rate_limiter or get_rate_limiter(config.rate_limit_ms)
    gateway = QueryGateway.from_config(config, limiter, client)

    # Enrichment sources (each can be switched off in config)
    storefront = DLsiteProvider(client) if config.source_enabled("dlsite") else None
    catalog = GetchuProvider(client) if config.source_enabled("getchu") else None
    vndb = None
    if config.source_enabled("vndb"):
        vndb = VNDBProvider(
            client,
            endpoint=config.vndb_endpoint or VNDB_API_URL,
            search_results=config.vndb_search_results,
        )

    aggregator = Aggregator(
        gateway,
        storefront=storefront,
        catalog=catalog,
        vndb=vndb,
        tag_groups=config.tag_groups,
        tag_min_count=config.tag_min_count,
    )
    resolver = SearchResolver(gateway, aggregator, limit=config.search_limit)

    return AppContext(
        config=config,
        client=client,
        gateway=gateway,
        aggregator=aggregator,
        resolver=resolver,
    )
