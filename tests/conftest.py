"""Shared fixtures: mocked HTTP transport and zero-spacing rate limiter."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import httpx
import pytest

from vnmeta.config import Config, reset_config
from vnmeta.core.gateway import QueryGateway
from vnmeta.core.rate_limiter import RateLimiter, reset_rate_limiter

Handler = Callable[[httpx.Request], httpx.Response]


def html_table(headers: list[str], rows: list[list[str]]) -> str:
    """Render an ErogameScape-style SQL result page."""
    head = "".join(f"<th>{h}</th>" for h in headers)
    body = "".join(
        "<tr>" + "".join(f"<td>{cell}</td>" for cell in row) + "</tr>" for row in rows
    )
    return f"<html><body><p>result</p><table><tr>{head}</tr>{body}</table></body></html>"


@pytest.fixture(autouse=True)
def _clean_globals():
    reset_config()
    reset_rate_limiter()
    yield
    reset_config()
    reset_rate_limiter()


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(config_dir=tmp_path)


@pytest.fixture
def make_client() -> Callable[[Handler], httpx.Client]:
    clients: list[httpx.Client] = []

    def _make(handler: Handler) -> httpx.Client:
        client = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.close()


@pytest.fixture
def no_wait_limiter() -> RateLimiter:
    return RateLimiter(interval_ms=0)


@pytest.fixture
def make_gateway(
    make_client: Callable[[Handler], httpx.Client], no_wait_limiter: RateLimiter
) -> Callable[[Handler], QueryGateway]:
    def _make(handler: Handler) -> QueryGateway:
        return QueryGateway(no_wait_limiter, make_client(handler))

    return _make
