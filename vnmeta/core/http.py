"""Shared httpx client construction."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from vnmeta.core.rate_limiter import CancelToken, check_cancelled

if TYPE_CHECKING:
    from vnmeta.config import Config

DEFAULT_TIMEOUT = 15


def create_client(config: Config | None = None, **kwargs: Any) -> httpx.Client:
    """Create an httpx Client with the configured timeout, user agent and proxy."""
    headers = dict(kwargs.pop("headers", {}) or {})
    if config is not None:
        kwargs.setdefault("timeout", config.timeout)
        if config.user_agent:
            headers.setdefault("User-Agent", config.user_agent)
        if config.proxy_url and "transport" not in kwargs:
            kwargs.setdefault("proxy", config.proxy_url)
    kwargs.setdefault("timeout", DEFAULT_TIMEOUT)
    kwargs.setdefault("follow_redirects", True)
    return httpx.Client(headers=headers, **kwargs)


def send_cancellable(
    client: httpx.Client,
    method: str,
    url: str,
    cancel: CancelToken | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request and read its body in chunks, checking *cancel* between them.

    The returned response is fully read. A cancelled transfer closes the
    connection and raises ``CancelledError``. Status codes are not checked.
    """
    check_cancelled(cancel)
    resp = client.send(client.build_request(method, url, **kwargs), stream=True)
    try:
        chunks: list[bytes] = []
        for chunk in resp.iter_bytes():
            check_cancelled(cancel)
            chunks.append(chunk)
        check_cancelled(cancel)
    finally:
        resp.close()

    # The body is already decoded; drop the headers describing the wire form
    headers = resp.headers.copy()
    for name in ("content-encoding", "content-length", "transfer-encoding"):
        headers.pop(name, None)
    return httpx.Response(
        resp.status_code,
        headers=headers,
        content=b"".join(chunks),
        request=resp.request,
    )
