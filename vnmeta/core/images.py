"""Cover/background image download."""

from __future__ import annotations

import httpx
from loguru import logger

from vnmeta.core.http import send_cancellable
from vnmeta.core.rate_limiter import CancelToken


def fetch_image_bytes(
    client: httpx.Client, url: str, cancel: CancelToken | None = None
) -> bytes | None:
    """Download *url*; None unless the response is a 2xx ``image/*``."""
    if not url:
        return None
    try:
        resp = send_cancellable(client, "GET", url, cancel)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(f"Image download failed ({url}): {e}")
        return None

    content_type = resp.headers.get("content-type", "")
    if not content_type.lower().startswith("image/"):
        logger.warning(f"Not an image ({content_type or 'no content type'}): {url}")
        return None
    return resp.content
