"""Abstract base class for enrichment sources."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

import httpx

from vnmeta.core.http import send_cancellable
from vnmeta.core.rate_limiter import CancelToken
from vnmeta.models.game_record import GameRecord

F = TypeVar("F")


class EnrichmentProvider(ABC, Generic[F]):
    """Turns a core game record into a partial metadata fragment.

    Implementations never raise for transport or parse problems; they log
    and return an empty fragment. Only cancellation propagates.
    """

    def __init__(self, client: httpx.Client) -> None:
        self._client = client

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this provider (e.g. 'dlsite', 'vndb')."""
        ...

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name (e.g. 'DLsite', 'VNDB')."""
        ...

    @abstractmethod
    def enrich(self, record: GameRecord, cancel: CancelToken | None = None) -> F:
        """Fetch this source's fragment for *record*."""
        ...

    def _send(
        self,
        method: str,
        url: str,
        cancel: CancelToken | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Issue one request; cancellation is honored until the body is read."""
        resp = send_cancellable(self._client, method, url, cancel, **kwargs)
        resp.raise_for_status()
        return resp
