"""Async client for the Polymarket data API trade feed."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from polymarket_insider_finder.ingestor.models import FeedParseError, FeedTrade
from polymarket_insider_finder.ingestor.retry import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BASE_DELAY,
    RETRY_STATUS_CODES,
    RateLimiter,
    RetryError,
    with_async_retry,
)

logger = logging.getLogger(__name__)

DEFAULT_DATA_API_URL = "https://data-api.polymarket.com"
DEFAULT_PAGE_SIZE = 100
DEFAULT_HISTORY_MAX_RECORDS = 1100


class DataApiError(Exception):
    """Raised when the data API cannot be read."""


class DataApiTransientError(DataApiError):
    """Retryable data API failure (429/5xx or transport error)."""


class DataApiClient:
    """Paginated reader for the ``/trades`` endpoint.

    Every request waits for the fixed inter-call delay and transient failures
    are retried with exponential backoff. Exhausted retries surface as
    :class:`DataApiError`.
    """

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_DATA_API_URL,
        request_delay_seconds: float = 0.2,
        timeout_seconds: float = 30.0,
        page_size: int = DEFAULT_PAGE_SIZE,
        history_max_records: int = DEFAULT_HISTORY_MAX_RECORDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._transport = transport
        self.page_size = page_size
        self.history_max_records = history_max_records
        self._rate_limiter = RateLimiter(request_delay_seconds)
        self._client: httpx.AsyncClient | None = None

        self._get_json = with_async_retry(
            max_retries=max_retries,
            base_delay=retry_base_delay,
            retry_on=(DataApiTransientError,),
        )(self._get_json_once)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers={"Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def _get_json_once(self, path: str, params: dict[str, Any]) -> Any:
        await self._rate_limiter.acquire()
        client = await self._get_client()
        try:
            response = await client.get(path, params=params)
        except httpx.TransportError as e:
            raise DataApiTransientError(f"GET {path} failed: {e}") from e

        if response.status_code in RETRY_STATUS_CODES:
            raise DataApiTransientError(f"GET {path} returned HTTP {response.status_code}")
        if response.status_code >= 400:
            raise DataApiError(f"GET {path} returned HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise DataApiError(f"GET {path} returned invalid JSON") from e

    async def _get_trades(self, params: dict[str, Any]) -> tuple[list[FeedTrade], int]:
        """Return the parsed trades of one page and the raw record count."""
        try:
            payload = await self._get_json("/trades", params)
        except RetryError as e:
            raise DataApiError(str(e.last_exception or e)) from e

        if not isinstance(payload, list):
            raise DataApiError("Unexpected /trades response shape")

        trades: list[FeedTrade] = []
        skipped = 0
        for raw in payload:
            if not isinstance(raw, dict):
                skipped += 1
                continue
            try:
                trades.append(FeedTrade.from_dict(raw))
            except FeedParseError:
                skipped += 1
        if skipped:
            logger.debug("Skipped %d malformed trade records", skipped)
        return trades, len(payload)

    async def fetch_trades_page(self, offset: int, limit: int | None = None) -> list[FeedTrade]:
        """Fetch one newest-first page of the global trade feed."""
        trades, _ = await self._get_trades({"offset": offset, "limit": limit or self.page_size})
        return trades

    async def fetch_full_history(
        self,
        address: str,
        *,
        stop_after: int | None = None,
    ) -> list[FeedTrade]:
        """Fetch a wallet's trade history, newest first.

        Paging ends on a short or empty page, once ``history_max_records``
        records are held, or once ``stop_after`` records are held.
        """
        cap = self.history_max_records
        if stop_after is not None:
            cap = min(cap, stop_after)

        history: list[FeedTrade] = []
        offset = 0
        while len(history) < cap:
            page, raw_count = await self._get_trades(
                {"user": address.lower(), "offset": offset, "limit": self.page_size}
            )
            history.extend(page)
            if raw_count < self.page_size:
                break
            offset += self.page_size

        return history[:cap]
