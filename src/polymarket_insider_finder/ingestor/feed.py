"""Market feed facade used by the scan pipeline."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from types import TracebackType
from typing import Protocol

from polymarket_insider_finder.config import PolymarketSettings
from polymarket_insider_finder.ingestor.clob_client import ClobClient, ClobClientError
from polymarket_insider_finder.ingestor.data_api import DataApiClient, DataApiError
from polymarket_insider_finder.ingestor.models import FeedTrade, MarketResolution
from polymarket_insider_finder.ingestor.retry import RetryError

logger = logging.getLogger(__name__)


class FeedUnavailableError(Exception):
    """Raised when the upstream market feed cannot be read."""


class MarketFeed(Protocol):
    """Read-only view of Polymarket used by the scanner and the profilers."""

    async def fetch_trades_page(self, offset: int, limit: int) -> list[FeedTrade]: ...

    async def fetch_full_history(
        self, address: str, *, stop_after: int | None = None
    ) -> list[FeedTrade]: ...

    async def get_resolution(self, market_id: str) -> MarketResolution | None: ...

    async def get_latest_prices(self, market_id: str) -> dict[str, Decimal]: ...


class MarketFeedClient:
    """Data API trades plus CLOB market lookups behind one async interface.

    All upstream failures are raised as :class:`FeedUnavailableError`.
    """

    def __init__(self, data_api: DataApiClient, clob: ClobClient) -> None:
        self._data_api = data_api
        self._clob = clob

    @classmethod
    def from_settings(cls, settings: PolymarketSettings) -> MarketFeedClient:
        data_api = DataApiClient(
            base_url=settings.data_api_url,
            request_delay_seconds=settings.request_delay_seconds,
            timeout_seconds=settings.timeout_seconds,
            page_size=settings.page_size,
            history_max_records=settings.history_max_records,
        )
        clob = ClobClient(
            host=settings.clob_host,
            chain_id=settings.clob_chain_id,
            min_request_interval=settings.request_delay_seconds,
        )
        return cls(data_api, clob)

    async def fetch_trades_page(self, offset: int, limit: int) -> list[FeedTrade]:
        try:
            return await self._data_api.fetch_trades_page(offset, limit)
        except DataApiError as e:
            raise FeedUnavailableError(f"Trade feed page at offset {offset} failed: {e}") from e

    async def fetch_full_history(
        self, address: str, *, stop_after: int | None = None
    ) -> list[FeedTrade]:
        try:
            return await self._data_api.fetch_full_history(address, stop_after=stop_after)
        except DataApiError as e:
            raise FeedUnavailableError(f"History fetch for {address} failed: {e}") from e

    async def get_resolution(self, market_id: str) -> MarketResolution | None:
        try:
            return await asyncio.to_thread(self._clob.get_resolution, market_id)
        except (ClobClientError, RetryError) as e:
            raise FeedUnavailableError(f"Resolution lookup for {market_id} failed: {e}") from e

    async def get_latest_prices(self, market_id: str) -> dict[str, Decimal]:
        try:
            return await asyncio.to_thread(self._clob.get_latest_prices, market_id)
        except (ClobClientError, RetryError) as e:
            raise FeedUnavailableError(f"Price lookup for {market_id} failed: {e}") from e

    async def close(self) -> None:
        await self._data_api.close()

    async def __aenter__(self) -> MarketFeedClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
