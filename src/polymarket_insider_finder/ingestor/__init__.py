"""Data ingestion layer - Polymarket trade feed and market lookups."""

from polymarket_insider_finder.ingestor.categories import classify_market_category
from polymarket_insider_finder.ingestor.clob_client import ClobClient, ClobClientError
from polymarket_insider_finder.ingestor.data_api import DataApiClient, DataApiError
from polymarket_insider_finder.ingestor.feed import (
    FeedUnavailableError,
    MarketFeed,
    MarketFeedClient,
)
from polymarket_insider_finder.ingestor.models import (
    FeedTrade,
    Market,
    MarketResolution,
    Token,
)
from polymarket_insider_finder.ingestor.retry import RetryError

__all__ = [
    "ClobClient",
    "ClobClientError",
    "DataApiClient",
    "DataApiError",
    "FeedTrade",
    "FeedUnavailableError",
    "Market",
    "MarketFeed",
    "MarketFeedClient",
    "MarketResolution",
    "RetryError",
    "Token",
    "classify_market_category",
]
