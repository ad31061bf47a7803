"""Wrapper around py-clob-client for market resolution and price lookups."""

import logging
from decimal import Decimal

from py_clob_client.client import ClobClient as BaseClobClient
from py_clob_client.exceptions import PolyApiException

from polymarket_insider_finder.ingestor.models import Market, MarketResolution
from polymarket_insider_finder.ingestor.retry import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BASE_DELAY,
    RETRY_STATUS_CODES,
    RateLimiter,
    with_retry,
)

logger = logging.getLogger(__name__)

DEFAULT_HOST = "https://clob.polymarket.com"
DEFAULT_MIN_REQUEST_INTERVAL = 0.1


class ClobClientError(Exception):
    """Base exception for ClobClient errors."""


class ClobClientNotFoundError(ClobClientError):
    """Raised when a requested resource does not exist (e.g., 404)."""


class ClobClientTransientError(ClobClientError):
    """Raised for retryable/transient errors (e.g., 429/5xx, network issues)."""


class ClobClient:
    """Read-only CLOB access with rate limiting and retry logic.

    Only public (Level 0) endpoints are used, so no credentials are needed.

    Example:
        >>> client = ClobClient()
        >>> resolution = client.get_resolution("0xcondition")
        >>> prices = client.get_latest_prices("0xcondition")
    """

    def __init__(
        self,
        *,
        host: str = DEFAULT_HOST,
        chain_id: int = 137,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        min_request_interval: float = DEFAULT_MIN_REQUEST_INTERVAL,
    ) -> None:
        """Initialize the CLOB client.

        Args:
            host: CLOB API endpoint URL.
            chain_id: Chain ID (Polygon=137).
            max_retries: Maximum retry attempts for transient failures.
            retry_base_delay: Base backoff delay in seconds.
            min_request_interval: Minimum seconds between two requests.
        """
        self._host = host
        self._chain_id = chain_id
        self._max_retries = max_retries
        self._rate_limiter = RateLimiter(min_request_interval)
        self._client = BaseClobClient(host, chain_id=chain_id)

        self._fetch_market = with_retry(
            max_retries=max_retries,
            base_delay=retry_base_delay,
            retry_on=(ClobClientTransientError,),
        )(self._fetch_market_once)

        logger.info("Initialized ClobClient with host=%s", host)

    def _fetch_market_once(self, condition_id: str) -> Market:
        self._rate_limiter.acquire_sync()
        try:
            response = self._client.get_market(condition_id)
        except PolyApiException as e:
            status = getattr(e, "status_code", None)
            if status == 404:
                raise ClobClientNotFoundError(f"Market {condition_id} not found") from e
            if status in RETRY_STATUS_CODES:
                raise ClobClientTransientError(
                    f"Failed to fetch market {condition_id}: {e}"
                ) from e
            raise ClobClientError(f"Failed to fetch market {condition_id}: {e}") from e
        except Exception as e:
            raise ClobClientTransientError(f"Failed to fetch market {condition_id}: {e}") from e

        if not isinstance(response, dict) or not response.get("condition_id"):
            raise ClobClientNotFoundError(f"Market {condition_id} not found")
        return Market.from_dict(response)

    def get_market(self, condition_id: str) -> Market:
        """Fetch a specific market by its condition ID.

        Raises:
            ClobClientNotFoundError: If the market does not exist.
            RetryError: If transient failures outlast the retry budget.
            ClobClientError: For other API failures.
        """
        return self._fetch_market(condition_id)

    def get_resolution(self, condition_id: str) -> MarketResolution | None:
        """Return the resolution state of a market, or None if it is unknown."""
        try:
            market = self.get_market(condition_id)
        except ClobClientNotFoundError:
            logger.debug("Market %s not found while checking resolution", condition_id)
            return None
        return MarketResolution.from_market(market)

    def get_latest_prices(self, condition_id: str) -> dict[str, Decimal]:
        """Return the latest price per outcome name (empty if unknown)."""
        try:
            market = self.get_market(condition_id)
        except ClobClientNotFoundError:
            return {}
        return {t.outcome: t.price for t in market.tokens if t.price is not None}
