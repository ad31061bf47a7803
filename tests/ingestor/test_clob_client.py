"""Tests for ClobClient wrapper and the shared retry helpers."""

import time
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from py_clob_client.exceptions import PolyApiException

from polymarket_insider_finder.ingestor.clob_client import (
    ClobClient,
    ClobClientNotFoundError,
)
from polymarket_insider_finder.ingestor.models import Market, MarketResolution
from polymarket_insider_finder.ingestor.retry import (
    RateLimiter,
    RetryError,
    with_async_retry,
    with_retry,
)


def _api_error(status_code: int) -> PolyApiException:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = {"error": f"HTTP {status_code}"}
    return PolyApiException(resp=response)


def _market_payload(*, closed: bool, winner: str | None) -> dict:
    return {
        "condition_id": "0xabc",
        "question": "Will it happen?",
        "closed": closed,
        "tokens": [
            {"token_id": "t1", "outcome": "Yes", "price": 0.92, "winner": winner == "Yes"},
            {"token_id": "t2", "outcome": "No", "price": 0.08, "winner": winner == "No"},
        ],
    }


class TestRateLimiter:
    """Tests for RateLimiter."""

    def test_acquire_sync_no_wait_first_call(self) -> None:
        """First call should not wait."""
        limiter = RateLimiter(min_interval=0.1)
        start = time.monotonic()
        limiter.acquire_sync()
        elapsed = time.monotonic() - start

        # Should be nearly instant
        assert elapsed < 0.05

    def test_acquire_sync_enforces_delay(self) -> None:
        """Subsequent calls wait for the fixed interval."""
        limiter = RateLimiter(min_interval=0.1)

        limiter.acquire_sync()

        start = time.monotonic()
        limiter.acquire_sync()
        elapsed = time.monotonic() - start

        # Should wait at least 90ms (allowing some tolerance)
        assert elapsed >= 0.08

    async def test_acquire_async_enforces_delay(self) -> None:
        limiter = RateLimiter(min_interval=0.1)

        await limiter.acquire()
        start = time.monotonic()
        await limiter.acquire()

        assert time.monotonic() - start >= 0.08

    def test_zero_interval_never_waits(self) -> None:
        limiter = RateLimiter(min_interval=0)
        start = time.monotonic()
        for _ in range(5):
            limiter.acquire_sync()
        assert time.monotonic() - start < 0.05


class TestWithRetry:
    """Tests for retry decorators."""

    def test_success_first_try(self) -> None:
        """Function succeeds on first try."""
        call_count = 0

        @with_retry(max_retries=3)
        def succeed() -> str:
            nonlocal call_count
            call_count += 1
            return "success"

        assert succeed() == "success"
        assert call_count == 1

    def test_success_after_retries(self) -> None:
        """Function succeeds after some retries."""
        call_count = 0

        @with_retry(max_retries=3, base_delay=0.01)
        def succeed_eventually() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ValueError("Not yet")
            return "success"

        assert succeed_eventually() == "success"
        assert call_count == 3

    def test_exhausted_retries(self) -> None:
        """Raises RetryError after exhausting retries."""

        @with_retry(max_retries=2, base_delay=0.01)
        def always_fails() -> str:
            raise ValueError("Always fails")

        with pytest.raises(RetryError) as exc_info:
            always_fails()

        assert "3 attempts failed" in str(exc_info.value)
        assert isinstance(exc_info.value.last_exception, ValueError)

    def test_specific_exception_types(self) -> None:
        """Only retries on specified exception types."""
        call_count = 0

        @with_retry(max_retries=3, base_delay=0.01, retry_on=(ValueError,))
        def raise_type_error() -> str:
            nonlocal call_count
            call_count += 1
            raise TypeError("Not retried")

        with pytest.raises(TypeError):
            raise_type_error()

        # Should only be called once since TypeError is not in retry_on
        assert call_count == 1

    async def test_async_retry(self) -> None:
        call_count = 0

        @with_async_retry(max_retries=2, base_delay=0.01, retry_on=(ConnectionError,))
        async def flaky() -> int:
            nonlocal call_count
            call_count += 1
            if call_count == 1:
                raise ConnectionError("reset")
            return 42

        assert await flaky() == 42
        assert call_count == 2


class TestClobClient:
    """Tests for ClobClient wrapper."""

    @pytest.fixture
    def mock_base_client(self) -> MagicMock:
        """Create a mock base CLOB client."""
        with patch("polymarket_insider_finder.ingestor.clob_client.BaseClobClient") as mock:
            yield mock.return_value

    def _client(self) -> ClobClient:
        return ClobClient(retry_base_delay=0.01, min_request_interval=0)

    def test_init_defaults(self, mock_base_client: MagicMock) -> None:  # noqa: ARG002
        """Test client initialization with defaults."""
        client = ClobClient()

        assert client._host == "https://clob.polymarket.com"
        assert client._chain_id == 137
        assert client._max_retries == 3

    def test_get_market(self, mock_base_client: MagicMock) -> None:
        mock_base_client.get_market.return_value = _market_payload(closed=False, winner=None)

        market = self._client().get_market("0xabc")

        assert isinstance(market, Market)
        assert market.condition_id == "0xabc"
        assert len(market.tokens) == 2

    def test_get_market_404_is_not_retried(self, mock_base_client: MagicMock) -> None:
        mock_base_client.get_market.side_effect = _api_error(404)

        with pytest.raises(ClobClientNotFoundError):
            self._client().get_market("0xmissing")

        assert mock_base_client.get_market.call_count == 1

    def test_get_market_retries_transient_errors(self, mock_base_client: MagicMock) -> None:
        mock_base_client.get_market.side_effect = [
            _api_error(503),
            Exception("connection reset"),
            _market_payload(closed=True, winner="Yes"),
        ]

        market = self._client().get_market("0xabc")

        assert market.winning_outcome == "Yes"
        assert mock_base_client.get_market.call_count == 3

    def test_get_market_exhausts_retries(self, mock_base_client: MagicMock) -> None:
        """After all retries are exhausted a RetryError wraps the last failure."""
        mock_base_client.get_market.side_effect = Exception("Not reachable")

        with pytest.raises(RetryError) as exc_info:
            self._client().get_market("0xabc")

        assert exc_info.value.last_exception is not None
        assert mock_base_client.get_market.call_count == 4

    def test_get_resolution_resolved(self, mock_base_client: MagicMock) -> None:
        mock_base_client.get_market.return_value = _market_payload(closed=True, winner="No")

        resolution = self._client().get_resolution("0xabc")

        assert resolution == MarketResolution(resolved=True, winning_outcome="No")

    def test_get_resolution_unknown_market(self, mock_base_client: MagicMock) -> None:
        mock_base_client.get_market.return_value = {}

        assert self._client().get_resolution("0xmissing") is None

    def test_get_latest_prices(self, mock_base_client: MagicMock) -> None:
        mock_base_client.get_market.return_value = _market_payload(closed=False, winner=None)

        prices = self._client().get_latest_prices("0xabc")

        assert prices == {"Yes": Decimal("0.92"), "No": Decimal("0.08")}

    def test_get_latest_prices_unknown_market(self, mock_base_client: MagicMock) -> None:
        mock_base_client.get_market.side_effect = _api_error(404)

        assert self._client().get_latest_prices("0xmissing") == {}
