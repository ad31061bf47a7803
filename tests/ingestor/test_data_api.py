"""Tests for the data API trade feed client."""

import httpx
import pytest

from polymarket_insider_finder.ingestor.data_api import DataApiClient, DataApiError

WALLET = "0x" + "a" * 40


def _record(index: int, *, wallet: str = WALLET) -> dict:
    return {
        "proxyWallet": wallet,
        "side": "BUY",
        "conditionId": f"0xmarket{index % 3}",
        "size": 100 + index,
        "price": 0.5,
        "timestamp": 1792324800 - index * 60,
        "title": "Will the bill pass?",
        "slug": "will-the-bill-pass",
        "outcome": "Yes",
        "transactionHash": f"0xtx{index}",
    }


def _client(handler, **kwargs) -> DataApiClient:
    kwargs.setdefault("page_size", 10)
    return DataApiClient(
        base_url="https://data-api.test",
        request_delay_seconds=0,
        retry_base_delay=0.01,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestFetchTradesPage:
    """Tests for the global feed page reader."""

    async def test_passes_offset_and_limit(self) -> None:
        seen: list[httpx.QueryParams] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.params)
            assert request.url.path == "/trades"
            return httpx.Response(200, json=[_record(i) for i in range(3)])

        client = _client(handler)
        try:
            trades = await client.fetch_trades_page(200, 50)
        finally:
            await client.close()

        assert len(trades) == 3
        assert seen[0]["offset"] == "200"
        assert seen[0]["limit"] == "50"

    async def test_skips_malformed_records(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[_record(0), {"proxyWallet": WALLET}, "junk"])

        client = _client(handler)
        try:
            trades = await client.fetch_trades_page(0)
        finally:
            await client.close()

        assert [t.transaction_hash for t in trades] == ["0xtx0"]

    async def test_retries_server_errors(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                return httpx.Response(503)
            return httpx.Response(200, json=[_record(0)])

        client = _client(handler)
        try:
            trades = await client.fetch_trades_page(0)
        finally:
            await client.close()

        assert calls == 2
        assert len(trades) == 1

    async def test_exhausted_retries_raise_data_api_error(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(500)

        client = _client(handler, max_retries=2)
        try:
            with pytest.raises(DataApiError):
                await client.fetch_trades_page(0)
        finally:
            await client.close()

        assert calls == 3

    async def test_client_error_is_not_retried(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(400)

        client = _client(handler)
        try:
            with pytest.raises(DataApiError):
                await client.fetch_trades_page(0)
        finally:
            await client.close()

        assert calls == 1


class TestFetchFullHistory:
    """Tests for per-wallet history pagination."""

    def _paged_handler(self, total: int, offsets: list[int]):
        records = [_record(i) for i in range(total)]

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["user"] == WALLET
            offset = int(request.url.params["offset"])
            limit = int(request.url.params["limit"])
            offsets.append(offset)
            return httpx.Response(200, json=records[offset : offset + limit])

        return handler

    async def test_pages_until_short_page(self) -> None:
        offsets: list[int] = []
        client = _client(self._paged_handler(25, offsets))
        try:
            history = await client.fetch_full_history(WALLET.upper().replace("0X", "0x"))
        finally:
            await client.close()

        assert len(history) == 25
        assert offsets == [0, 10, 20]

    async def test_stop_after_limits_requests(self) -> None:
        offsets: list[int] = []
        client = _client(self._paged_handler(100, offsets))
        try:
            history = await client.fetch_full_history(WALLET, stop_after=11)
        finally:
            await client.close()

        assert len(history) == 11
        assert offsets == [0, 10]

    async def test_history_cap(self) -> None:
        offsets: list[int] = []
        client = _client(self._paged_handler(100, offsets), history_max_records=30)
        try:
            history = await client.fetch_full_history(WALLET)
        finally:
            await client.close()

        assert len(history) == 30
        assert offsets == [0, 10, 20]

    async def test_exact_page_multiple_ends_on_empty_page(self) -> None:
        offsets: list[int] = []
        client = _client(self._paged_handler(20, offsets))
        try:
            history = await client.fetch_full_history(WALLET)
        finally:
            await client.close()

        assert len(history) == 20
        assert offsets == [0, 10, 20]
