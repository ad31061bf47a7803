"""Tests for the wallet detail view."""

from datetime import timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from factories import NOW
from polymarket_insider_finder.profiler.detail import (
    load_wallet_detail,
    summarize_positions,
    summarize_trades,
)
from polymarket_insider_finder.storage.repos import (
    BadgeDTO,
    BadgeRepository,
    TradeDTO,
    TradeRepository,
    WalletRepository,
)

ADDRESS = "0x" + "c" * 40


def _trade(**overrides) -> TradeDTO:
    values = {
        "wallet_id": 1,
        "market_id": "0xmarketA",
        "outcome_name": "Yes",
        "side": "BUY",
        "size": Decimal("100"),
        "price": Decimal("0.2"),
        "usd_value": Decimal("20"),
        "timestamp": NOW - timedelta(days=3),
        "transaction_hash": "0xt1",
        "market_question": "Will the bill pass?",
        "market_category": "politics",
    }
    values.update(overrides)
    return TradeDTO(**values)


async def _seed(session: AsyncSession) -> dict[str, int]:
    wallet, _ = await WalletRepository(session).upsert_discovered(
        address=ADDRESS,
        first_trade_at=NOW - timedelta(days=3),
        last_trade_at=NOW - timedelta(days=1),
        total_trades=3,
        total_volume=Decimal("85"),
    )
    trades = TradeRepository(session)
    await trades.upsert(_trade(wallet_id=wallet.id))
    await trades.upsert(
        _trade(
            wallet_id=wallet.id,
            transaction_hash="0xt2",
            price=Decimal("0.4"),
            usd_value=Decimal("40"),
            timestamp=NOW - timedelta(days=2),
        )
    )
    await trades.upsert(
        _trade(
            wallet_id=wallet.id,
            market_id="0xmarketB",
            outcome_name="No",
            transaction_hash="0xt3",
            size=Decimal("50"),
            price=Decimal("0.5"),
            usd_value=Decimal("25"),
            timestamp=NOW - timedelta(days=1),
            market_category=None,
        )
    )
    ids = {t.transaction_hash: t.id for t in await trades.list_for_wallet(wallet.id)}
    await trades.mark_resolved(
        ids["0xt1"], resolved_at=NOW, won=True, pnl=Decimal("80"), days_to_resolution=3
    )

    badges = BadgeRepository(session)
    await badges.upsert(
        BadgeDTO(
            wallet_id=wallet.id,
            badge_type="LONG_SHOT",
            reason="Bought at 20% probability and was correct",
            trade_id=ids["0xt1"],
            metadata={"price": 0.2},
        )
    )
    await badges.upsert(
        BadgeDTO(wallet_id=wallet.id, badge_type="FRESH_WALLET", reason="Wallet is only 3 days old")
    )
    return {"wallet": wallet.id, **ids}


class TestSummaries:
    """Tests for the position and trade summaries."""

    def test_positions_group_by_market_and_outcome(self) -> None:
        trades = [
            _trade(transaction_hash="0xt2", price=Decimal("0.4"), usd_value=Decimal("40")),
            _trade(resolved=True, won=True, pnl=Decimal("80")),
            _trade(market_id="0xmarketB", outcome_name="No", usd_value=Decimal("25")),
        ]

        active, resolved = summarize_positions(trades)

        (position,) = resolved
        assert position.market_id == "0xmarketA"
        assert position.total_size == Decimal("200")
        assert position.total_value == Decimal("60")
        assert position.avg_price == Decimal("0.3")
        assert position.won is True
        assert position.pnl == Decimal("80")
        assert [p.market_id for p in active] == ["0xmarketB"]

    def test_trade_summary(self) -> None:
        trades = [
            _trade(pnl=Decimal("80")),
            _trade(usd_value=Decimal("40")),
            _trade(market_id="0xmarketB", usd_value=Decimal("30"), market_category=None),
        ]

        summary = summarize_trades(trades)

        assert summary.total_pnl == Decimal("80")
        assert summary.avg_trade_size == Decimal("30")
        assert summary.largest_trade == Decimal("40")
        assert summary.unique_markets == 2
        assert summary.category_counts == {"politics": 2, "unknown": 1}

    def test_empty_trade_summary(self) -> None:
        summary = summarize_trades([])
        assert summary.total_pnl == Decimal(0)
        assert summary.largest_trade == Decimal(0)
        assert summary.category_counts == {}


class TestLoadWalletDetail:
    """Tests for load_wallet_detail."""

    async def test_unknown_wallet(self, async_session: AsyncSession) -> None:
        assert await load_wallet_detail(async_session, "0x" + "0" * 40) is None

    async def test_detail_by_address(self, async_session: AsyncSession) -> None:
        ids = await _seed(async_session)

        detail = await load_wallet_detail(async_session, ADDRESS.upper().replace("0X", "0x"))

        assert detail is not None
        assert [t.transaction_hash for t in detail.trades] == ["0xt3", "0xt2", "0xt1"]
        assert len(detail.resolved_positions) == 1
        assert len(detail.active_positions) == 1
        assert detail.stats.total_pnl == Decimal("80")
        assert detail.stats.unique_markets == 2

        payload = detail.to_dict()
        assert payload["wallet"]["address"] == ADDRESS
        assert {b["type"] for b in payload["badges"]} == {"LONG_SHOT", "FRESH_WALLET"}
        by_hash = {t["transactionHash"]: t for t in payload["trades"]}
        assert by_hash["0xt1"]["badges"] == [
            {"type": "LONG_SHOT", "reason": "Bought at 20% probability and was correct"}
        ]
        assert by_hash["0xt2"]["badges"] == []
        wallet_badge = next(b for b in payload["badges"] if b["type"] == "FRESH_WALLET")
        assert wallet_badge["tradeId"] is None
        assert payload["links"]["polymarket"] == f"https://polymarket.com/profile/{ADDRESS}"
        assert ids["wallet"] == payload["wallet"]["id"]

    async def test_detail_by_id(self, async_session: AsyncSession) -> None:
        ids = await _seed(async_session)

        detail = await load_wallet_detail(async_session, str(ids["wallet"]))

        assert detail is not None
        assert detail.wallet.address == ADDRESS


class TestBadgesForWallets:
    """Tests for BadgeRepository.list_for_wallets."""

    async def test_groups_by_wallet(self, async_session: AsyncSession) -> None:
        ids = await _seed(async_session)

        grouped = await BadgeRepository(async_session).list_for_wallets([ids["wallet"], 999])

        assert {b.badge_type for b in grouped[ids["wallet"]]} == {"LONG_SHOT", "FRESH_WALLET"}
        assert grouped[999] == []
