"""Tests for the badge rules."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from polymarket_insider_finder.detector.badges import (
    big_bet,
    evaluate_badges,
    first_mover,
    fresh_wallet,
    high_win_rate,
    late_winner,
    long_shot,
    pre_move,
    single_market,
)
from polymarket_insider_finder.detector.models import (
    BadgeThresholds,
    BadgeType,
    TradeFacts,
)
from polymarket_insider_finder.profiler.stats import WalletStats

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


@pytest.fixture
def thresholds() -> BadgeThresholds:
    return BadgeThresholds()


def _stats(
    *,
    first_trade_days_ago: float = 30,
    total_volume: str = "1000",
    resolved: int = 0,
    won: int = 0,
) -> WalletStats:
    return WalletStats(
        total_trades=3,
        total_volume=Decimal(total_volume),
        resolved_trades=resolved,
        won_trades=won,
        win_rate=won / resolved if resolved else None,
        first_trade_at=NOW - timedelta(days=first_trade_days_ago),
        last_trade_at=NOW,
    )


def _facts(trade_id: int = 1, **overrides) -> TradeFacts:
    values = {
        "trade_id": trade_id,
        "market_id": "0xmarket",
        "usd_value": Decimal("100"),
        "price": Decimal("0.5"),
        "price_at_trade": Decimal("0.5"),
    }
    values.update(overrides)
    return TradeFacts(**values)


class TestFreshWallet:
    """Tests for the fresh wallet rule."""

    def test_seven_days_is_fresh(self, thresholds: BadgeThresholds) -> None:
        (badge,) = fresh_wallet(_stats(first_trade_days_ago=7), [], NOW, thresholds)

        assert badge.badge_type is BadgeType.FRESH_WALLET
        assert badge.trade_id is None
        assert badge.reason == "Wallet is only 7 days old"
        assert badge.metadata == {"walletAgeDays": 7}

    def test_eight_days_is_not_fresh(self, thresholds: BadgeThresholds) -> None:
        assert fresh_wallet(_stats(first_trade_days_ago=8), [], NOW, thresholds) == []

    def test_partial_days_are_floored(self, thresholds: BadgeThresholds) -> None:
        (badge,) = fresh_wallet(_stats(first_trade_days_ago=1.5), [], NOW, thresholds)
        assert badge.reason == "Wallet is only 1 day old"


class TestSingleMarket:
    """Tests for the single market rule."""

    def test_all_trades_on_one_market(self, thresholds: BadgeThresholds) -> None:
        trades = [_facts(1), _facts(2), _facts(3)]

        (badge,) = single_market(_stats(), trades, NOW, thresholds)

        assert badge.reason == "All 3 trades on a single market"

    def test_two_markets(self, thresholds: BadgeThresholds) -> None:
        trades = [_facts(1), _facts(2, market_id="0xother")]
        assert single_market(_stats(), trades, NOW, thresholds) == []

    def test_no_trades(self, thresholds: BadgeThresholds) -> None:
        assert single_market(_stats(), [], NOW, thresholds) == []


class TestHighWinRate:
    """Tests for the high win rate rule."""

    def test_awarded(self, thresholds: BadgeThresholds) -> None:
        (badge,) = high_win_rate(_stats(resolved=5, won=4), [], NOW, thresholds)
        assert badge.reason == "Won 80% of 5 resolved positions"
        assert badge.metadata == {"winRate": 0.8, "resolvedTrades": 5}

    def test_needs_enough_resolved_trades(self, thresholds: BadgeThresholds) -> None:
        assert high_win_rate(_stats(resolved=1, won=1), [], NOW, thresholds) == []

    def test_below_threshold(self, thresholds: BadgeThresholds) -> None:
        assert high_win_rate(_stats(resolved=4, won=3), [], NOW, thresholds) == []

    def test_no_resolved_trades(self, thresholds: BadgeThresholds) -> None:
        assert high_win_rate(_stats(), [], NOW, thresholds) == []


class TestBigBet:
    """Tests for the big bet rule."""

    def test_trade_above_half_of_volume(self, thresholds: BadgeThresholds) -> None:
        trades = [_facts(1, usd_value=Decimal("600")), _facts(2, usd_value=Decimal("400"))]

        (badge,) = big_bet(_stats(total_volume="1000"), trades, NOW, thresholds)

        assert badge.trade_id == 1
        assert badge.reason == "Trade was 60% of total volume"
        assert badge.metadata == {"tradeValue": 600.0, "totalVolume": 1000.0}

    def test_exactly_half_is_not_big(self, thresholds: BadgeThresholds) -> None:
        trades = [_facts(1, usd_value=Decimal("500")), _facts(2, usd_value=Decimal("500"))]
        assert big_bet(_stats(total_volume="1000"), trades, NOW, thresholds) == []

    def test_zero_volume(self, thresholds: BadgeThresholds) -> None:
        assert big_bet(_stats(total_volume="0"), [_facts(1)], NOW, thresholds) == []


class TestLongShot:
    """Tests for the long shot rule."""

    def test_winning_long_shot(self, thresholds: BadgeThresholds) -> None:
        (badge,) = long_shot(_stats(), [_facts(7, price=Decimal("0.2"), won=True)], NOW, thresholds)

        assert badge.trade_id == 7
        assert badge.reason == "Bought at 20% probability and was correct"

    @pytest.mark.parametrize(
        ("price", "won"),
        [("0.2", False), ("0.2", None), ("0.25", True), ("0.6", True)],
    )
    def test_not_awarded(self, thresholds: BadgeThresholds, price: str, won: bool | None) -> None:
        trades = [_facts(1, price=Decimal(price), won=won)]
        assert long_shot(_stats(), trades, NOW, thresholds) == []


class TestPreMove:
    """Tests for the pre-move rule."""

    def test_price_rise(self, thresholds: BadgeThresholds) -> None:
        trades = [_facts(1, price_at_trade=Decimal("0.30"), price_24h_later=Decimal("0.55"))]

        (badge,) = pre_move(_stats(), trades, NOW, thresholds)

        assert badge.reason == "Price moved +25% within 24 hours"
        assert badge.metadata == {"priceAtTrade": 0.3, "price24hLater": 0.55}

    def test_price_drop(self, thresholds: BadgeThresholds) -> None:
        trades = [_facts(1, price_at_trade=Decimal("0.60"), price_24h_later=Decimal("0.35"))]

        (badge,) = pre_move(_stats(), trades, NOW, thresholds)

        assert badge.reason == "Price moved -25% within 24 hours"

    def test_small_move_or_no_capture(self, thresholds: BadgeThresholds) -> None:
        trades = [
            _facts(1, price_at_trade=Decimal("0.30"), price_24h_later=Decimal("0.40")),
            _facts(2, price_24h_later=None),
        ]
        assert pre_move(_stats(), trades, NOW, thresholds) == []


class TestLateWinner:
    """Tests for the late winner rule."""

    def test_awarded(self, thresholds: BadgeThresholds) -> None:
        trades = [_facts(1, won=True, days_to_resolution=3)]

        (badge,) = late_winner(_stats(), trades, NOW, thresholds)

        assert badge.reason == "Won bet placed 3 days before resolution"

    def test_not_awarded(self, thresholds: BadgeThresholds) -> None:
        trades = [
            _facts(1, won=True, days_to_resolution=8),
            _facts(2, won=False, days_to_resolution=1),
            _facts(3, won=True, days_to_resolution=None),
        ]
        assert late_winner(_stats(), trades, NOW, thresholds) == []


class TestFirstMover:
    """Tests for the first mover rule."""

    def test_awarded(self, thresholds: BadgeThresholds) -> None:
        (badge,) = first_mover(_stats(), [_facts(1, trader_rank=4)], NOW, thresholds)
        assert badge.reason == "Was trader #4 on this market"

    def test_late_rank_or_unknown(self, thresholds: BadgeThresholds) -> None:
        trades = [_facts(1, trader_rank=11), _facts(2)]
        assert first_mover(_stats(), trades, NOW, thresholds) == []


class TestEvaluateBadges:
    """Tests for evaluate_badges."""

    def test_rules_are_independent(self) -> None:
        stats = _stats(first_trade_days_ago=2, resolved=2, won=2)
        trades = [
            _facts(1, usd_value=Decimal("900"), price=Decimal("0.1"), won=True, days_to_resolution=2),
            _facts(2, usd_value=Decimal("100"), won=True, days_to_resolution=20),
        ]

        badges = evaluate_badges(stats, trades, NOW)

        assert {b.badge_type for b in badges} == {
            BadgeType.FRESH_WALLET,
            BadgeType.SINGLE_MARKET,
            BadgeType.HIGH_WIN_RATE,
            BadgeType.BIG_BET,
            BadgeType.LONG_SHOT,
            BadgeType.LATE_WINNER,
        }
        wallet_level = {BadgeType.FRESH_WALLET, BadgeType.SINGLE_MARKET, BadgeType.HIGH_WIN_RATE}
        assert all(b.trade_id is None for b in badges if b.badge_type in wallet_level)
        assert all(b.trade_id == 1 for b in badges if b.badge_type not in wallet_level)

    def test_custom_thresholds(self) -> None:
        strict = BadgeThresholds(fresh_wallet_max_age_days=1)
        badges = evaluate_badges(_stats(first_trade_days_ago=2), [], NOW, strict)
        assert badges == []
