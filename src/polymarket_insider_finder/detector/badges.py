"""Badge rules.

Each rule is a pure function over a wallet's stats and its persisted trades
and returns zero or more badge candidates. Rules are independent; the engine
evaluates every entry of :data:`RULES`.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from polymarket_insider_finder.detector.models import (
    BadgeCandidate,
    BadgeThresholds,
    BadgeType,
    TradeFacts,
)
from polymarket_insider_finder.profiler.stats import WalletStats

BadgeRule = Callable[
    [WalletStats, Sequence[TradeFacts], datetime, BadgeThresholds],
    list[BadgeCandidate],
]


def _percent(fraction: Decimal | float) -> int:
    """Round a fraction to a whole percentage, halves away from zero."""
    value = Decimal(str(fraction)) * 100
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def fresh_wallet(
    stats: WalletStats,
    trades: Sequence[TradeFacts],
    now: datetime,
    thresholds: BadgeThresholds,
) -> list[BadgeCandidate]:
    age_days = (now - stats.first_trade_at) // timedelta(days=1)
    if age_days > thresholds.fresh_wallet_max_age_days:
        return []
    return [
        BadgeCandidate(
            badge_type=BadgeType.FRESH_WALLET,
            reason=f"Wallet is only {_plural(age_days, 'day')} old",
            metadata={"walletAgeDays": age_days},
        )
    ]


def single_market(
    stats: WalletStats,
    trades: Sequence[TradeFacts],
    now: datetime,
    thresholds: BadgeThresholds,
) -> list[BadgeCandidate]:
    markets = {t.market_id for t in trades}
    if len(markets) != 1:
        return []
    return [
        BadgeCandidate(
            badge_type=BadgeType.SINGLE_MARKET,
            reason=f"All {_plural(len(trades), 'trade')} on a single market",
            metadata={"uniqueMarkets": 1, "totalTrades": len(trades)},
        )
    ]


def high_win_rate(
    stats: WalletStats,
    trades: Sequence[TradeFacts],
    now: datetime,
    thresholds: BadgeThresholds,
) -> list[BadgeCandidate]:
    if stats.win_rate is None:
        return []
    if stats.win_rate < thresholds.high_win_rate:
        return []
    if stats.resolved_trades < thresholds.high_win_rate_min_resolved:
        return []
    return [
        BadgeCandidate(
            badge_type=BadgeType.HIGH_WIN_RATE,
            reason=(
                f"Won {_percent(stats.win_rate)}% of "
                f"{stats.resolved_trades} resolved positions"
            ),
            metadata={"winRate": stats.win_rate, "resolvedTrades": stats.resolved_trades},
        )
    ]


def big_bet(
    stats: WalletStats,
    trades: Sequence[TradeFacts],
    now: datetime,
    thresholds: BadgeThresholds,
) -> list[BadgeCandidate]:
    total = stats.total_volume
    if total <= 0:
        return []
    out = []
    for trade in trades:
        if trade.usd_value <= thresholds.big_bet_volume_share * total:
            continue
        out.append(
            BadgeCandidate(
                badge_type=BadgeType.BIG_BET,
                trade_id=trade.trade_id,
                reason=f"Trade was {_percent(trade.usd_value / total)}% of total volume",
                metadata={"tradeValue": float(trade.usd_value), "totalVolume": float(total)},
            )
        )
    return out


def long_shot(
    stats: WalletStats,
    trades: Sequence[TradeFacts],
    now: datetime,
    thresholds: BadgeThresholds,
) -> list[BadgeCandidate]:
    return [
        BadgeCandidate(
            badge_type=BadgeType.LONG_SHOT,
            trade_id=t.trade_id,
            reason=f"Bought at {_percent(t.price)}% probability and was correct",
            metadata={"entryPrice": float(t.price)},
        )
        for t in trades
        if t.won is True and t.price < thresholds.long_shot_max_price
    ]


def pre_move(
    stats: WalletStats,
    trades: Sequence[TradeFacts],
    now: datetime,
    thresholds: BadgeThresholds,
) -> list[BadgeCandidate]:
    out = []
    for t in trades:
        if t.price_at_trade is None or t.price_24h_later is None:
            continue
        move = t.price_24h_later - t.price_at_trade
        if abs(move) < thresholds.pre_move_min_change:
            continue
        sign = "+" if move > 0 else ""
        out.append(
            BadgeCandidate(
                badge_type=BadgeType.PRE_MOVE,
                trade_id=t.trade_id,
                reason=f"Price moved {sign}{_percent(move)}% within 24 hours",
                metadata={
                    "priceAtTrade": float(t.price_at_trade),
                    "price24hLater": float(t.price_24h_later),
                },
            )
        )
    return out


def late_winner(
    stats: WalletStats,
    trades: Sequence[TradeFacts],
    now: datetime,
    thresholds: BadgeThresholds,
) -> list[BadgeCandidate]:
    return [
        BadgeCandidate(
            badge_type=BadgeType.LATE_WINNER,
            trade_id=t.trade_id,
            reason=(
                f"Won bet placed {_plural(t.days_to_resolution, 'day')} before resolution"
            ),
            metadata={"daysToResolution": t.days_to_resolution},
        )
        for t in trades
        if t.won is True
        and t.days_to_resolution is not None
        and t.days_to_resolution <= thresholds.late_winner_max_days
    ]


def first_mover(
    stats: WalletStats,
    trades: Sequence[TradeFacts],
    now: datetime,
    thresholds: BadgeThresholds,
) -> list[BadgeCandidate]:
    return [
        BadgeCandidate(
            badge_type=BadgeType.FIRST_MOVER,
            trade_id=t.trade_id,
            reason=f"Was trader #{t.trader_rank} on this market",
            metadata={"traderRank": t.trader_rank},
        )
        for t in trades
        if t.trader_rank is not None and t.trader_rank <= thresholds.first_mover_max_rank
    ]


RULES: tuple[BadgeRule, ...] = (
    fresh_wallet,
    single_market,
    high_win_rate,
    big_bet,
    long_shot,
    pre_move,
    late_winner,
    first_mover,
)


def evaluate_badges(
    stats: WalletStats,
    trades: Sequence[TradeFacts],
    now: datetime,
    thresholds: BadgeThresholds | None = None,
    rules: Sequence[BadgeRule] = RULES,
) -> list[BadgeCandidate]:
    """Run every rule and concatenate their candidates."""
    thresholds = thresholds or BadgeThresholds()
    candidates: list[BadgeCandidate] = []
    for rule in rules:
        candidates.extend(rule(stats, trades, now, thresholds))
    return candidates
