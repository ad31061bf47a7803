"""Wallet detail view.

Assembles everything known about one stored wallet: its trades (newest
first, each with the badges pointing at it), all badges, positions grouped by
market and outcome, and summary figures over the persisted trades.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from polymarket_insider_finder.storage.repos import (
    BadgeDTO,
    BadgeRepository,
    TradeDTO,
    TradeRepository,
    WalletDTO,
    WalletRepository,
    persisted_id,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

POLYMARKET_PROFILE_URL = "https://polymarket.com/profile/{address}"
POLYGONSCAN_ADDRESS_URL = "https://polygonscan.com/address/{address}"
UNKNOWN_CATEGORY = "unknown"


@dataclass
class PositionSummary:
    """All of a wallet's trades on one (market, outcome) pair."""

    market_id: str
    market_question: str
    market_slug: str | None
    market_category: str | None
    outcome_name: str
    total_size: Decimal
    avg_price: Decimal
    total_value: Decimal
    resolved: bool
    won: bool | None
    pnl: Decimal | None

    def add(self, trade: TradeDTO) -> None:
        self.total_size += trade.size
        self.total_value += trade.usd_value
        if self.total_size:
            self.avg_price = self.total_value / self.total_size
        if trade.resolved:
            self.resolved = True
            self.won = trade.won
            self.pnl = (self.pnl or Decimal(0)) + (trade.pnl or Decimal(0))

    def to_dict(self) -> dict[str, Any]:
        return {
            "marketId": self.market_id,
            "marketQuestion": self.market_question,
            "marketSlug": self.market_slug,
            "marketCategory": self.market_category,
            "outcomeName": self.outcome_name,
            "totalSize": self.total_size,
            "avgPrice": self.avg_price,
            "totalValue": self.total_value,
            "resolved": self.resolved,
            "won": self.won,
            "pnl": self.pnl,
        }


@dataclass(frozen=True)
class TradeSummary:
    total_pnl: Decimal = Decimal(0)
    avg_trade_size: Decimal = Decimal(0)
    largest_trade: Decimal = Decimal(0)
    unique_markets: int = 0
    category_counts: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalPnl": self.total_pnl,
            "avgTradeSize": self.avg_trade_size,
            "largestTrade": self.largest_trade,
            "uniqueMarkets": self.unique_markets,
            "categoryCounts": dict(self.category_counts),
        }


def summarize_positions(
    trades: Sequence[TradeDTO],
) -> tuple[list[PositionSummary], list[PositionSummary]]:
    """Group trades by (market, outcome); return (active, resolved) positions.

    A position counts as resolved once any of its trades is; ``won`` then
    follows the last resolved trade seen and ``pnl`` sums the resolved trades.
    """
    positions: dict[tuple[str, str], PositionSummary] = {}
    for trade in trades:
        key = (trade.market_id, trade.outcome_name)
        position = positions.get(key)
        if position is not None:
            position.add(trade)
            continue
        positions[key] = PositionSummary(
            market_id=trade.market_id,
            market_question=trade.market_question,
            market_slug=trade.market_slug,
            market_category=trade.market_category,
            outcome_name=trade.outcome_name,
            total_size=trade.size,
            avg_price=trade.price,
            total_value=trade.usd_value,
            resolved=trade.resolved,
            won=trade.won,
            pnl=trade.pnl,
        )

    active = [p for p in positions.values() if not p.resolved]
    resolved = [p for p in positions.values() if p.resolved]
    return active, resolved


def summarize_trades(trades: Sequence[TradeDTO]) -> TradeSummary:
    if not trades:
        return TradeSummary()
    total_value = sum((t.usd_value for t in trades), Decimal(0))
    categories = Counter(t.market_category or UNKNOWN_CATEGORY for t in trades)
    return TradeSummary(
        total_pnl=sum((t.pnl or Decimal(0) for t in trades), Decimal(0)),
        avg_trade_size=total_value / len(trades),
        largest_trade=max(t.usd_value for t in trades),
        unique_markets=len({t.market_id for t in trades}),
        category_counts=dict(categories),
    )


def _badge_dict(badge: BadgeDTO) -> dict[str, Any]:
    return {
        "id": badge.id,
        "type": badge.badge_type,
        "tradeId": badge.trade_id,
        "reason": badge.reason,
        "metadata": badge.metadata,
        "earnedAt": badge.earned_at,
    }


def wallet_dict(wallet: WalletDTO) -> dict[str, Any]:
    return {
        "id": wallet.id,
        "address": wallet.address,
        "firstTradeAt": wallet.first_trade_at,
        "lastTradeAt": wallet.last_trade_at,
        "totalTrades": wallet.total_trades,
        "totalVolume": wallet.total_volume,
        "resolvedTrades": wallet.resolved_trades,
        "wonTrades": wallet.won_trades,
        "winRate": wallet.win_rate,
        "isTracked": wallet.is_tracked,
        "createdAt": wallet.created_at,
        "updatedAt": wallet.updated_at,
    }


@dataclass
class WalletDetail:
    wallet: WalletDTO
    badges: list[BadgeDTO]
    trades: list[TradeDTO]
    active_positions: list[PositionSummary]
    resolved_positions: list[PositionSummary]
    stats: TradeSummary

    def to_dict(self) -> dict[str, Any]:
        by_trade: dict[int, list[BadgeDTO]] = {}
        for badge in self.badges:
            if badge.trade_id is not None:
                by_trade.setdefault(badge.trade_id, []).append(badge)

        trades = []
        for trade in self.trades:
            trades.append(
                {
                    "id": trade.id,
                    "marketId": trade.market_id,
                    "marketQuestion": trade.market_question,
                    "marketSlug": trade.market_slug,
                    "marketCategory": trade.market_category,
                    "outcomeName": trade.outcome_name,
                    "side": trade.side,
                    "size": trade.size,
                    "price": trade.price,
                    "usdValue": trade.usd_value,
                    "timestamp": trade.timestamp,
                    "transactionHash": trade.transaction_hash or None,
                    "resolved": trade.resolved,
                    "resolvedAt": trade.resolved_at,
                    "won": trade.won,
                    "pnl": trade.pnl,
                    "priceAtTrade": trade.price_at_trade,
                    "price24hLater": trade.price_24h_later,
                    "daysToResolution": trade.days_to_resolution,
                    "traderRank": trade.trader_rank,
                    "badges": [
                        {"type": b.badge_type, "reason": b.reason}
                        for b in by_trade.get(persisted_id(trade), [])
                    ],
                }
            )

        return {
            "wallet": wallet_dict(self.wallet),
            "badges": [_badge_dict(b) for b in self.badges],
            "trades": trades,
            "activePositions": [p.to_dict() for p in self.active_positions],
            "resolvedPositions": [p.to_dict() for p in self.resolved_positions],
            "stats": self.stats.to_dict(),
            "links": {
                "polymarket": POLYMARKET_PROFILE_URL.format(address=self.wallet.address),
                "polygonscan": POLYGONSCAN_ADDRESS_URL.format(address=self.wallet.address),
            },
        }


async def load_wallet_detail(session: AsyncSession, wallet: str) -> WalletDetail | None:
    """Load a wallet by address (or numeric id); None if it is not stored."""
    wallets = WalletRepository(session)
    found = await wallets.get_by_address(wallet)
    if found is None and wallet.isdigit():
        found = await wallets.get_by_id(int(wallet))
    if found is None:
        return None

    wallet_id = persisted_id(found)
    trades = await TradeRepository(session).list_for_wallet(wallet_id)
    trades.reverse()
    badges = await BadgeRepository(session).list_for_wallet(wallet_id)
    active, resolved = summarize_positions(trades)
    return WalletDetail(
        wallet=found,
        badges=badges,
        trades=trades,
        active_positions=active,
        resolved_positions=resolved,
        stats=summarize_trades(trades),
    )
