"""Wallet statistics recomputed from persisted trades."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from polymarket_insider_finder.storage.repos import TradeDTO, TradeRepository, WalletRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalletStats:
    """Aggregates written back to the wallet row."""

    total_trades: int
    total_volume: Decimal
    resolved_trades: int
    won_trades: int
    win_rate: float | None
    first_trade_at: datetime
    last_trade_at: datetime


def compute_stats(
    trades: list[TradeDTO],
    *,
    known_total_trades: int = 0,
    known_first_trade_at: datetime | None = None,
    stored_first_trade_at: datetime | None = None,
    stored_last_trade_at: datetime | None = None,
) -> WalletStats:
    """Aggregate a wallet's trades.

    ``total_trades`` never drops below the full-history count, and
    ``first_trade_at`` never moves later than the true first trade.
    """
    resolved = [t for t in trades if t.resolved]
    won = sum(1 for t in resolved if t.won is True)

    firsts = [t.timestamp for t in trades]
    firsts += [d for d in (known_first_trade_at, stored_first_trade_at) if d is not None]
    lasts = [t.timestamp for t in trades]
    if stored_last_trade_at is not None:
        lasts.append(stored_last_trade_at)
    if not firsts or not lasts:
        raise ValueError("Cannot compute wallet stats without any trade timestamps")

    return WalletStats(
        total_trades=max(len(trades), known_total_trades),
        total_volume=sum((t.usd_value for t in trades), Decimal(0)),
        resolved_trades=len(resolved),
        won_trades=won,
        win_rate=won / len(resolved) if resolved else None,
        first_trade_at=min(firsts),
        last_trade_at=max(lasts),
    )


class WalletStatsAggregator:
    """Recomputes and stores a wallet's statistics."""

    def __init__(self, wallets: WalletRepository, trades: TradeRepository) -> None:
        self._wallets = wallets
        self._trades = trades

    async def refresh(
        self,
        wallet_id: int,
        *,
        known_total_trades: int = 0,
        known_first_trade_at: datetime | None = None,
    ) -> WalletStats:
        wallet = await self._wallets.get_by_id(wallet_id)
        if wallet is None:
            raise LookupError(f"Wallet {wallet_id} not found")

        trades = await self._trades.list_for_wallet(wallet_id)
        stats = compute_stats(
            trades,
            known_total_trades=max(known_total_trades, wallet.total_trades),
            known_first_trade_at=known_first_trade_at,
            stored_first_trade_at=wallet.first_trade_at,
            stored_last_trade_at=wallet.last_trade_at,
        )
        await self._wallets.update_stats(
            wallet_id,
            first_trade_at=stats.first_trade_at,
            last_trade_at=stats.last_trade_at,
            total_trades=stats.total_trades,
            total_volume=stats.total_volume,
            resolved_trades=stats.resolved_trades,
            won_trades=stats.won_trades,
            win_rate=stats.win_rate,
        )
        logger.debug(
            "Wallet %d stats: trades=%d volume=%s win_rate=%s",
            wallet_id,
            stats.total_trades,
            stats.total_volume,
            stats.win_rate,
        )
        return stats
