"""Full trade-history reconstruction for candidate wallets.

The scanner only sees a wallet's recent, size-filtered trades. This module
fetches the complete history to recover the true first trade and the true
trade count, which drives the high-frequency trader filter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from polymarket_insider_finder.ingestor.feed import FeedUnavailableError, MarketFeed

logger = logging.getLogger(__name__)


class HistoryFetchError(Exception):
    """Raised when a wallet's history cannot be reconstructed."""


@dataclass(frozen=True)
class WalletHistory:
    """Summary of a wallet's complete trade history.

    Attributes:
        address: Wallet address.
        first_trade_at: Earliest trade timestamp ever seen.
        total_trades: Number of trades fetched (capped at threshold + 1).
        skipped: True when the wallet trades too often to be insider-like.
    """

    address: str
    first_trade_at: datetime
    total_trades: int
    skipped: bool


class HistoryReconstructor:
    """Fetches a wallet's full history and applies the trade-count filter."""

    def __init__(self, feed: MarketFeed) -> None:
        self._feed = feed

    async def reconstruct(self, address: str, *, max_total_trades: int) -> WalletHistory:
        """Reconstruct a wallet's history.

        Only ``max_total_trades + 1`` records are requested, which is enough
        to decide the filter.

        Raises:
            HistoryFetchError: If the feed fails or returns no trades.
        """
        try:
            history = await self._feed.fetch_full_history(
                address, stop_after=max_total_trades + 1
            )
        except FeedUnavailableError as e:
            raise HistoryFetchError(f"History unavailable for {address}: {e}") from e

        if not history:
            raise HistoryFetchError(f"History for {address} returned no trades")

        total = len(history)
        first_trade_at = min(t.timestamp for t in history)
        skipped = total > max_total_trades
        if skipped:
            logger.info(
                "Skipping %s: %d trades exceeds %d", address, total, max_total_trades
            )
        return WalletHistory(
            address=address,
            first_trade_at=first_trade_at,
            total_trades=total,
            skipped=skipped,
        )
