"""Candidate wallet discovery from the recent trade feed."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from polymarket_insider_finder.ingestor.feed import MarketFeed
from polymarket_insider_finder.ingestor.models import FeedTrade

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


class WalletScanner:
    """Pages the global trade feed newest-first and groups qualifying trades by wallet.

    The number of feed records examined is bounded by ``max_scan``; paging
    also stops on an empty page or once a whole page falls before the
    recency window. Feed errors propagate as ``FeedUnavailableError`` so the
    caller never sees a partial candidate set.

    Example:
        ```python
        scanner = WalletScanner(feed)
        candidates = await scanner.scan(
            recency_days=30,
            min_size=Decimal("100"),
            max_per_wallet=20,
            max_scan=15_000,
            max_wallets=30,
        )
        ```
    """

    def __init__(self, feed: MarketFeed, *, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self._feed = feed
        self._page_size = page_size

    async def scan(
        self,
        *,
        recency_days: int,
        min_size: Decimal,
        max_per_wallet: int,
        max_scan: int,
        max_wallets: int,
        now: datetime | None = None,
    ) -> dict[str, list[FeedTrade]]:
        """Return candidate wallets mapped to their in-window trades.

        Wallets keep first-seen order; at most ``max_wallets`` are returned.
        """
        now = now or datetime.now(UTC)
        window_start = now - timedelta(days=recency_days)

        grouped: dict[str, list[FeedTrade]] = {}
        seen_hashes: set[str] = set()
        examined = 0
        offset = 0

        while examined < max_scan:
            limit = min(self._page_size, max_scan - examined)
            page = await self._feed.fetch_trades_page(offset, limit)
            if not page:
                break

            page = page[: max_scan - examined]
            examined += len(page)
            offset += len(page)

            in_window = 0
            for trade in page:
                if trade.timestamp < window_start:
                    continue
                in_window += 1

                if trade.transaction_hash:
                    if trade.transaction_hash in seen_hashes:
                        continue
                    seen_hashes.add(trade.transaction_hash)

                if trade.usd_value < min_size:
                    continue
                grouped.setdefault(trade.wallet_address, []).append(trade)

            if in_window == 0:
                logger.debug("Page at offset %d is entirely outside the window", offset)
                break

        candidates: dict[str, list[FeedTrade]] = {}
        for address, trades in grouped.items():
            if len(candidates) >= max_wallets:
                break
            if len(trades) > max_per_wallet:
                continue
            candidates[address] = trades

        logger.info(
            "Scanned %d feed records: %d wallets seen, %d candidates",
            examined,
            len(grouped),
            len(candidates),
        )
        return candidates
