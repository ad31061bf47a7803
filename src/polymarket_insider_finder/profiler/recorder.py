"""Persist a wallet's in-window trades."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from polymarket_insider_finder.ingestor.models import FeedTrade
from polymarket_insider_finder.storage.repos import TradeDTO, TradeRepository

logger = logging.getLogger(__name__)


def trade_dto_from_feed(wallet_id: int, trade: FeedTrade) -> TradeDTO:
    return TradeDTO(
        wallet_id=wallet_id,
        market_id=trade.market_id,
        outcome_name=trade.outcome_name,
        side=trade.side,
        size=trade.size,
        price=trade.price,
        usd_value=trade.usd_value,
        timestamp=trade.timestamp,
        transaction_hash=trade.transaction_hash,
        market_question=trade.market_question,
        market_slug=trade.market_slug,
        market_category=trade.market_category,
        price_at_trade=trade.price,
        trader_rank=trade.trader_rank,
    )


class TradeRecorder:
    """Upserts feed trades by their natural key.

    Financial fields are written once; later runs only refresh the
    descriptive market fields.
    """

    def __init__(self, trades: TradeRepository) -> None:
        self._trades = trades

    async def record(self, wallet_id: int, trades: Iterable[FeedTrade]) -> int:
        """Record trades for a wallet and return how many rows were new."""
        created = 0
        for trade in trades:
            if await self._trades.upsert(trade_dto_from_feed(wallet_id, trade)):
                created += 1
        logger.debug("Recorded %d new trades for wallet %d", created, wallet_id)
        return created
