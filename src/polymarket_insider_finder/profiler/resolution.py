"""Trade resolution reconciliation.

Unresolved trades are checked against their market's resolution state and
moved, exactly once, to a terminal resolved state carrying win/loss, P&L and
days to resolution. Recent trades also get their post-trade price captured
so the pre-move rule has something to compare against.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from polymarket_insider_finder.ingestor.feed import FeedUnavailableError, MarketFeed
from polymarket_insider_finder.ingestor.models import MarketResolution
from polymarket_insider_finder.storage.repos import TradeDTO, TradeRepository, persisted_id

logger = logging.getLogger(__name__)

PRICE_CAPTURE_MIN_AGE = timedelta(hours=24)
PRICE_CAPTURE_MAX_AGE = timedelta(hours=48)


class ResolutionLookupError(Exception):
    """Raised when a market's resolution state cannot be determined."""


def settle_pnl(*, size: Decimal, price: Decimal, won: bool) -> Decimal:
    """P&L of a binary share position held to resolution.

    A share bought at ``price`` pays 1 if correct and 0 otherwise.
    """
    if won:
        return size * (Decimal(1) - price)
    return -size * price


def days_between(start: datetime, end: datetime) -> int:
    """Whole days from ``start`` to ``end``, floored."""
    return (end - start) // timedelta(days=1)


class MarketLookupCache:
    """Per-pass memo of market resolutions and latest prices.

    Failed lookups are remembered too, so one broken market costs a single
    upstream call per pass.
    """

    def __init__(self, feed: MarketFeed) -> None:
        self._feed = feed
        self._resolutions: dict[str, MarketResolution | None] = {}
        self._prices: dict[str, dict[str, Decimal]] = {}
        self._failures: dict[tuple[str, str], str] = {}

    async def resolution(self, market_id: str) -> MarketResolution | None:
        key = ("resolution", market_id)
        if key in self._failures:
            raise ResolutionLookupError(self._failures[key])
        if market_id not in self._resolutions:
            try:
                self._resolutions[market_id] = await self._feed.get_resolution(market_id)
            except FeedUnavailableError as e:
                self._failures[key] = str(e)
                raise ResolutionLookupError(str(e)) from e
        return self._resolutions[market_id]

    def resolution_failed(self, market_id: str) -> bool:
        return ("resolution", market_id) in self._failures

    async def prices(self, market_id: str) -> dict[str, Decimal]:
        key = ("prices", market_id)
        if key in self._failures:
            raise ResolutionLookupError(self._failures[key])
        if market_id not in self._prices:
            try:
                self._prices[market_id] = await self._feed.get_latest_prices(market_id)
            except FeedUnavailableError as e:
                self._failures[key] = str(e)
                raise ResolutionLookupError(str(e)) from e
        return self._prices[market_id]


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass over a wallet."""

    checked: int = 0
    resolved: int = 0
    prices_captured: int = 0
    errors: list[str] = field(default_factory=list)


class ResolutionReconciler:
    """Resolves a wallet's open trades and captures post-trade prices.

    A failed lookup is logged and recorded against that trade only; the
    wallet's other trades are still reconciled.
    """

    def __init__(self, trades: TradeRepository, lookups: MarketLookupCache) -> None:
        self._trades = trades
        self._lookups = lookups

    async def reconcile(self, wallet_id: int, *, now: datetime | None = None) -> ReconcileResult:
        now = now or datetime.now(UTC)
        result = ReconcileResult()

        for trade in await self._trades.list_unresolved(wallet_id):
            result.checked += 1
            try:
                resolution = await self._lookups.resolution(trade.market_id)
            except ResolutionLookupError as e:
                logger.warning("Resolution lookup failed for trade %s: %s", trade.id, e)
                result.errors.append(f"Resolution lookup failed for trade {trade.id}: {e}")
                continue

            if resolution is None or not resolution.resolved:
                continue
            if await self._resolve(trade, resolution, now):
                result.resolved += 1

        await self._capture_prices(wallet_id, now, result)
        return result

    async def _resolve(self, trade: TradeDTO, resolution: MarketResolution, now: datetime) -> bool:
        won = trade.outcome_name == resolution.winning_outcome
        return await self._trades.mark_resolved(
            persisted_id(trade),
            resolved_at=now,
            won=won,
            pnl=settle_pnl(size=trade.size, price=trade.price, won=won),
            days_to_resolution=days_between(trade.timestamp, now),
        )

    async def _capture_prices(self, wallet_id: int, now: datetime, result: ReconcileResult) -> None:
        for trade in await self._trades.list_for_wallet(wallet_id):
            if trade.price_24h_later is not None:
                continue
            age = now - trade.timestamp
            if not (PRICE_CAPTURE_MIN_AGE <= age <= PRICE_CAPTURE_MAX_AGE):
                continue
            if self._lookups.resolution_failed(trade.market_id):
                continue
            try:
                prices = await self._lookups.prices(trade.market_id)
            except ResolutionLookupError as e:
                # Logged only; capture is retried on the next pass.
                logger.warning("Price lookup failed for trade %s: %s", trade.id, e)
                continue

            price = prices.get(trade.outcome_name)
            if price is None:
                continue
            if await self._trades.set_price_24h_later(persisted_id(trade), price):
                result.prices_captured += 1
