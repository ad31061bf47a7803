"""Correct stored first-trade dates from full wallet histories."""

from __future__ import annotations

import logging
from typing import Any

from polymarket_insider_finder.ingestor.feed import MarketFeed
from polymarket_insider_finder.storage.database import DatabaseManager
from polymarket_insider_finder.storage.repos import WalletRepository, persisted_id

logger = logging.getLogger(__name__)


async def backfill_first_trades(
    db: DatabaseManager,
    feed: MarketFeed,
    *,
    dry_run: bool = False,
) -> dict[str, Any]:
    """Refetch every stored wallet's history and fix a wrong first-trade date.

    A wallet counts as fixed when its stored first-trade day differs from the
    earliest day in its full history. With ``dry_run`` nothing is written.
    Failures are collected per wallet and never stop the pass.
    """
    result: dict[str, Any] = {
        "walletsChecked": 0,
        "walletsFixed": 0,
        "walletsFailed": 0,
        "errors": [],
    }

    async with db.get_async_session() as session:
        wallets = await WalletRepository(session).list_all()
    logger.info("Checking first trade dates for %d wallets (dry_run=%s)", len(wallets), dry_run)

    for wallet in wallets:
        result["walletsChecked"] += 1
        try:
            history = await feed.fetch_full_history(wallet.address)
            if not history:
                logger.warning("%s: no trades found in history", wallet.address)
                continue

            actual_first = min(t.timestamp for t in history)
            if actual_first.date() == wallet.first_trade_at.date():
                continue

            logger.info(
                "%s: first trade %s -> %s",
                wallet.address,
                wallet.first_trade_at.date().isoformat(),
                actual_first.date().isoformat(),
            )
            if not dry_run:
                async with db.get_async_session() as session:
                    await WalletRepository(session).update_history(
                        persisted_id(wallet),
                        first_trade_at=actual_first,
                        total_trades=len(history),
                    )
            result["walletsFixed"] += 1
        except Exception as e:
            logger.warning("%s: backfill failed: %s", wallet.address, e)
            result["walletsFailed"] += 1
            result["errors"].append(f"{wallet.address}: {e}")

    return result
