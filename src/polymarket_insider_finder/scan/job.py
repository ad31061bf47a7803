"""Scan job entry point with locking and run auditing."""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from polymarket_insider_finder.config import Settings
from polymarket_insider_finder.detector.models import BadgeThresholds
from polymarket_insider_finder.ingestor.feed import MarketFeed, MarketFeedClient
from polymarket_insider_finder.scan.runner import InsiderScanRunner, ScanOptions, ScanSummary
from polymarket_insider_finder.storage.database import DatabaseManager
from polymarket_insider_finder.storage.repos import JobRunRepository

logger = logging.getLogger(__name__)

JOB_NAME = "scan_insiders"
MAX_RESPONSE_ERRORS = 50
MAX_AUDIT_ERRORS = 100


class ScanRequest(BaseModel):
    """Caller-supplied overrides for a scan; unset fields use the configured defaults."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    days_back: int | None = Field(default=None, alias="daysBack", ge=1, le=365)
    min_trade_size: Decimal | None = Field(default=None, alias="minTradeSize", ge=0)
    max_trades: int | None = Field(default=None, alias="maxTrades", ge=1)
    max_total_trades: int | None = Field(default=None, alias="maxTotalTrades", ge=1)
    max_trades_to_scan: int | None = Field(default=None, alias="maxTradesToScan", ge=1)
    max_new_wallets: int | None = Field(default=None, alias="maxNewWallets", ge=0)
    max_existing_updates: int | None = Field(default=None, alias="maxExistingUpdates", ge=0)
    timeout_ms: int | None = Field(default=None, alias="timeoutMs", ge=1)

    def to_options(self, settings: Settings) -> ScanOptions:
        """Merge overrides onto the configured defaults.

        The time budget is clamped so the run always ends before the hard
        deadline minus the safety margin.
        """
        options = ScanOptions.from_settings(settings.scan)
        overrides = {
            name: value
            for name, value in self.model_dump(by_alias=False).items()
            if value is not None
        }
        options = replace(options, **overrides)
        budget = min(options.timeout_ms, settings.scan.max_budget_ms)
        return replace(options, timeout_ms=budget)


def _stats(summary: ScanSummary) -> dict[str, int]:
    return {
        "walletsScanned": summary.wallets_scanned,
        "walletsQualified": summary.wallets_qualified,
        "walletsCreated": summary.wallets_created,
        "walletsUpdated": summary.wallets_updated,
        "walletsSkipped": summary.wallets_skipped,
        "walletsRefreshed": summary.wallets_refreshed,
        "walletsRemaining": summary.wallets_remaining,
        "tradesRecorded": summary.trades_recorded,
        "badgesAwarded": summary.badges_awarded,
        "errorCount": len(summary.errors),
    }


def _response(
    *,
    success: bool,
    duration_ms: int,
    summary: ScanSummary,
) -> dict[str, Any]:
    return {
        "success": success,
        "durationMs": duration_ms,
        "timedOut": summary.timed_out,
        "stats": _stats(summary),
        "errors": summary.errors[:MAX_RESPONSE_ERRORS],
    }


async def run_scan_job(
    request: ScanRequest | None = None,
    *,
    settings: Settings,
    feed: MarketFeed | None = None,
) -> dict[str, Any]:
    """Run one scan and return its JSON-ready summary.

    Never raises: fatal failures come back as ``success: False`` with the
    error message in ``errors``. A timeout is a partial success.
    """
    started = time.monotonic()
    request = request or ScanRequest()
    summary = ScanSummary()

    def elapsed_ms() -> int:
        return int((time.monotonic() - started) * 1000)

    try:
        options = request.to_options(settings)
    except Exception as e:
        summary.errors.append(f"Invalid scan options: {e}")
        return _response(success=False, duration_ms=elapsed_ms(), summary=summary)

    db = DatabaseManager(settings.database.url)
    owned_feed: MarketFeedClient | None = None
    try:
        if feed is None:
            owned_feed = MarketFeedClient.from_settings(settings.polymarket)
        active_feed: MarketFeed = feed if feed is not None else owned_feed
        async with db.advisory_lock(JOB_NAME) as acquired:
            if not acquired:
                logger.warning("Another %s run holds the lock; not starting", JOB_NAME)
                summary.errors.append(f"Another {JOB_NAME} run is already in progress")
                return _response(success=False, duration_ms=elapsed_ms(), summary=summary)

            async with db.get_async_session() as session:
                run_id = await JobRunRepository(session).start(JOB_NAME)

            runner = InsiderScanRunner(
                db,
                active_feed,
                thresholds=BadgeThresholds.from_settings(settings.badges),
                page_size=settings.polymarket.page_size,
            )
            success = True
            error: str | None = None
            try:
                await runner.run(options, summary)
            except Exception as e:
                logger.exception("Insider scan failed")
                success = False
                error = str(e)
                summary.errors.append(f"Fatal error: {e}")

            duration = elapsed_ms()
            details = {
                "durationMs": duration,
                "options": options.to_dict(),
                **summary.to_dict(),
                "errors": summary.errors[:MAX_AUDIT_ERRORS],
            }
            async with db.get_async_session() as session:
                await JobRunRepository(session).finish(
                    run_id,
                    status="SUCCESS" if success else "FAIL",
                    details=details,
                    error=error,
                )

            logger.info(
                "Insider scan finished in %dms: scanned=%d qualified=%d created=%d "
                "updated=%d skipped=%d trades=%d badges=%d errors=%d",
                duration,
                summary.wallets_scanned,
                summary.wallets_qualified,
                summary.wallets_created,
                summary.wallets_updated,
                summary.wallets_skipped,
                summary.trades_recorded,
                summary.badges_awarded,
                len(summary.errors),
            )
            return _response(success=success, duration_ms=duration, summary=summary)
    except Exception as e:
        logger.exception("Insider scan job could not run")
        summary.errors.append(f"Fatal error: {e}")
        return _response(success=False, duration_ms=elapsed_ms(), summary=summary)
    finally:
        if owned_feed is not None:
            await owned_feed.close()
        await db.dispose_async()
