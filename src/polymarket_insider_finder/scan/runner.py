"""Time-budgeted insider scan.

One run discovers candidate wallets from the recent trade feed, processes
each candidate end to end (history, wallet upsert, trades, resolutions,
stats, badges) inside its own transaction, then refreshes previously
tracked wallets while budget remains.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from polymarket_insider_finder.config import ScanSettings
from polymarket_insider_finder.detector.engine import BadgeEngine
from polymarket_insider_finder.detector.models import BadgeThresholds
from polymarket_insider_finder.ingestor.feed import MarketFeed
from polymarket_insider_finder.ingestor.models import FeedTrade
from polymarket_insider_finder.profiler.history import HistoryReconstructor
from polymarket_insider_finder.profiler.recorder import TradeRecorder
from polymarket_insider_finder.profiler.resolution import (
    MarketLookupCache,
    ReconcileResult,
    ResolutionReconciler,
)
from polymarket_insider_finder.profiler.stats import WalletStatsAggregator
from polymarket_insider_finder.scan.deadline import Clock, DeadlineTaskQueue
from polymarket_insider_finder.scan.scanner import DEFAULT_PAGE_SIZE, WalletScanner
from polymarket_insider_finder.storage.database import DatabaseManager
from polymarket_insider_finder.storage.repos import (
    BadgeRepository,
    TradeRepository,
    WalletRepository,
    persisted_id,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "IDLE"
    SCANNING = "SCANNING"
    PROCESSING_CANDIDATES = "PROCESSING_CANDIDATES"
    REFRESHING_TRACKED = "REFRESHING_TRACKED"
    TIMED_OUT = "TIMED_OUT"
    DONE = "DONE"


class WalletOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass(frozen=True)
class ScanOptions:
    """Per-run limits for a scan."""

    days_back: int = 30
    min_trade_size: Decimal = Decimal("100")
    max_trades: int = 20
    max_total_trades: int = 50
    max_trades_to_scan: int = 15_000
    max_new_wallets: int = 30
    max_existing_updates: int = 20
    timeout_ms: int = 250_000

    @classmethod
    def from_settings(cls, settings: ScanSettings) -> ScanOptions:
        return cls(
            days_back=settings.days_back,
            min_trade_size=settings.min_trade_size,
            max_trades=settings.max_trades,
            max_total_trades=settings.max_total_trades,
            max_trades_to_scan=settings.max_trades_to_scan,
            max_new_wallets=settings.max_new_wallets,
            max_existing_updates=settings.max_existing_updates,
            timeout_ms=min(settings.timeout_ms, settings.max_budget_ms),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "daysBack": self.days_back,
            "minTradeSize": float(self.min_trade_size),
            "maxTrades": self.max_trades,
            "maxTotalTrades": self.max_total_trades,
            "maxTradesToScan": self.max_trades_to_scan,
            "maxNewWallets": self.max_new_wallets,
            "maxExistingUpdates": self.max_existing_updates,
            "timeoutMs": self.timeout_ms,
        }


@dataclass
class ScanSummary:
    """Counters for one run.

    ``wallets_scanned`` counts discovered candidates; ``wallets_remaining``
    counts candidates never started because the budget ran out.
    """

    wallets_scanned: int = 0
    wallets_qualified: int = 0
    wallets_created: int = 0
    wallets_updated: int = 0
    wallets_skipped: int = 0
    wallets_refreshed: int = 0
    wallets_remaining: int = 0
    trades_recorded: int = 0
    badges_awarded: int = 0
    timed_out: bool = False
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "walletsScanned": self.wallets_scanned,
            "walletsQualified": self.wallets_qualified,
            "walletsCreated": self.wallets_created,
            "walletsUpdated": self.wallets_updated,
            "walletsSkipped": self.wallets_skipped,
            "walletsRefreshed": self.wallets_refreshed,
            "walletsRemaining": self.wallets_remaining,
            "tradesRecorded": self.trades_recorded,
            "badgesAwarded": self.badges_awarded,
            "timedOut": self.timed_out,
            "errors": list(self.errors),
        }


@dataclass
class _WalletResult:
    outcome: WalletOutcome
    wallet_id: int | None = None
    trades_recorded: int = 0
    badges_awarded: int = 0


class InsiderScanRunner:
    """Drives one scan through discovery, candidate processing and refresh.

    Example:
        ```python
        runner = InsiderScanRunner(db, feed, thresholds=BadgeThresholds())
        summary = await runner.run(ScanOptions(days_back=7))
        print(summary.to_dict())
        ```
    """

    def __init__(
        self,
        db: DatabaseManager,
        feed: MarketFeed,
        *,
        thresholds: BadgeThresholds | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        clock: Clock = time.monotonic,
    ) -> None:
        self._db = db
        self._feed = feed
        self._thresholds = thresholds or BadgeThresholds()
        self._scanner = WalletScanner(feed, page_size=page_size)
        self._history = HistoryReconstructor(feed)
        self._clock = clock
        self.state = RunState.IDLE

    async def run(self, options: ScanOptions, summary: ScanSummary | None = None) -> ScanSummary:
        """Execute a run.

        Counters accumulate in ``summary`` as work commits, so a caller that
        passes its own summary keeps the partial counts when the run raises.

        Raises:
            FeedUnavailableError: If candidate discovery fails.
        """
        summary = summary if summary is not None else ScanSummary()
        queue = DeadlineTaskQueue(options.timeout_ms, clock=self._clock)
        lookups = MarketLookupCache(self._feed)
        handled_ids: set[int] = set()

        try:
            self.state = RunState.SCANNING
            logger.info(
                "Scanning for insider wallets (last %d days, budget %dms)",
                options.days_back,
                options.timeout_ms,
            )
            candidates = await self._scanner.scan(
                recency_days=options.days_back,
                min_size=options.min_trade_size,
                max_per_wallet=options.max_trades,
                max_scan=options.max_trades_to_scan,
                max_wallets=options.max_new_wallets,
            )
            summary.wallets_scanned = len(candidates)

            self.state = RunState.PROCESSING_CANDIDATES
            tasks = [
                self._candidate_task(address, trades, options, lookups, summary)
                for address, trades in candidates.items()
            ]
            processed = await queue.run(tasks)
            for result in processed.results:
                self._tally(result, summary)
                if result.wallet_id is not None:
                    handled_ids.add(result.wallet_id)
            summary.wallets_remaining = processed.remaining

            if processed.timed_out:
                self.state = RunState.TIMED_OUT
                summary.timed_out = True
                logger.warning(
                    "Timeout reached after processing %d/%d wallets",
                    processed.completed,
                    len(tasks),
                )
                return summary

            if options.max_existing_updates > 0 and queue.has_time():
                self.state = RunState.REFRESHING_TRACKED
                await self._refresh_tracked(queue, options, lookups, handled_ids, summary)

            logger.info(
                "Scan complete in %.0fms: %d qualifying wallets, %d trades, %d badges",
                queue.elapsed_ms,
                summary.wallets_qualified,
                summary.trades_recorded,
                summary.badges_awarded,
            )
            return summary
        finally:
            self.state = RunState.DONE

    @staticmethod
    def _tally(result: _WalletResult, summary: ScanSummary) -> None:
        if result.outcome is WalletOutcome.SKIPPED:
            summary.wallets_skipped += 1
            return
        if result.outcome is WalletOutcome.ERROR:
            return
        summary.wallets_qualified += 1
        if result.outcome is WalletOutcome.CREATED:
            summary.wallets_created += 1
        else:
            summary.wallets_updated += 1
        summary.trades_recorded += result.trades_recorded
        summary.badges_awarded += result.badges_awarded

    def _candidate_task(
        self,
        address: str,
        trades: list[FeedTrade],
        options: ScanOptions,
        lookups: MarketLookupCache,
        summary: ScanSummary,
    ) -> Callable[[], Awaitable[_WalletResult]]:
        async def task() -> _WalletResult:
            try:
                return await self._process_candidate(address, trades, options, lookups, summary)
            except Exception as e:
                logger.warning("Error processing wallet %s: %s", address, e)
                summary.errors.append(f"Error processing wallet {address}: {e}")
                return _WalletResult(WalletOutcome.ERROR)

        return task

    async def _process_candidate(
        self,
        address: str,
        trades: list[FeedTrade],
        options: ScanOptions,
        lookups: MarketLookupCache,
        summary: ScanSummary,
    ) -> _WalletResult:
        history = await self._history.reconstruct(
            address, max_total_trades=options.max_total_trades
        )
        if history.skipped:
            return _WalletResult(WalletOutcome.SKIPPED)

        scan_first = min(t.timestamp for t in trades)
        first_trade_at = min(history.first_trade_at, scan_first)
        if first_trade_at.date() != scan_first.date():
            logger.info(
                "%s first trade corrected: %s (scan) -> %s (history), %d total trades",
                address,
                scan_first.date().isoformat(),
                first_trade_at.date().isoformat(),
                history.total_trades,
            )

        async with self._db.get_async_session() as session:
            wallets = WalletRepository(session)
            trade_repo = TradeRepository(session)

            wallet, created = await wallets.upsert_discovered(
                address=address,
                first_trade_at=first_trade_at,
                last_trade_at=max(t.timestamp for t in trades),
                total_trades=history.total_trades,
                total_volume=sum((t.usd_value for t in trades), Decimal(0)),
            )
            wallet_id = persisted_id(wallet)

            recorded = await TradeRecorder(trade_repo).record(wallet_id, trades)
            badges, reconcile = await self._settle_wallet(
                session,
                wallet_id,
                lookups,
                known_total_trades=history.total_trades,
                known_first_trade_at=first_trade_at,
            )

        summary.errors.extend(reconcile.errors)
        return _WalletResult(
            outcome=WalletOutcome.CREATED if created else WalletOutcome.UPDATED,
            wallet_id=wallet_id,
            trades_recorded=recorded,
            badges_awarded=badges,
        )

    async def _settle_wallet(
        self,
        session: AsyncSession,
        wallet_id: int,
        lookups: MarketLookupCache,
        *,
        known_total_trades: int = 0,
        known_first_trade_at: datetime | None = None,
    ) -> tuple[int, ReconcileResult]:
        """Reconcile resolutions, recompute stats and award badges."""
        wallets = WalletRepository(session)
        trade_repo = TradeRepository(session)
        now = datetime.now(UTC)

        reconcile = await ResolutionReconciler(trade_repo, lookups).reconcile(wallet_id, now=now)
        stats = await WalletStatsAggregator(wallets, trade_repo).refresh(
            wallet_id,
            known_total_trades=known_total_trades,
            known_first_trade_at=known_first_trade_at,
        )
        all_trades = await trade_repo.list_for_wallet(wallet_id)
        engine = BadgeEngine(BadgeRepository(session), self._thresholds)
        awarded = await engine.award(wallet_id, stats, all_trades, now=now)
        return awarded, reconcile

    async def _refresh_tracked(
        self,
        queue: DeadlineTaskQueue,
        options: ScanOptions,
        lookups: MarketLookupCache,
        handled_ids: set[int],
        summary: ScanSummary,
    ) -> None:
        async with self._db.get_async_session() as session:
            tracked = await WalletRepository(session).list_for_refresh(
                limit=options.max_existing_updates, exclude_ids=handled_ids
            )
        logger.info(
            "Refreshing %d tracked wallets (%.0fms elapsed)", len(tracked), queue.elapsed_ms
        )

        def refresh_task(wallet_id: int, address: str) -> Callable[[], Awaitable[bool]]:
            async def task() -> bool:
                try:
                    async with self._db.get_async_session() as session:
                        awarded, reconcile = await self._settle_wallet(
                            session, wallet_id, lookups
                        )
                except Exception as e:
                    logger.warning("Error refreshing wallet %s: %s", address, e)
                    summary.errors.append(f"Error refreshing wallet {address}: {e}")
                    return False
                summary.errors.extend(reconcile.errors)
                summary.badges_awarded += awarded
                return True

            return task

        tasks = [refresh_task(persisted_id(w), w.address) for w in tracked]
        refreshed = await queue.run(tasks)
        summary.wallets_refreshed = sum(1 for ok in refreshed.results if ok)
        if refreshed.timed_out:
            self.state = RunState.TIMED_OUT
            summary.timed_out = True
            logger.warning("Timeout during tracked wallet refresh")
