"""Tests for the scan job entry point."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path

import pytest

from factories import FakeMarketFeed, make_feed_trade
from polymarket_insider_finder.config import Settings
from polymarket_insider_finder.scan.job import JOB_NAME, ScanRequest, run_scan_job
from polymarket_insider_finder.storage.database import DatabaseManager
from polymarket_insider_finder.storage.repos import JobRunRepository, WalletRepository

WALLET = "0x" + "a" * 40

STAT_KEYS = {
    "walletsScanned",
    "walletsQualified",
    "walletsCreated",
    "walletsUpdated",
    "walletsSkipped",
    "walletsRefreshed",
    "walletsRemaining",
    "tradesRecorded",
    "badgesAwarded",
    "errorCount",
}


@pytest.fixture
async def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    url = f"sqlite+aiosqlite:///{tmp_path}/job.db"
    monkeypatch.setenv("DATABASE_URL", url)
    db = DatabaseManager(url)
    await db.init_schema_async()
    await db.dispose_async()
    return Settings()


async def _job_runs(settings: Settings):
    db = DatabaseManager(settings.database.url)
    try:
        async with db.get_async_session() as session:
            return await JobRunRepository(session).list_recent(JOB_NAME)
    finally:
        await db.dispose_async()


class TestScanRequest:
    """Tests for ScanRequest."""

    async def test_accepts_camel_case(self, settings: Settings) -> None:
        request = ScanRequest.model_validate({"daysBack": 7, "minTradeSize": "250"})

        options = request.to_options(settings)

        assert options.days_back == 7
        assert options.min_trade_size == Decimal("250")
        assert options.max_total_trades == settings.scan.max_total_trades

    async def test_budget_is_clamped_to_deadline(self, settings: Settings) -> None:
        options = ScanRequest(timeout_ms=900_000).to_options(settings)
        assert options.timeout_ms == settings.scan.max_budget_ms


class TestRunScanJob:
    """Tests for run_scan_job."""

    async def test_successful_run(self, settings: Settings) -> None:
        now = datetime.now(UTC)
        trade = make_feed_trade(wallet=WALLET, timestamp=now - timedelta(hours=2))
        feed = FakeMarketFeed(feed=[trade], histories={WALLET: [trade]})

        result = await run_scan_job(ScanRequest(days_back=7), settings=settings, feed=feed)

        assert result["success"] is True
        assert result["timedOut"] is False
        assert set(result["stats"]) == STAT_KEYS
        assert result["stats"]["walletsCreated"] == 1
        assert result["stats"]["errorCount"] == 0
        assert result["errors"] == []
        assert isinstance(result["durationMs"], int)

        (run,) = await _job_runs(settings)
        assert run.status == "SUCCESS"
        assert run.details["walletsCreated"] == 1
        assert run.details["options"]["daysBack"] == 7

    async def test_feed_failure_is_reported(self, settings: Settings) -> None:
        result = await run_scan_job(settings=settings, feed=FakeMarketFeed(feed_error=True))

        assert result["success"] is False
        assert result["errors"][0].startswith("Fatal error:")

        (run,) = await _job_runs(settings)
        assert run.status == "FAIL"
        assert run.error == "trade feed down"

    async def test_missing_schema_is_reported(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path}/empty.db")

        result = await run_scan_job(settings=Settings(), feed=FakeMarketFeed())

        assert result["success"] is False
        assert result["stats"]["errorCount"] == 1

    async def test_fatal_error_keeps_committed_counts(
        self, settings: Settings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def broken_refresh(self, **kwargs):
            raise RuntimeError("database went away")

        monkeypatch.setattr(WalletRepository, "list_for_refresh", broken_refresh)
        now = datetime.now(UTC)
        trade = make_feed_trade(wallet=WALLET, timestamp=now - timedelta(hours=2))
        feed = FakeMarketFeed(feed=[trade], histories={WALLET: [trade]})

        result = await run_scan_job(ScanRequest(days_back=7), settings=settings, feed=feed)

        assert result["success"] is False
        assert result["stats"]["walletsQualified"] == 1
        assert result["stats"]["walletsCreated"] == 1
        assert result["stats"]["tradesRecorded"] == 1
        assert result["errors"] == ["Fatal error: database went away"]

        (run,) = await _job_runs(settings)
        assert run.status == "FAIL"
        assert run.details["walletsCreated"] == 1
