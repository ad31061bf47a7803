"""Command-line entry point.

Usage:
    python -m polymarket_insider_finder scan [--days-back N] [--timeout-ms MS] ...
    python -m polymarket_insider_finder backfill-first-trades [--dry-run]
    python -m polymarket_insider_finder wallets [--timeframe DAYS] [--badge TYPE ...]
    python -m polymarket_insider_finder wallet ADDRESS
    python -m polymarket_insider_finder init-db
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

from polymarket_insider_finder.config import Settings, get_settings
from polymarket_insider_finder.detector.models import BadgeType
from polymarket_insider_finder.ingestor.feed import MarketFeedClient
from polymarket_insider_finder.profiler.detail import load_wallet_detail, wallet_dict
from polymarket_insider_finder.scan.backfill import backfill_first_trades
from polymarket_insider_finder.scan.job import ScanRequest, run_scan_job
from polymarket_insider_finder.storage.database import DatabaseManager
from polymarket_insider_finder.storage.repos import BadgeRepository, WalletRepository, persisted_id

logger = logging.getLogger(__name__)


def _json_default(x: object) -> str | float:
    if isinstance(x, datetime):
        return x.isoformat()
    if isinstance(x, Decimal):
        return float(x)
    return str(x)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=_json_default))


async def _cmd_scan(args: argparse.Namespace, settings: Settings) -> int:
    request = ScanRequest(
        days_back=args.days_back,
        min_trade_size=args.min_trade_size,
        max_trades=args.max_trades,
        max_total_trades=args.max_total_trades,
        max_trades_to_scan=args.max_trades_to_scan,
        max_new_wallets=args.max_new_wallets,
        max_existing_updates=args.max_existing_updates,
        timeout_ms=args.timeout_ms,
    )
    result = await run_scan_job(request, settings=settings)
    _print_json(result)
    return 0 if result["success"] else 1


async def _cmd_backfill(args: argparse.Namespace, settings: Settings) -> int:
    db = DatabaseManager(settings.database.url)
    try:
        async with MarketFeedClient.from_settings(settings.polymarket) as feed:
            result = await backfill_first_trades(db, feed, dry_run=args.dry_run)
    finally:
        await db.dispose_async()
    _print_json(result)
    return 0 if result["walletsFailed"] == 0 else 1


async def _cmd_wallets(args: argparse.Namespace, settings: Settings) -> int:
    since = datetime.now(UTC) - timedelta(days=args.timeframe) if args.timeframe else None
    db = DatabaseManager(settings.database.url)
    try:
        async with db.get_async_session() as session:
            wallets = await WalletRepository(session).list_flagged(
                since=since,
                badge_types=args.badge or (),
                categories=args.category or (),
                min_volume=args.min_volume,
                max_volume=args.max_volume,
                sort=args.sort,
                descending=not args.ascending,
                limit=args.limit,
                offset=args.offset,
            )
            badges = await BadgeRepository(session).list_for_wallets(
                persisted_id(w) for w in wallets
            )
    finally:
        await db.dispose_async()

    _print_json(
        [
            {
                **wallet_dict(w),
                "badges": [
                    {"type": b.badge_type, "reason": b.reason, "tradeId": b.trade_id}
                    for b in badges[persisted_id(w)]
                ],
            }
            for w in wallets
        ]
    )
    return 0


async def _cmd_wallet(args: argparse.Namespace, settings: Settings) -> int:
    db = DatabaseManager(settings.database.url)
    try:
        async with db.get_async_session() as session:
            detail = await load_wallet_detail(session, args.address)
    finally:
        await db.dispose_async()

    if detail is None:
        _print_json({"success": False, "error": "Wallet not found"})
        return 1
    _print_json({"success": True, **detail.to_dict()})
    return 0


async def _cmd_init_db(args: argparse.Namespace, settings: Settings) -> int:
    db = DatabaseManager(settings.database.url)
    try:
        await db.init_schema_async()
    finally:
        await db.dispose_async()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="polymarket_insider_finder",
        description="Find new Polymarket wallets that trade like insiders",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Run one time-budgeted insider scan")
    scan.add_argument("--days-back", type=int, default=None)
    scan.add_argument("--min-trade-size", type=Decimal, default=None)
    scan.add_argument("--max-trades", type=int, default=None)
    scan.add_argument("--max-total-trades", type=int, default=None)
    scan.add_argument("--max-trades-to-scan", type=int, default=None)
    scan.add_argument("--max-new-wallets", type=int, default=None)
    scan.add_argument("--max-existing-updates", type=int, default=None)
    scan.add_argument("--timeout-ms", type=int, default=None)
    scan.set_defaults(handler=_cmd_scan)

    backfill = sub.add_parser(
        "backfill-first-trades", help="Correct stored first-trade dates from full histories"
    )
    backfill.add_argument("--dry-run", action="store_true", help="Report without writing")
    backfill.set_defaults(handler=_cmd_backfill)

    wallets = sub.add_parser("wallets", help="List flagged wallets")
    wallets.add_argument(
        "--timeframe", type=int, default=30, help="Only wallets first trading in the last N days (0 = all)"
    )
    wallets.add_argument(
        "--badge", action="append", choices=[b.value for b in BadgeType], help="Repeatable"
    )
    wallets.add_argument("--category", action="append", help="Repeatable")
    wallets.add_argument("--min-volume", type=Decimal, default=None)
    wallets.add_argument("--max-volume", type=Decimal, default=None)
    wallets.add_argument(
        "--sort",
        choices=["first_trade_at", "total_volume", "total_trades", "win_rate"],
        default="first_trade_at",
    )
    wallets.add_argument("--ascending", action="store_true")
    wallets.add_argument("--limit", type=int, default=25)
    wallets.add_argument("--offset", type=int, default=0)
    wallets.set_defaults(handler=_cmd_wallets)

    wallet = sub.add_parser("wallet", help="Show one wallet with trades, badges and positions")
    wallet.add_argument("address", help="Wallet address or stored id")
    wallet.set_defaults(handler=_cmd_wallet)

    init_db = sub.add_parser("init-db", help="Create database tables")
    init_db.set_defaults(handler=_cmd_init_db)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.get_logging_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logger.debug("Settings: %s", settings.redacted_summary())
    return asyncio.run(args.handler(args, settings))


if __name__ == "__main__":
    sys.exit(main())
