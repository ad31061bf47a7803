"""Repository pattern implementations for data access.

This module provides data access abstractions for insider wallets, their
trades and badges, and job run audit records. Every write is keyed on an
explicit natural key through a dialect-specific ``INSERT ... ON CONFLICT``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Literal

import sqlalchemy as sa
from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from polymarket_insider_finder.storage.models import (
    NO_TRANSACTION_HASH,
    BadgeModel,
    JobRunModel,
    TradeModel,
    WalletModel,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

WalletSortField = Literal["first_trade_at", "total_volume", "total_trades", "win_rate"]


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _insert_for(session: AsyncSession, model: type[Any]) -> Any:
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    raise ValueError(f"Unsupported dialect for upserts: {dialect}")


def persisted_id(record: WalletDTO | TradeDTO) -> int:
    """Primary key of a record read back from the database."""
    if record.id is None:
        raise ValueError(f"{type(record).__name__} has not been persisted")
    return record.id


@dataclass
class WalletDTO:
    """Data transfer object for insider wallets."""

    address: str
    first_trade_at: datetime
    last_trade_at: datetime
    total_trades: int = 0
    total_volume: Decimal = Decimal(0)
    resolved_trades: int = 0
    won_trades: int = 0
    win_rate: float | None = None
    is_tracked: bool = True
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, model: WalletModel) -> WalletDTO:
        return cls(
            id=model.id,
            address=model.address,
            first_trade_at=_as_utc(model.first_trade_at),
            last_trade_at=_as_utc(model.last_trade_at),
            total_trades=model.total_trades,
            total_volume=Decimal(model.total_volume),
            resolved_trades=model.resolved_trades,
            won_trades=model.won_trades,
            win_rate=model.win_rate,
            is_tracked=model.is_tracked,
            created_at=_as_utc(model.created_at),
            updated_at=_as_utc(model.updated_at),
        )


@dataclass
class TradeDTO:
    """Data transfer object for insider trades."""

    wallet_id: int
    market_id: str
    outcome_name: str
    side: str
    size: Decimal
    price: Decimal
    usd_value: Decimal
    timestamp: datetime
    transaction_hash: str = NO_TRANSACTION_HASH
    market_question: str = ""
    market_slug: str | None = None
    market_category: str | None = None
    price_at_trade: Decimal | None = None
    resolved: bool = False
    resolved_at: datetime | None = None
    won: bool | None = None
    pnl: Decimal | None = None
    days_to_resolution: int | None = None
    trader_rank: int | None = None
    price_24h_later: Decimal | None = None
    id: int | None = None
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, model: TradeModel) -> TradeDTO:
        return cls(
            id=model.id,
            wallet_id=model.wallet_id,
            market_id=model.market_id,
            transaction_hash=model.transaction_hash,
            market_question=model.market_question,
            market_slug=model.market_slug,
            market_category=model.market_category,
            outcome_name=model.outcome_name,
            side=model.side,
            size=Decimal(model.size),
            price=Decimal(model.price),
            usd_value=Decimal(model.usd_value),
            timestamp=_as_utc(model.timestamp),
            price_at_trade=Decimal(model.price_at_trade) if model.price_at_trade is not None else None,
            resolved=model.resolved,
            resolved_at=_as_utc(model.resolved_at),
            won=model.won,
            pnl=Decimal(model.pnl) if model.pnl is not None else None,
            days_to_resolution=model.days_to_resolution,
            trader_rank=model.trader_rank,
            price_24h_later=(
                Decimal(model.price_24h_later) if model.price_24h_later is not None else None
            ),
            created_at=_as_utc(model.created_at),
        )


@dataclass
class BadgeDTO:
    """Data transfer object for badges."""

    wallet_id: int
    badge_type: str
    reason: str
    trade_id: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: int | None = None
    earned_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, model: BadgeModel) -> BadgeDTO:
        return cls(
            id=model.id,
            wallet_id=model.wallet_id,
            trade_id=model.trade_id,
            badge_type=model.badge_type,
            reason=model.reason,
            metadata=dict(model.metadata_json or {}),
            earned_at=_as_utc(model.earned_at),
            updated_at=_as_utc(model.updated_at),
        )


@dataclass
class JobRunDTO:
    """Data transfer object for job run audit records."""

    job_name: str
    status: str
    started_at: datetime
    finished_at: datetime | None = None
    error: str | None = None
    details: dict[str, Any] | None = None
    id: int | None = None

    @classmethod
    def from_model(cls, model: JobRunModel) -> JobRunDTO:
        return cls(
            id=model.id,
            job_name=model.job_name,
            status=model.status,
            started_at=_as_utc(model.started_at),
            finished_at=_as_utc(model.finished_at),
            error=model.error,
            details=model.details,
        )


class WalletRepository:
    """Repository for insider wallets."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_address(self, address: str) -> WalletDTO | None:
        result = await self.session.execute(
            select(WalletModel)
            .where(WalletModel.address == address.lower())
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return WalletDTO.from_model(model) if model else None

    async def get_by_id(self, wallet_id: int) -> WalletDTO | None:
        model = await self.session.get(WalletModel, wallet_id, populate_existing=True)
        return WalletDTO.from_model(model) if model else None

    async def upsert_discovered(
        self,
        *,
        address: str,
        first_trade_at: datetime,
        last_trade_at: datetime,
        total_trades: int,
        total_volume: Decimal,
    ) -> tuple[WalletDTO, bool]:
        """Create or refresh a wallet found by a scan.

        Returns:
            The stored wallet and whether it was newly created.
        """
        normalized = address.lower()
        existing = await self.get_by_address(normalized)
        now = datetime.now(UTC)
        values = {
            "address": normalized,
            "first_trade_at": first_trade_at,
            "last_trade_at": last_trade_at,
            "total_trades": total_trades,
            "total_volume": total_volume,
        }
        stmt = _insert_for(self.session, WalletModel).values(
            **values,
            resolved_trades=0,
            won_trades=0,
            is_tracked=True,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["address"],
            set_={
                "first_trade_at": stmt.excluded.first_trade_at,
                "last_trade_at": stmt.excluded.last_trade_at,
                "total_trades": stmt.excluded.total_trades,
                "total_volume": stmt.excluded.total_volume,
                "updated_at": now,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()

        stored = await self.get_by_address(normalized)
        if stored is None:
            raise RuntimeError(f"Wallet {normalized} missing after upsert")
        return stored, existing is None

    async def update_stats(
        self,
        wallet_id: int,
        *,
        first_trade_at: datetime,
        last_trade_at: datetime,
        total_trades: int,
        total_volume: Decimal,
        resolved_trades: int,
        won_trades: int,
        win_rate: float | None,
    ) -> None:
        await self.session.execute(
            update(WalletModel)
            .where(WalletModel.id == wallet_id)
            .values(
                first_trade_at=first_trade_at,
                last_trade_at=last_trade_at,
                total_trades=total_trades,
                total_volume=total_volume,
                resolved_trades=resolved_trades,
                won_trades=won_trades,
                win_rate=win_rate,
                updated_at=datetime.now(UTC),
            )
        )
        await self.session.flush()

    async def update_history(self, wallet_id: int, *, first_trade_at: datetime, total_trades: int) -> None:
        """Overwrite the history-derived fields after a full-history refetch."""
        await self.session.execute(
            update(WalletModel)
            .where(WalletModel.id == wallet_id)
            .values(
                first_trade_at=first_trade_at,
                total_trades=total_trades,
                updated_at=datetime.now(UTC),
            )
        )
        await self.session.flush()

    async def list_for_refresh(
        self,
        *,
        limit: int,
        exclude_ids: Iterable[int] = (),
    ) -> list[WalletDTO]:
        """Tracked wallets, least recently updated first."""
        if limit <= 0:
            return []
        stmt = select(WalletModel).where(WalletModel.is_tracked.is_(True))
        excluded = list(exclude_ids)
        if excluded:
            stmt = stmt.where(WalletModel.id.not_in(excluded))
        stmt = stmt.order_by(WalletModel.updated_at.asc(), WalletModel.id.asc()).limit(limit)
        result = await self.session.execute(stmt)
        return [WalletDTO.from_model(m) for m in result.scalars().all()]

    async def list_all(self) -> list[WalletDTO]:
        result = await self.session.execute(
            select(WalletModel).order_by(WalletModel.created_at.desc(), WalletModel.id.desc())
        )
        return [WalletDTO.from_model(m) for m in result.scalars().all()]

    async def list_flagged(
        self,
        *,
        since: datetime | None = None,
        badge_types: Sequence[str] = (),
        categories: Sequence[str] = (),
        min_volume: Decimal | None = None,
        max_volume: Decimal | None = None,
        sort: WalletSortField = "first_trade_at",
        descending: bool = True,
        limit: int = 25,
        offset: int = 0,
    ) -> list[WalletDTO]:
        """Query tracked wallets for review, newest first by default."""
        stmt = select(WalletModel).where(WalletModel.is_tracked.is_(True))
        if since is not None:
            stmt = stmt.where(WalletModel.first_trade_at >= since)
        if badge_types:
            stmt = stmt.where(
                sa.exists().where(
                    BadgeModel.wallet_id == WalletModel.id,
                    BadgeModel.badge_type.in_(list(badge_types)),
                )
            )
        if categories:
            stmt = stmt.where(
                sa.exists().where(
                    TradeModel.wallet_id == WalletModel.id,
                    TradeModel.market_category.in_([c.lower() for c in categories]),
                )
            )
        if min_volume is not None:
            stmt = stmt.where(WalletModel.total_volume >= min_volume)
        if max_volume is not None:
            stmt = stmt.where(WalletModel.total_volume <= max_volume)

        column = getattr(WalletModel, sort)
        stmt = stmt.order_by(column.desc() if descending else column.asc(), WalletModel.id.asc())
        stmt = stmt.limit(limit).offset(offset)
        result = await self.session.execute(stmt)
        return [WalletDTO.from_model(m) for m in result.scalars().all()]


class TradeRepository:
    """Repository for insider trades."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_natural_key(
        self,
        *,
        wallet_id: int,
        market_id: str,
        transaction_hash: str | None,
    ) -> TradeDTO | None:
        result = await self.session.execute(
            select(TradeModel).where(
                TradeModel.wallet_id == wallet_id,
                TradeModel.market_id == market_id,
                TradeModel.transaction_hash == (transaction_hash or NO_TRANSACTION_HASH),
            ).execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return TradeDTO.from_model(model) if model else None

    async def upsert(self, dto: TradeDTO) -> bool:
        """Upsert a trade by (wallet_id, market_id, transaction_hash).

        On conflict only the descriptive market fields are refreshed (and a
        missing trader rank is filled in); financial and resolution columns
        keep the values recorded at trade time.

        Returns:
            True if a new row was inserted.
        """
        tx_hash = dto.transaction_hash or NO_TRANSACTION_HASH
        existing = await self.get_by_natural_key(
            wallet_id=dto.wallet_id, market_id=dto.market_id, transaction_hash=tx_hash
        )
        stmt = _insert_for(self.session, TradeModel).values(
            wallet_id=dto.wallet_id,
            market_id=dto.market_id,
            transaction_hash=tx_hash,
            market_question=dto.market_question,
            market_slug=dto.market_slug,
            market_category=dto.market_category,
            outcome_name=dto.outcome_name,
            side=dto.side,
            size=dto.size,
            price=dto.price,
            usd_value=dto.usd_value,
            timestamp=dto.timestamp,
            price_at_trade=dto.price_at_trade if dto.price_at_trade is not None else dto.price,
            resolved=False,
            trader_rank=dto.trader_rank,
            created_at=datetime.now(UTC),
        )
        table = TradeModel.__table__
        stmt = stmt.on_conflict_do_update(
            index_elements=["wallet_id", "market_id", "transaction_hash"],
            set_={
                "market_question": stmt.excluded.market_question,
                "market_slug": stmt.excluded.market_slug,
                "market_category": stmt.excluded.market_category,
                "trader_rank": sa.func.coalesce(table.c.trader_rank, stmt.excluded.trader_rank),
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()
        return existing is None

    async def list_for_wallet(self, wallet_id: int) -> list[TradeDTO]:
        result = await self.session.execute(
            select(TradeModel)
            .where(TradeModel.wallet_id == wallet_id)
            .order_by(TradeModel.timestamp.asc(), TradeModel.id.asc())
            .execution_options(populate_existing=True)
        )
        return [TradeDTO.from_model(m) for m in result.scalars().all()]

    async def list_unresolved(self, wallet_id: int) -> list[TradeDTO]:
        result = await self.session.execute(
            select(TradeModel)
            .where(TradeModel.wallet_id == wallet_id, TradeModel.resolved.is_(False))
            .order_by(TradeModel.timestamp.asc(), TradeModel.id.asc())
            .execution_options(populate_existing=True)
        )
        return [TradeDTO.from_model(m) for m in result.scalars().all()]

    async def mark_resolved(
        self,
        trade_id: int,
        *,
        resolved_at: datetime,
        won: bool,
        pnl: Decimal,
        days_to_resolution: int,
    ) -> bool:
        """Move a trade to its terminal resolved state.

        The update only matches unresolved rows, so a trade resolves once.

        Returns:
            True if the row transitioned.
        """
        result = await self.session.execute(
            update(TradeModel)
            .where(TradeModel.id == trade_id, TradeModel.resolved.is_(False))
            .values(
                resolved=True,
                resolved_at=resolved_at,
                won=won,
                pnl=pnl,
                days_to_resolution=days_to_resolution,
            )
        )
        await self.session.flush()
        return result.rowcount == 1

    async def set_price_24h_later(self, trade_id: int, price: Decimal) -> bool:
        result = await self.session.execute(
            update(TradeModel)
            .where(TradeModel.id == trade_id, TradeModel.price_24h_later.is_(None))
            .values(price_24h_later=price)
        )
        await self.session.flush()
        return result.rowcount == 1


class BadgeRepository:
    """Repository for badges (append-only per natural key)."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_natural_key(
        self,
        *,
        wallet_id: int,
        trade_id: int | None,
        badge_type: str,
    ) -> BadgeDTO | None:
        stmt = select(BadgeModel).where(
            BadgeModel.wallet_id == wallet_id,
            BadgeModel.badge_type == badge_type,
        )
        if trade_id is None:
            stmt = stmt.where(BadgeModel.trade_id.is_(None))
        else:
            stmt = stmt.where(BadgeModel.trade_id == trade_id)
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        model = result.scalar_one_or_none()
        return BadgeDTO.from_model(model) if model else None

    async def upsert(self, dto: BadgeDTO) -> bool:
        """Upsert a badge by (wallet_id, trade_id, badge_type).

        Re-evaluation refreshes reason and metadata; rows are never deleted.

        Returns:
            True if the badge was newly awarded.
        """
        existing = await self.get_by_natural_key(
            wallet_id=dto.wallet_id, trade_id=dto.trade_id, badge_type=dto.badge_type
        )
        now = datetime.now(UTC)
        stmt = _insert_for(self.session, BadgeModel).values(
            wallet_id=dto.wallet_id,
            trade_id=dto.trade_id,
            badge_type=dto.badge_type,
            reason=dto.reason,
            metadata_json=dto.metadata,
            earned_at=now,
            updated_at=now,
        )
        if dto.trade_id is None:
            index_elements = ["wallet_id", "badge_type"]
            index_where = BadgeModel.trade_id.is_(None)
        else:
            index_elements = ["wallet_id", "trade_id", "badge_type"]
            index_where = BadgeModel.trade_id.is_not(None)
        stmt = stmt.on_conflict_do_update(
            index_elements=index_elements,
            index_where=index_where,
            set_={
                "reason": stmt.excluded.reason,
                "metadata_json": stmt.excluded.metadata_json,
                "updated_at": now,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()
        return existing is None

    async def list_for_wallet(self, wallet_id: int) -> list[BadgeDTO]:
        result = await self.session.execute(
            select(BadgeModel)
            .where(BadgeModel.wallet_id == wallet_id)
            .order_by(BadgeModel.earned_at.desc(), BadgeModel.id.asc())
            .execution_options(populate_existing=True)
        )
        return [BadgeDTO.from_model(m) for m in result.scalars().all()]

    async def list_for_wallets(self, wallet_ids: Iterable[int]) -> dict[int, list[BadgeDTO]]:
        """Badges of several wallets at once, keyed by wallet id."""
        ids = list(wallet_ids)
        grouped: dict[int, list[BadgeDTO]] = {wallet_id: [] for wallet_id in ids}
        if not ids:
            return grouped
        result = await self.session.execute(
            select(BadgeModel)
            .where(BadgeModel.wallet_id.in_(ids))
            .order_by(BadgeModel.earned_at.desc(), BadgeModel.id.asc())
            .execution_options(populate_existing=True)
        )
        for model in result.scalars().all():
            grouped[model.wallet_id].append(BadgeDTO.from_model(model))
        return grouped


class JobRunRepository:
    """Repository for job run audit records."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def start(self, job_name: str) -> int:
        model = JobRunModel(job_name=job_name, status="RUNNING", started_at=datetime.now(UTC))
        self.session.add(model)
        await self.session.flush()
        return model.id

    async def finish(
        self,
        run_id: int,
        *,
        status: Literal["SUCCESS", "FAIL"],
        details: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> None:
        await self.session.execute(
            update(JobRunModel)
            .where(JobRunModel.id == run_id)
            .values(
                status=status,
                finished_at=datetime.now(UTC),
                details=details,
                error=error,
            )
        )
        await self.session.flush()

    async def get(self, run_id: int) -> JobRunDTO | None:
        model = await self.session.get(JobRunModel, run_id, populate_existing=True)
        return JobRunDTO.from_model(model) if model else None

    async def list_recent(self, job_name: str, *, limit: int = 10) -> list[JobRunDTO]:
        result = await self.session.execute(
            select(JobRunModel)
            .where(JobRunModel.job_name == job_name)
            .order_by(JobRunModel.started_at.desc(), JobRunModel.id.desc())
            .limit(limit)
        )
        return [JobRunDTO.from_model(m) for m in result.scalars().all()]
