"""SQLAlchemy models for persistent storage.

This module defines the database schema for insider wallets, their trades,
the badges earned on them, and the audit trail of scan job runs.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Stored in place of a missing transaction hash so the trade natural key stays NOT NULL.
NO_TRANSACTION_HASH = ""


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class WalletModel(Base):
    """A wallet tracked as a candidate insider."""

    __tablename__ = "insider_wallets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    address: Mapped[str] = mapped_column(String(42), nullable=False, unique=True)

    first_trade_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_trade_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    total_trades: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_volume: Mapped[Decimal] = mapped_column(Numeric(30, 10), nullable=False, default=Decimal(0))
    resolved_trades: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    won_trades: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    win_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_tracked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        Index("idx_insider_wallets_first_trade", "first_trade_at"),
        Index("idx_insider_wallets_tracked_updated", "is_tracked", "updated_at"),
    )


class TradeModel(Base):
    """One trade by a tracked wallet.

    Financial columns are written once at insert time. Resolution columns move
    from unresolved to resolved exactly once.
    """

    __tablename__ = "insider_trades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wallet_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("insider_wallets.id", ondelete="CASCADE"), nullable=False
    )
    market_id: Mapped[str] = mapped_column(String(80), nullable=False)
    transaction_hash: Mapped[str] = mapped_column(
        String(80), nullable=False, default=NO_TRANSACTION_HASH
    )

    # Descriptive (refreshable)
    market_question: Mapped[str] = mapped_column(Text, nullable=False, default="")
    market_slug: Mapped[str | None] = mapped_column(String(255), nullable=True)
    market_category: Mapped[str | None] = mapped_column(String(40), nullable=True)

    # Financial (immutable)
    outcome_name: Mapped[str] = mapped_column(String(64), nullable=False)
    side: Mapped[str] = mapped_column(String(4), nullable=False)  # BUY/SELL
    size: Mapped[Decimal] = mapped_column(Numeric(30, 10), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(20, 10), nullable=False)
    usd_value: Mapped[Decimal] = mapped_column(Numeric(30, 10), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    price_at_trade: Mapped[Decimal | None] = mapped_column(Numeric(20, 10), nullable=True)

    # Resolution (transition once)
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    won: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    pnl: Mapped[Decimal | None] = mapped_column(Numeric(30, 10), nullable=True)
    days_to_resolution: Mapped[int | None] = mapped_column(Integer, nullable=True)

    trader_rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    price_24h_later: Mapped[Decimal | None] = mapped_column(Numeric(20, 10), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        UniqueConstraint(
            "wallet_id",
            "market_id",
            "transaction_hash",
            name="uq_insider_trades_wallet_market_tx",
        ),
        Index("idx_insider_trades_wallet_resolved", "wallet_id", "resolved"),
        Index("idx_insider_trades_market", "market_id"),
    )


class BadgeModel(Base):
    """Evidence-backed flag earned by a wallet, optionally tied to one trade.

    A NULL ``trade_id`` marks wallet-level evidence. Uniqueness of the natural
    key is enforced by two partial indexes since NULLs never collide in a
    plain unique constraint.
    """

    __tablename__ = "insider_badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wallet_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("insider_wallets.id", ondelete="CASCADE"), nullable=False
    )
    trade_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("insider_trades.id", ondelete="CASCADE"), nullable=True
    )
    badge_type: Mapped[str] = mapped_column(String(32), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    # "metadata" is reserved on declarative classes.
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        Index(
            "uq_insider_badges_wallet_level",
            "wallet_id",
            "badge_type",
            unique=True,
            postgresql_where=text("trade_id IS NULL"),
            sqlite_where=text("trade_id IS NULL"),
        ),
        Index(
            "uq_insider_badges_trade_level",
            "wallet_id",
            "trade_id",
            "badge_type",
            unique=True,
            postgresql_where=text("trade_id IS NOT NULL"),
            sqlite_where=text("trade_id IS NOT NULL"),
        ),
        Index("idx_insider_badges_type", "badge_type"),
    )


class JobRunModel(Base):
    """Audit record written once per job invocation."""

    __tablename__ = "job_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_name: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)  # RUNNING|SUCCESS|FAIL
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (Index("idx_job_runs_name_started", "job_name", "started_at"),)
