"""Insider wallets, trades, badges and job runs.

Revision ID: 001_insider_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000+00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_insider_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "insider_wallets",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("address", sa.String(42), nullable=False),
        sa.Column("first_trade_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_trade_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_trades", sa.Integer(), nullable=False),
        sa.Column("total_volume", sa.Numeric(30, 10), nullable=False),
        sa.Column("resolved_trades", sa.Integer(), nullable=False),
        sa.Column("won_trades", sa.Integer(), nullable=False),
        sa.Column("win_rate", sa.Float(), nullable=True),
        sa.Column("is_tracked", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("address"),
    )
    op.create_index("idx_insider_wallets_first_trade", "insider_wallets", ["first_trade_at"])
    op.create_index(
        "idx_insider_wallets_tracked_updated", "insider_wallets", ["is_tracked", "updated_at"]
    )

    op.create_table(
        "insider_trades",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("wallet_id", sa.Integer(), nullable=False),
        sa.Column("market_id", sa.String(80), nullable=False),
        sa.Column("transaction_hash", sa.String(80), nullable=False, server_default=""),
        sa.Column("market_question", sa.Text(), nullable=False),
        sa.Column("market_slug", sa.String(255), nullable=True),
        sa.Column("market_category", sa.String(40), nullable=True),
        sa.Column("outcome_name", sa.String(64), nullable=False),
        sa.Column("side", sa.String(4), nullable=False),
        sa.Column("size", sa.Numeric(30, 10), nullable=False),
        sa.Column("price", sa.Numeric(20, 10), nullable=False),
        sa.Column("usd_value", sa.Numeric(30, 10), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("price_at_trade", sa.Numeric(20, 10), nullable=True),
        sa.Column("resolved", sa.Boolean(), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("won", sa.Boolean(), nullable=True),
        sa.Column("pnl", sa.Numeric(30, 10), nullable=True),
        sa.Column("days_to_resolution", sa.Integer(), nullable=True),
        sa.Column("trader_rank", sa.Integer(), nullable=True),
        sa.Column("price_24h_later", sa.Numeric(20, 10), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["wallet_id"], ["insider_wallets.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "wallet_id",
            "market_id",
            "transaction_hash",
            name="uq_insider_trades_wallet_market_tx",
        ),
    )
    op.create_index(
        "idx_insider_trades_wallet_resolved", "insider_trades", ["wallet_id", "resolved"]
    )
    op.create_index("idx_insider_trades_market", "insider_trades", ["market_id"])

    op.create_table(
        "insider_badges",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("wallet_id", sa.Integer(), nullable=False),
        sa.Column("trade_id", sa.Integer(), nullable=True),
        sa.Column("badge_type", sa.String(32), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("metadata_json", sa.JSON(), nullable=True),
        sa.Column("earned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["wallet_id"], ["insider_wallets.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["trade_id"], ["insider_trades.id"], ondelete="CASCADE"),
    )
    # Wallet-level badges have no trade; NULLs never collide in a plain unique
    # constraint, so each shape gets its own partial unique index.
    op.create_index(
        "uq_insider_badges_wallet_level",
        "insider_badges",
        ["wallet_id", "badge_type"],
        unique=True,
        postgresql_where=sa.text("trade_id IS NULL"),
        sqlite_where=sa.text("trade_id IS NULL"),
    )
    op.create_index(
        "uq_insider_badges_trade_level",
        "insider_badges",
        ["wallet_id", "trade_id", "badge_type"],
        unique=True,
        postgresql_where=sa.text("trade_id IS NOT NULL"),
        sqlite_where=sa.text("trade_id IS NOT NULL"),
    )
    op.create_index("idx_insider_badges_type", "insider_badges", ["badge_type"])

    op.create_table(
        "job_runs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("job_name", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_job_runs_name_started", "job_runs", ["job_name", "started_at"])


def downgrade() -> None:
    op.drop_index("idx_job_runs_name_started", table_name="job_runs")
    op.drop_table("job_runs")

    op.drop_index("idx_insider_badges_type", table_name="insider_badges")
    op.drop_index("uq_insider_badges_trade_level", table_name="insider_badges")
    op.drop_index("uq_insider_badges_wallet_level", table_name="insider_badges")
    op.drop_table("insider_badges")

    op.drop_index("idx_insider_trades_market", table_name="insider_trades")
    op.drop_index("idx_insider_trades_wallet_resolved", table_name="insider_trades")
    op.drop_table("insider_trades")

    op.drop_index("idx_insider_wallets_tracked_updated", table_name="insider_wallets")
    op.drop_index("idx_insider_wallets_first_trade", table_name="insider_wallets")
    op.drop_table("insider_wallets")
