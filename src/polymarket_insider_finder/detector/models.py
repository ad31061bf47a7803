"""Data models for the detector module."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from polymarket_insider_finder.config import BadgeSettings
from polymarket_insider_finder.storage.repos import TradeDTO


class BadgeType(str, Enum):
    """Kinds of evidence a wallet can earn."""

    FRESH_WALLET = "FRESH_WALLET"
    SINGLE_MARKET = "SINGLE_MARKET"
    HIGH_WIN_RATE = "HIGH_WIN_RATE"
    BIG_BET = "BIG_BET"
    LONG_SHOT = "LONG_SHOT"
    PRE_MOVE = "PRE_MOVE"
    LATE_WINNER = "LATE_WINNER"
    FIRST_MOVER = "FIRST_MOVER"


@dataclass(frozen=True)
class TradeFacts:
    """The persisted trade fields the badge rules read."""

    trade_id: int
    market_id: str
    usd_value: Decimal
    price: Decimal
    won: bool | None = None
    price_at_trade: Decimal | None = None
    price_24h_later: Decimal | None = None
    days_to_resolution: int | None = None
    trader_rank: int | None = None

    @classmethod
    def from_dto(cls, dto: TradeDTO) -> TradeFacts:
        if dto.id is None:
            raise ValueError("Badge rules need persisted trades")
        return cls(
            trade_id=dto.id,
            market_id=dto.market_id,
            usd_value=dto.usd_value,
            price=dto.price,
            won=dto.won,
            price_at_trade=dto.price_at_trade,
            price_24h_later=dto.price_24h_later,
            days_to_resolution=dto.days_to_resolution,
            trader_rank=dto.trader_rank,
        )


@dataclass(frozen=True)
class BadgeCandidate:
    """A rule match, before persistence.

    Attributes:
        badge_type: Which rule matched.
        reason: Human-readable explanation with the measured numbers.
        trade_id: Trade the evidence points at; None for wallet-level badges.
        metadata: JSON-safe numeric evidence.
    """

    badge_type: BadgeType
    reason: str
    trade_id: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BadgeThresholds:
    """Rule thresholds; defaults match :class:`BadgeSettings`."""

    fresh_wallet_max_age_days: int = 7
    high_win_rate: float = 0.80
    high_win_rate_min_resolved: int = 2
    big_bet_volume_share: Decimal = Decimal("0.5")
    long_shot_max_price: Decimal = Decimal("0.25")
    pre_move_min_change: Decimal = Decimal("0.20")
    late_winner_max_days: int = 7
    first_mover_max_rank: int = 10

    @classmethod
    def from_settings(cls, settings: BadgeSettings) -> BadgeThresholds:
        return cls(
            fresh_wallet_max_age_days=settings.fresh_wallet_max_age_days,
            high_win_rate=settings.high_win_rate,
            high_win_rate_min_resolved=settings.high_win_rate_min_resolved,
            big_bet_volume_share=settings.big_bet_volume_share,
            long_shot_max_price=settings.long_shot_max_price,
            pre_move_min_change=settings.pre_move_min_change,
            late_winner_max_days=settings.late_winner_max_days,
            first_mover_max_rank=settings.first_mover_max_rank,
        )
