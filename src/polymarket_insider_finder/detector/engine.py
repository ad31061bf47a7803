"""Badge evaluation and persistence."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime

from polymarket_insider_finder.detector.badges import RULES, BadgeRule, evaluate_badges
from polymarket_insider_finder.detector.models import BadgeThresholds, TradeFacts
from polymarket_insider_finder.profiler.stats import WalletStats
from polymarket_insider_finder.storage.repos import BadgeDTO, BadgeRepository, TradeDTO

logger = logging.getLogger(__name__)


class BadgeEngine:
    """Evaluates the badge rules for a wallet and upserts the matches.

    Badges are keyed on (wallet, trade, badge type). Re-evaluation refreshes
    reason and metadata of existing badges and never removes any.

    Example:
        ```python
        engine = BadgeEngine(BadgeRepository(session), thresholds)
        awarded = await engine.award(wallet_id, stats, trades)
        ```
    """

    def __init__(
        self,
        badges: BadgeRepository,
        thresholds: BadgeThresholds | None = None,
        *,
        rules: Sequence[BadgeRule] = RULES,
    ) -> None:
        self._badges = badges
        self._thresholds = thresholds or BadgeThresholds()
        self._rules = rules

    async def award(
        self,
        wallet_id: int,
        stats: WalletStats,
        trades: Sequence[TradeDTO],
        *,
        now: datetime | None = None,
    ) -> int:
        """Evaluate and persist badges; return how many were newly awarded."""
        now = now or datetime.now(UTC)
        facts = [TradeFacts.from_dto(t) for t in trades]
        candidates = evaluate_badges(stats, facts, now, self._thresholds, self._rules)

        awarded = 0
        for candidate in candidates:
            created = await self._badges.upsert(
                BadgeDTO(
                    wallet_id=wallet_id,
                    badge_type=candidate.badge_type.value,
                    reason=candidate.reason,
                    trade_id=candidate.trade_id,
                    metadata=candidate.metadata,
                )
            )
            if created:
                awarded += 1
                logger.info(
                    "Wallet %d earned %s: %s",
                    wallet_id,
                    candidate.badge_type.value,
                    candidate.reason,
                )
        return awarded
