"""Badge detection layer - Evidence rules over wallet stats and trades."""

from polymarket_insider_finder.detector.badges import RULES, evaluate_badges
from polymarket_insider_finder.detector.engine import BadgeEngine
from polymarket_insider_finder.detector.models import (
    BadgeCandidate,
    BadgeThresholds,
    BadgeType,
    TradeFacts,
)

__all__ = [
    "RULES",
    "BadgeCandidate",
    "BadgeEngine",
    "BadgeThresholds",
    "BadgeType",
    "TradeFacts",
    "evaluate_badges",
]
