"""Storage layer - Database schemas and repositories."""

from polymarket_insider_finder.storage.database import DatabaseManager, advisory_lock_key
from polymarket_insider_finder.storage.models import (
    Base,
    BadgeModel,
    JobRunModel,
    TradeModel,
    WalletModel,
)
from polymarket_insider_finder.storage.repos import (
    BadgeDTO,
    BadgeRepository,
    JobRunDTO,
    JobRunRepository,
    TradeDTO,
    TradeRepository,
    WalletDTO,
    WalletRepository,
)

__all__ = [
    "BadgeDTO",
    "BadgeModel",
    "BadgeRepository",
    "Base",
    "DatabaseManager",
    "JobRunDTO",
    "JobRunModel",
    "JobRunRepository",
    "TradeDTO",
    "TradeModel",
    "TradeRepository",
    "WalletDTO",
    "WalletModel",
    "WalletRepository",
    "advisory_lock_key",
]
