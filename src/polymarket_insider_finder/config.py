"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Polymarket Insider Finder, loading and validating environment variables
at startup.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from functools import lru_cache
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"


def _from_env(settings_cls: type[BaseSettings]) -> Any:
    return settings_cls(_env_file=_ENV_FILE, _env_file_encoding=_ENV_FILE_ENCODING)


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        alias="DATABASE_URL",
        description="PostgreSQL (or SQLite for local runs) connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError("DATABASE_URL must be a PostgreSQL or sqlite+aiosqlite connection string")
        return v


class PolymarketSettings(BaseSettings):
    """Polymarket API settings."""

    model_config = SettingsConfigDict(env_prefix="POLYMARKET_", extra="ignore")

    data_api_url: str = Field(
        default="https://data-api.polymarket.com",
        alias="POLYMARKET_DATA_API_URL",
        description="Data API host serving the public trade feed",
    )
    clob_host: str = Field(
        default="https://clob.polymarket.com",
        alias="POLYMARKET_CLOB_HOST",
        description="CLOB HTTP API host (market resolution and prices)",
    )
    clob_chain_id: int = Field(
        default=137,
        alias="POLYMARKET_CLOB_CHAIN_ID",
        description="Chain ID for the CLOB client (Polygon=137)",
    )
    request_delay_seconds: float = Field(
        default=0.2,
        alias="POLYMARKET_REQUEST_DELAY_SECONDS",
        ge=0.0,
        le=10.0,
        description="Fixed delay between consecutive feed calls",
    )
    page_size: int = Field(
        default=100,
        alias="POLYMARKET_PAGE_SIZE",
        ge=1,
        le=500,
        description="Records requested per trade feed page",
    )
    history_max_records: int = Field(
        default=1100,
        alias="POLYMARKET_HISTORY_MAX_RECORDS",
        ge=1,
        le=100_000,
        description="Hard cap on records fetched for one wallet's history",
    )
    timeout_seconds: float = Field(
        default=30.0,
        alias="POLYMARKET_TIMEOUT_SECONDS",
        gt=0.0,
        le=300.0,
        description="HTTP timeout for data API calls",
    )

    @field_validator("data_api_url", "clob_host")
    @classmethod
    def validate_http_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Polymarket API hosts must be HTTP(S) endpoints")
        return v.rstrip("/")


class ScanSettings(BaseSettings):
    """Default options for an insider scan run."""

    model_config = SettingsConfigDict(env_prefix="SCAN_", extra="ignore")

    days_back: int = Field(
        default=30,
        alias="SCAN_DAYS_BACK",
        ge=1,
        le=365,
        description="Recency window (days) for wallet discovery",
    )
    min_trade_size: Decimal = Field(
        default=Decimal("100"),
        alias="SCAN_MIN_TRADE_SIZE",
        description="Minimum trade value (USD) considered during discovery",
    )
    max_trades: int = Field(
        default=20,
        alias="SCAN_MAX_TRADES",
        ge=1,
        le=10_000,
        description="Maximum in-window trades per candidate wallet",
    )
    max_total_trades: int = Field(
        default=50,
        alias="SCAN_MAX_TOTAL_TRADES",
        ge=1,
        le=100_000,
        description="Maximum full-history trades before a wallet is skipped",
    )
    max_trades_to_scan: int = Field(
        default=15_000,
        alias="SCAN_MAX_TRADES_TO_SCAN",
        ge=1,
        le=1_000_000,
        description="Hard cap on feed records examined per run",
    )
    max_new_wallets: int = Field(
        default=30,
        alias="SCAN_MAX_NEW_WALLETS",
        ge=0,
        le=10_000,
        description="Maximum candidate wallets processed per run",
    )
    max_existing_updates: int = Field(
        default=20,
        alias="SCAN_MAX_EXISTING_UPDATES",
        ge=0,
        le=10_000,
        description="Maximum tracked wallets refreshed per run",
    )
    timeout_ms: int = Field(
        default=250_000,
        alias="SCAN_TIMEOUT_MS",
        ge=1,
        description="Wall-clock budget for one run (milliseconds)",
    )
    hard_deadline_seconds: float = Field(
        default=300.0,
        alias="SCAN_HARD_DEADLINE_SECONDS",
        gt=0.0,
        description="Caller's hard execution deadline",
    )
    safety_margin_seconds: float = Field(
        default=50.0,
        alias="SCAN_SAFETY_MARGIN_SECONDS",
        ge=0.0,
        description="Margin kept between the run budget and the hard deadline",
    )

    @model_validator(mode="after")
    def validate_deadline(self) -> ScanSettings:
        if self.safety_margin_seconds >= self.hard_deadline_seconds:
            raise ValueError("SCAN_SAFETY_MARGIN_SECONDS must be smaller than SCAN_HARD_DEADLINE_SECONDS")
        return self

    @property
    def max_budget_ms(self) -> int:
        """Largest budget a run may use while respecting the safety margin."""
        return int((self.hard_deadline_seconds - self.safety_margin_seconds) * 1000)


class BadgeSettings(BaseSettings):
    """Thresholds for the badge rules."""

    model_config = SettingsConfigDict(env_prefix="BADGE_", extra="ignore")

    fresh_wallet_max_age_days: int = Field(
        default=7,
        alias="BADGE_FRESH_WALLET_MAX_AGE_DAYS",
        ge=0,
        le=3650,
        description="Wallets at most this many days old are fresh",
    )
    high_win_rate: float = Field(
        default=0.80,
        alias="BADGE_HIGH_WIN_RATE",
        ge=0.0,
        le=1.0,
        description="Minimum win rate for the high-win-rate badge",
    )
    high_win_rate_min_resolved: int = Field(
        default=2,
        alias="BADGE_HIGH_WIN_RATE_MIN_RESOLVED",
        ge=1,
        description="Minimum resolved trades before win rate is considered",
    )
    big_bet_volume_share: Decimal = Field(
        default=Decimal("0.5"),
        alias="BADGE_BIG_BET_VOLUME_SHARE",
        description="Share of wallet volume a single trade must exceed",
    )
    long_shot_max_price: Decimal = Field(
        default=Decimal("0.25"),
        alias="BADGE_LONG_SHOT_MAX_PRICE",
        description="Entry price below which a winning trade is a long shot",
    )
    pre_move_min_change: Decimal = Field(
        default=Decimal("0.20"),
        alias="BADGE_PRE_MOVE_MIN_CHANGE",
        description="Absolute 24h price change that flags a pre-move trade",
    )
    late_winner_max_days: int = Field(
        default=7,
        alias="BADGE_LATE_WINNER_MAX_DAYS",
        ge=0,
        description="Winning trades placed at most this many days before resolution",
    )
    first_mover_max_rank: int = Field(
        default=10,
        alias="BADGE_FIRST_MOVER_MAX_RANK",
        ge=1,
        description="Trader rank on a market at or below which a trade is a first mover",
    )

    @field_validator("big_bet_volume_share", "long_shot_max_price", "pre_move_min_change")
    @classmethod
    def validate_fraction(cls, v: Decimal) -> Decimal:
        if not (Decimal(0) < v <= Decimal(1)):
            raise ValueError("badge fractions must be in (0, 1]")
        return v


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from polymarket_insider_finder.config import get_settings

        settings = get_settings()
        print(settings.database.url)
        print(settings.scan.days_back)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # Nested settings read the same .env file as the parent.
    database: DatabaseSettings = Field(default_factory=lambda: _from_env(DatabaseSettings))
    polymarket: PolymarketSettings = Field(default_factory=lambda: _from_env(PolymarketSettings))
    scan: ScanSettings = Field(default_factory=lambda: _from_env(ScanSettings))
    badges: BadgeSettings = Field(default_factory=lambda: _from_env(BadgeSettings))

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted."""
        return {
            "database_url": self._redact_url(self.database.url),
            "polymarket": {
                "data_api_url": self.polymarket.data_api_url,
                "clob_host": self.polymarket.clob_host,
                "request_delay_seconds": str(self.polymarket.request_delay_seconds),
            },
            "scan": {
                "days_back": str(self.scan.days_back),
                "min_trade_size": str(self.scan.min_trade_size),
                "max_total_trades": str(self.scan.max_total_trades),
                "timeout_ms": str(self.scan.timeout_ms),
            },
            "log_level": self.log_level,
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Mask the password component of a connection URL."""
        scheme, sep, rest = url.partition("://")
        creds, at, host = rest.rpartition("@")
        if not sep or not at or ":" not in creds:
            return url
        user = creds.split(":", 1)[0]
        return f"{scheme}://{user}:***@{host}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
