"""Data models for the ingestor module."""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Literal

from polymarket_insider_finder.ingestor.categories import classify_market_category


class FeedParseError(ValueError):
    """Raised when a feed record is missing required fields."""


def _decimal(value: Any, *, field_name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError) as e:
        raise FeedParseError(f"Invalid {field_name}: {value!r}") from e


@dataclass(frozen=True)
class FeedTrade:
    """A single execution from the Polymarket data API trade feed.

    Attributes:
        wallet_address: Lower-cased proxy wallet that executed the trade.
        market_id: Market condition ID.
        transaction_hash: On-chain transaction hash ("" when absent).
        market_question: Market title at fetch time.
        market_slug: Market slug at fetch time.
        market_category: Category from the market-category classifier.
        outcome_name: Outcome bought or sold ("Yes", "No", ...).
        side: BUY or SELL.
        size: Number of shares.
        price: Execution price in [0, 1].
        timestamp: Execution time (UTC).
        trader_rank: Order of this wallet's entry on the market, when known.
    """

    wallet_address: str
    market_id: str
    transaction_hash: str
    market_question: str
    market_slug: str | None
    market_category: str | None
    outcome_name: str
    side: Literal["BUY", "SELL"]
    size: Decimal
    price: Decimal
    timestamp: datetime
    trader_rank: int | None = None

    @property
    def usd_value(self) -> Decimal:
        """Notional value in USD (size * price)."""
        return self.size * self.price

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeedTrade":
        """Create a FeedTrade from a data API ``/trades`` record."""
        wallet = str(data.get("proxyWallet") or "").lower()
        market_id = str(data.get("conditionId") or "")
        if not wallet or not market_id:
            raise FeedParseError("Trade record missing proxyWallet or conditionId")

        raw_ts = data.get("timestamp")
        if raw_ts is None:
            raise FeedParseError("Trade record missing timestamp")
        try:
            timestamp = datetime.fromtimestamp(float(raw_ts), tz=UTC)
        except (TypeError, ValueError, OverflowError) as e:
            raise FeedParseError(f"Invalid timestamp: {raw_ts!r}") from e

        question = str(data.get("title") or "")
        slug = data.get("slug")
        side_raw = str(data.get("side") or "").upper()
        rank = data.get("traderRank")

        return cls(
            wallet_address=wallet,
            market_id=market_id,
            transaction_hash=str(data.get("transactionHash") or ""),
            market_question=question,
            market_slug=str(slug) if slug else None,
            market_category=classify_market_category(question, str(slug or "")) or "other",
            outcome_name=str(data.get("outcome") or ""),
            side="SELL" if side_raw == "SELL" else "BUY",
            size=_decimal(data.get("size"), field_name="size"),
            price=_decimal(data.get("price"), field_name="price"),
            timestamp=timestamp,
            trader_rank=int(rank) if rank is not None else None,
        )


@dataclass(frozen=True)
class Token:
    """Represents an outcome token in a Polymarket market."""

    token_id: str
    outcome: str
    price: Decimal | None = None
    winner: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Token":
        """Create a Token from a dictionary."""
        price = data.get("price")
        return cls(
            token_id=str(data.get("token_id", "")),
            outcome=str(data["outcome"]),
            price=Decimal(str(price)) if price is not None else None,
            winner=bool(data.get("winner", False)),
        )


@dataclass(frozen=True)
class Market:
    """Represents a Polymarket prediction market."""

    condition_id: str
    question: str
    tokens: tuple[Token, ...]
    closed: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Market":
        """Create a Market from a CLOB market response."""
        tokens = tuple(Token.from_dict(t) for t in data.get("tokens") or [])

        return cls(
            condition_id=str(data["condition_id"]),
            question=str(data.get("question", "")),
            tokens=tokens,
            closed=bool(data.get("closed", False)),
        )

    @property
    def winning_outcome(self) -> str | None:
        for token in self.tokens:
            if token.winner:
                return token.outcome
        return None


@dataclass(frozen=True)
class MarketResolution:
    """Resolution state of a market."""

    resolved: bool
    winning_outcome: str | None = None

    @classmethod
    def from_market(cls, market: Market) -> "MarketResolution":
        """A market counts as resolved once it is closed and a token is marked winner."""
        winner = market.winning_outcome
        if market.closed and winner is not None:
            return cls(resolved=True, winning_outcome=winner)
        return cls(resolved=False)
