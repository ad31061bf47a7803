"""Market category classification from title, slug and tags."""

import re
from collections.abc import Iterable

EXCLUDED_TAGS = frozenset(
    {
        "crypto",
        "cryptocurrency",
        "bitcoin",
        "ethereum",
        "sports",
        "nfl",
        "nba",
        "mlb",
        "nhl",
        "soccer",
        "football",
        "baseball",
        "basketball",
        "hockey",
        "tennis",
        "golf",
        "mma",
        "ufc",
        "boxing",
    }
)

# Matched as whole words against the question and the slug.
EXCLUDED_KEYWORDS = (
    # Crypto
    "btc",
    "eth",
    "sol",
    "bitcoin",
    "ethereum",
    "solana",
    "crypto",
    "defi",
    "nft",
    "xrp",
    "doge",
    "cardano",
    "polkadot",
    # Sports
    "o/u",
    "nfl",
    "nba",
    "mlb",
    "nhl",
    "mls",
    "epl",
    "premier league",
    "champions league",
    "la liga",
    "serie a",
    "bundesliga",
    "super bowl",
    "world series",
    "stanley cup",
    "grand slam",
    "ufc",
    "vs.",
    "spread",
    "touchdown",
)

CATEGORY_TAGS = (
    "politics",
    "entertainment",
    "science",
    "business",
    "technology",
    "economics",
    "culture",
)

DEFAULT_CATEGORY = "other"

_KEYWORD_PATTERN = re.compile(
    "|".join(rf"(?<![a-z0-9]){re.escape(k)}(?![a-z0-9])" for k in EXCLUDED_KEYWORDS)
)


def classify_market_category(
    question: str,
    slug: str = "",
    tags: Iterable[str] = (),
) -> str | None:
    """Classify a market into a coarse category.

    Returns None for crypto and sports markets, the first matching known tag
    otherwise, and ``"other"`` when nothing matches.
    """
    lower_tags = {t.lower() for t in tags}
    if lower_tags & EXCLUDED_TAGS:
        return None

    slug_text = slug.lower().replace("-", " ")
    for text in (question.lower(), slug_text):
        if text and _KEYWORD_PATTERN.search(text):
            return None

    for category in CATEGORY_TAGS:
        if category in lower_tags:
            return category
    return DEFAULT_CATEGORY
