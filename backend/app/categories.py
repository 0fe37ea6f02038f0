"""Fixed category vocabulary shared by the classifier, search and ingest."""
from typing import Iterable

from app.config import get_settings

AVAILABLE_CATEGORIES = [
    "BTC-only",
    "accounting",
    "altcoins",
    "beginner",
    "btc-only",
    "content-creation",
    "courses",
    "crypto",
    "custody",
    "education",
    "environment",
    "general-crypto",
    "interviews",
    "investing",
    "libertarian",
    "lifestyle",
    "macro",
    "macro-research",
    "market-analysis",
    "mining",
    "news",
    "podcast",
    "privacy",
    "security",
    "storytelling",
    "survivalism",
    "taxation",
    "tech",
    "technical-analysis",
    "trading",
    "trading-education",
    "travel",
    "tutorials",
    "vlog",
]

_VOCABULARY = frozenset(AVAILABLE_CATEGORIES)


def unique_categories(categories: Iterable[str]) -> list[str]:
    """Drop blanks and repeats, keeping first-seen order."""
    seen = set()
    result = []
    for category in categories:
        category = category.strip()
        if category and category not in seen:
            seen.add(category)
            result.append(category)
    return result


def filter_known(categories: Iterable[str]) -> list[str]:
    """Keep only labels from the fixed vocabulary."""
    return [c for c in unique_categories(categories) if c in _VOCABULARY]


def is_bitcoin_suitable(categories: Iterable[str]) -> bool:
    bitcoin = {c.lower() for c in get_settings().bitcoin_categories}
    return any(c.lower() in bitcoin for c in categories)
