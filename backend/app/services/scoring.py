from __future__ import annotations
from typing import Optional, Sequence, TypeVar

from app.config import get_settings

T = TypeVar("T")


class ScoringService:
    def __init__(self, fallback_match_score: Optional[int] = None):
        if fallback_match_score is None:
            fallback_match_score = get_settings().fallback_match_score
        self.fallback_match_score = fallback_match_score

    @staticmethod
    def matching_categories(
        creator_categories: Sequence[str], search_criteria: Sequence[str]
    ) -> list[str]:
        """Creator categories that overlap a requested category as substrings.

        Comparison is case-insensitive and works in both directions, so
        "trading" matches "trading-education" and vice versa.
        """
        wanted = [c.lower() for c in search_criteria]
        return [
            category
            for category in creator_categories
            if any(w in category.lower() or category.lower() in w for w in wanted)
        ]

    def match_score(
        self,
        creator_categories: Sequence[str],
        search_criteria: Sequence[str],
        is_fallback: bool = False,
    ) -> int:
        """Score 0-100 shown next to each creator.

        Fallback additions always get the fixed low-confidence score.
        """
        if is_fallback:
            return self.fallback_match_score
        matches = self.matching_categories(creator_categories or [], search_criteria)
        # Halves round up
        score = int(len(matches) * 100 / (len(search_criteria) or 1) + 0.5)
        return min(100, score)

    @staticmethod
    def format_number(num: Optional[float]) -> str:
        """Compact follower counts: 950, 1.5K, 2M, 1.2B."""
        if num is None:
            return "0"
        for threshold, suffix in ((1_000_000_000, "B"), (1_000_000, "M"), (1_000, "K")):
            if num >= threshold:
                return f"{num / threshold:.1f}".removesuffix(".0") + suffix
        return str(int(num))

    @staticmethod
    def order_by_ids(items: Sequence[T], ids: Sequence[str], key=lambda item: item.id) -> list[T]:
        """Re-map hydrated rows to the stored id order, dropping unknown ids."""
        by_id = {key(item): item for item in items}
        return [by_id[i] for i in ids if i in by_id]
