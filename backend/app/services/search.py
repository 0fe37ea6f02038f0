import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from app.categories import unique_categories
from app.config import get_settings
from app.errors import UpstreamQueryError
from app.models.creator import Creator
from app.services.creator_repository import CreatorRepository

logger = logging.getLogger(__name__)


@dataclass
class MatchedCreator:
    creator: Creator
    is_fallback: bool = False


class SearchResolver:
    """Turn a category list into a ranked creator list.

    Tiers run in order and each is tried once, only while nothing has been
    found: category overlap, full containment, then a concurrent per-category
    containment union. Short result sets are topped up from the
    Bitcoin-suitable fallback pool.
    """

    def __init__(
        self,
        repository: CreatorRepository,
        max_results: Optional[int] = None,
        fallback_min_results: Optional[int] = None,
    ):
        settings = get_settings()
        self.repository = repository
        self.max_results = settings.max_results if max_results is None else max_results
        self.fallback_min_results = (
            settings.fallback_min_results if fallback_min_results is None else fallback_min_results
        )

    async def resolve(
        self,
        categories: list[str],
        fallback_eligible: bool = True,
        bitcoin_only: bool = False,
    ) -> list[MatchedCreator]:
        categories = unique_categories(categories)

        if not categories:
            if not fallback_eligible:
                return []
            pool = await self._fallback_pool([], self.max_results)
            if pool is None:
                raise UpstreamQueryError("Fallback pool query failed")
            return [MatchedCreator(c, is_fallback=True) for c in pool]

        failures = 0
        creators: list[Creator] = []
        for tier, lookup in (
            ("overlap", self.repository.overlapping),
            ("containment", self.repository.containing),
        ):
            try:
                creators = await lookup(categories, self.max_results, bitcoin_only=bitcoin_only)
            except SQLAlchemyError as e:
                failures += 1
                logger.warning("Creator search %s tier failed: %s", tier, e)
                creators = []
            if creators:
                break
        else:
            creators, union_failed = await self._per_category_union(categories, bitcoin_only)
            if union_failed:
                failures += 1

        results = [MatchedCreator(c) for c in creators]
        if len(results) >= self.fallback_min_results:
            return results

        pool = None
        if fallback_eligible:
            needed = self.fallback_min_results - len(results)
            pool = await self._fallback_pool([c.id for c in creators], needed)
        if pool is None:
            if failures == 3:
                raise UpstreamQueryError("All creator queries failed")
            return results
        results.extend(MatchedCreator(c, is_fallback=True) for c in pool)
        return results

    async def _per_category_union(
        self, categories: list[str], bitcoin_only: bool,
    ) -> tuple[list[Creator], bool]:
        """Run one containment query per category concurrently and merge.

        Returns the merged creators and whether every branch failed.
        """
        branches = await asyncio.gather(
            *(
                self.repository.containing([category], self.max_results, bitcoin_only=bitcoin_only)
                for category in categories
            ),
            return_exceptions=True,
        )

        merged: dict[str, Creator] = {}
        failed = 0
        for category, branch in zip(categories, branches):
            if isinstance(branch, Exception):
                failed += 1
                logger.warning("Creator search for category %r failed: %s", category, branch)
                continue
            for creator in branch:
                merged.setdefault(creator.id, creator)

        ranked = sorted(merged.values(), key=lambda c: c.total_followers or 0, reverse=True)
        return ranked[: self.max_results], failed == len(categories)

    async def _fallback_pool(self, exclude_ids: list[str], limit: int) -> Optional[list[Creator]]:
        """Fetch the fallback pool; None when the query fails."""
        try:
            return await self.repository.fallback_pool(limit, exclude_ids=exclude_ids)
        except SQLAlchemyError as e:
            logger.error("Fallback pool query failed: %s", e)
            return None
