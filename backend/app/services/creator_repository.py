import logging
from typing import Iterable, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.categories import is_bitcoin_suitable, unique_categories
from app.models.creator import Creator, CreatorCategory

logger = logging.getLogger(__name__)

# Columns an ingest record may set directly on a Creator row
_CREATOR_FIELDS = (
    "username", "full_name", "location", "bio",
    "youtube_url", "youtube_followers", "youtube_engagement_rate", "youtube_average_views",
    "tiktok_url", "tiktok_followers", "tiktok_engagement_rate", "tiktok_average_views",
    "total_followers",
)


def _by_followers():
    # Missing follower counts rank as zero; id keeps ties deterministic.
    return (func.coalesce(Creator.total_followers, 0).desc(), Creator.id)


class CreatorRepository:
    """Read-mostly access to the creators table.

    Every query opens its own session from ``session_factory`` so callers may
    run several of them concurrently.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _fetch(self, query) -> list[Creator]:
        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().unique().all())

    async def overlapping(
        self, categories: list[str], limit: int, bitcoin_only: bool = False,
    ) -> list[Creator]:
        """Creators sharing at least one category with ``categories``."""
        matching = select(CreatorCategory.creator_id).where(
            CreatorCategory.category.in_(categories)
        )
        query = select(Creator).where(Creator.id.in_(matching))
        if bitcoin_only:
            query = query.where(Creator.is_bitcoin_suitable.is_(True))
        return await self._fetch(query.order_by(*_by_followers()).limit(limit))

    async def containing(
        self, categories: list[str], limit: int, bitcoin_only: bool = False,
    ) -> list[Creator]:
        """Creators whose categories include every one of ``categories``."""
        wanted = unique_categories(categories)
        matching = (
            select(CreatorCategory.creator_id)
            .where(CreatorCategory.category.in_(wanted))
            .group_by(CreatorCategory.creator_id)
            .having(func.count(func.distinct(CreatorCategory.category)) == len(wanted))
        )
        query = select(Creator).where(Creator.id.in_(matching))
        if bitcoin_only:
            query = query.where(Creator.is_bitcoin_suitable.is_(True))
        return await self._fetch(query.order_by(*_by_followers()).limit(limit))

    async def fallback_pool(self, limit: int, exclude_ids: Iterable[str] = ()) -> list[Creator]:
        """Bitcoin-suitable creators, largest audience first."""
        query = select(Creator).where(Creator.is_bitcoin_suitable.is_(True))
        exclude_ids = list(exclude_ids)
        if exclude_ids:
            query = query.where(Creator.id.not_in(exclude_ids))
        return await self._fetch(query.order_by(*_by_followers()).limit(limit))

    async def hydrate(self, creator_ids: list[str]) -> list[Creator]:
        """Load creators by id. Result order is not guaranteed."""
        if not creator_ids:
            return []
        return await self._fetch(select(Creator).where(Creator.id.in_(creator_ids)))

    async def get(self, creator_id: str) -> Optional[Creator]:
        async with self.session_factory() as session:
            return await session.get(Creator, creator_id)

    async def list_page(self, page: int, page_size: int) -> tuple[list[Creator], int]:
        async with self.session_factory() as session:
            total = (await session.execute(select(func.count()).select_from(Creator))).scalar() or 0
            result = await session.execute(
                select(Creator).order_by(*_by_followers()).offset(page * page_size).limit(page_size)
            )
            return list(result.scalars().all()), total

    async def upsert_creators(self, records: list[dict]) -> int:
        """Insert or update creators from ingest records.

        Each record needs an ``id`` and may carry ``categories``; the Bitcoin
        suitability flag is always derived from the categories.
        """
        async with self.session_factory() as session:
            for record in records:
                categories = unique_categories(record.get("categories") or [])
                creator = await session.get(Creator, record["id"])
                if creator is None:
                    creator = Creator(id=record["id"])
                    session.add(creator)

                for field in _CREATOR_FIELDS:
                    if field in record:
                        setattr(creator, field, record[field])
                if creator.total_followers is None:
                    creator.total_followers = (
                        (creator.youtube_followers or 0) + (creator.tiktok_followers or 0)
                    )
                creator.is_bitcoin_suitable = is_bitcoin_suitable(categories)

                kept = [link for link in creator.category_links if link.category in categories]
                existing = {link.category for link in kept}
                creator.category_links = kept + [
                    CreatorCategory(category=c) for c in categories if c not in existing
                ]
            await session.commit()
        logger.info("Upserted %d creators", len(records))
        return len(records)
