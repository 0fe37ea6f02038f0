import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, HTTPException
from pydantic import BaseModel

from app.api.deps import get_creator_repository, get_search_resolver
from app.errors import UpstreamQueryError
from app.models.creator import Creator
from app.services.creator_repository import CreatorRepository
from app.services.search import SearchResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/creators", tags=["creators"])


class SearchRequest(BaseModel):
    categories: list[Any]
    is_bitcoin_suitable: bool = False


def _creator_to_dict(creator: Creator) -> dict:
    """Convert a Creator ORM object to a dict for API response."""
    return {
        "id": creator.id,
        "username": creator.username,
        "full_name": creator.full_name,
        "categories": creator.categories,
        "location": creator.location,
        "bio": creator.bio,
        "youtube_url": creator.youtube_url,
        "youtube_followers": creator.youtube_followers,
        "youtube_engagement_rate": creator.youtube_engagement_rate,
        "youtube_average_views": creator.youtube_average_views,
        "tiktok_url": creator.tiktok_url,
        "tiktok_followers": creator.tiktok_followers,
        "tiktok_engagement_rate": creator.tiktok_engagement_rate,
        "tiktok_average_views": creator.tiktok_average_views,
        "total_followers": creator.total_followers or 0,
        "is_bitcoin_suitable": creator.is_bitcoin_suitable,
        "last_updated": creator.last_updated,
    }


@router.post("/search")
async def search_creators(
    body: SearchRequest,
    resolver: SearchResolver = Depends(get_search_resolver),
):
    """Rank creators for a category list, topping up with fallback matches."""
    # Non-string entries are ignored
    categories = [c for c in body.categories if isinstance(c, str)]
    try:
        matches = await resolver.resolve(categories, bitcoin_only=body.is_bitcoin_suitable)
    except UpstreamQueryError:
        logger.exception("Creator search failed for categories %s", categories)
        raise HTTPException(status_code=500, detail="Database error")

    creators = [
        {**_creator_to_dict(m.creator), "isFallback": m.is_fallback}
        for m in matches
    ]
    return {"creators": creators, "total": len(creators)}


@router.get("/database")
async def get_database(
    page: int = Query(0, ge=0),
    page_size: int = Query(100, ge=1, le=500),
    repository: CreatorRepository = Depends(get_creator_repository),
):
    """Return all stored creators, largest audience first."""
    creators, db_total = await repository.list_page(page, page_size)
    return {
        "creators": [_creator_to_dict(c) for c in creators],
        "total": len(creators),
        "db_total": db_total,
        "page": page,
    }


@router.get("/{creator_id}")
async def get_creator(
    creator_id: str,
    repository: CreatorRepository = Depends(get_creator_repository),
):
    creator = await repository.get(creator_id)
    if not creator:
        raise HTTPException(status_code=404, detail="Creator not found")
    return _creator_to_dict(creator)
