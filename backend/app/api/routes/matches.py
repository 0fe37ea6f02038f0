import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.api.deps import get_creator_repository, get_current_user_id, get_match_store
from app.api.routes.creators import _creator_to_dict
from app.errors import ClientInputError, PersistenceError
from app.models.match import UserMatch
from app.services.creator_repository import CreatorRepository
from app.services.matches import MatchStore
from app.services.scoring import ScoringService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user-matches", tags=["user-matches"])

scoring = ScoringService()


class MatchCreate(BaseModel):
    # Shape is checked by the match store so every violation maps to a 400
    user_id: Optional[str] = None
    onboarding_answer_id: Any = None
    search_criteria: Any = None
    creator_ids: Any = None
    fallback_creator_ids: Any = []


def _match_to_dict(match: UserMatch) -> dict:
    return {
        "id": match.id,
        "user_id": match.user_id,
        "onboarding_answer_id": match.onboarding_answer_id,
        "search_criteria": match.search_criteria,
        "creator_ids": match.creator_ids,
        "fallback_creator_ids": match.fallback_creator_ids,
        "created_at": match.created_at,
    }


@router.post("")
async def record_match(
    body: MatchCreate,
    user_id: str = Depends(get_current_user_id),
    store: MatchStore = Depends(get_match_store),
):
    if body.user_id is not None and body.user_id != user_id:
        raise HTTPException(status_code=403, detail="user_id does not match the authenticated user")

    try:
        match = await store.record_match(
            user_id=user_id,
            onboarding_answer_id=body.onboarding_answer_id,
            search_criteria=body.search_criteria,
            creator_ids=body.creator_ids,
            fallback_creator_ids=body.fallback_creator_ids,
        )
    except ClientInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to save user match")

    return {"success": True, "data": _match_to_dict(match)}


@router.get("/latest")
async def latest_match(
    user_id: str = Depends(get_current_user_id),
    store: MatchStore = Depends(get_match_store),
    repository: CreatorRepository = Depends(get_creator_repository),
):
    """Current match for the user, with creators in their saved order."""
    match = await store.latest_match(user_id)
    if not match:
        raise HTTPException(status_code=404, detail="No matches found")

    hydrated = await repository.hydrate(match.creator_ids)
    fallback_ids = set(match.fallback_creator_ids or [])
    creators = []
    for creator in scoring.order_by_ids(hydrated, match.creator_ids):
        is_fallback = creator.id in fallback_ids
        creators.append({
            **_creator_to_dict(creator),
            "isFallback": is_fallback,
            "match_score": scoring.match_score(creator.categories, match.search_criteria, is_fallback),
            "matching_categories": (
                [] if is_fallback
                else scoring.matching_categories(creator.categories, match.search_criteria)
            ),
            "followers_display": scoring.format_number(creator.total_followers),
        })

    return {**_match_to_dict(match), "creators": creators}
