from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from typing import Optional

from app.db.database import async_session, admin_session
from app.security import decode_user_id
from app.services.classifier import CategoryClassifier
from app.services.creator_repository import CreatorRepository
from app.services.matches import MatchStore
from app.services.search import SearchResolver

bearer = HTTPBearer(auto_error=False)


def get_creator_repository() -> CreatorRepository:
    return CreatorRepository(async_session)


def get_match_store() -> MatchStore:
    return MatchStore(admin_session)


def get_search_resolver(
    repository: CreatorRepository = Depends(get_creator_repository),
) -> SearchResolver:
    return SearchResolver(repository)


def get_classifier() -> CategoryClassifier:
    return CategoryClassifier()


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> str:
    """Identity of the caller, taken from the bearer token only."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    user_id = decode_user_id(credentials.credentials)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user_id
