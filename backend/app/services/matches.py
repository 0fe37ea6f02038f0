import logging
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import get_settings
from app.errors import ClientInputError, PersistenceError
from app.models.match import UserMatch

logger = logging.getLogger(__name__)

_UPSERT_BY_DIALECT = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


def _is_id(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def validate_match(
    user_id: Any,
    onboarding_answer_id: Any,
    search_criteria: Any,
    creator_ids: Any,
    fallback_creator_ids: Any = (),
    max_creators: Optional[int] = None,
) -> None:
    """Reject a match write before it touches the store."""
    if max_creators is None:
        max_creators = get_settings().max_results

    if not isinstance(creator_ids, (list, tuple)) or not creator_ids:
        raise ClientInputError("creator_ids is required and must be a non-empty array")
    if not all(_is_id(c) for c in creator_ids):
        raise ClientInputError("creator_ids must contain non-empty string ids")
    if len(creator_ids) > max_creators:
        raise ClientInputError(f"creator_ids may hold at most {max_creators} ids")
    if not isinstance(search_criteria, (list, tuple)):
        raise ClientInputError("search_criteria is required and must be an array")
    if not all(isinstance(c, str) for c in search_criteria):
        raise ClientInputError("search_criteria must contain strings")
    if not _is_id(onboarding_answer_id) or not _is_id(user_id):
        raise ClientInputError("onboarding_answer_id and user_id are required")
    if not isinstance(fallback_creator_ids, (list, tuple)):
        raise ClientInputError("fallback_creator_ids must be an array")
    if not all(_is_id(c) for c in fallback_creator_ids):
        raise ClientInputError("fallback_creator_ids must contain non-empty string ids")
    if not set(fallback_creator_ids) <= set(creator_ids):
        raise ClientInputError("fallback_creator_ids must be a subset of creator_ids")


class MatchStore:
    """Persist and read user matches.

    ``session_factory`` must be the elevated handle: the acting user may not
    hold grants on ``user_matches``. Callers are responsible for passing a
    ``user_id`` taken from the authenticated session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record_match(
        self,
        user_id: str,
        onboarding_answer_id: str,
        search_criteria: Sequence[str],
        creator_ids: Sequence[str],
        fallback_creator_ids: Sequence[str] = (),
    ) -> UserMatch:
        """Insert or replace the match for ``(user_id, onboarding_answer_id)``."""
        validate_match(user_id, onboarding_answer_id, search_criteria, creator_ids, fallback_creator_ids)

        values = {
            "user_id": user_id,
            "onboarding_answer_id": onboarding_answer_id,
            "search_criteria": list(search_criteria),
            "creator_ids": list(creator_ids),
            "fallback_creator_ids": list(fallback_creator_ids),
            "created_at": datetime.now(timezone.utc),
        }

        try:
            async with self.session_factory() as session:
                dialect = session.get_bind().dialect.name
                insert = _UPSERT_BY_DIALECT.get(dialect)
                if insert is None:
                    raise PersistenceError(f"Upsert not supported for dialect {dialect!r}")

                stmt = insert(UserMatch).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["user_id", "onboarding_answer_id"],
                    set_={
                        "search_criteria": stmt.excluded.search_criteria,
                        "creator_ids": stmt.excluded.creator_ids,
                        "fallback_creator_ids": stmt.excluded.fallback_creator_ids,
                        "created_at": stmt.excluded.created_at,
                    },
                )
                await session.execute(stmt)
                await session.commit()

                result = await session.execute(
                    select(UserMatch).where(
                        UserMatch.user_id == user_id,
                        UserMatch.onboarding_answer_id == onboarding_answer_id,
                    )
                )
                match = result.scalar_one()
        except SQLAlchemyError as e:
            logger.exception("Failed to save user match for answer %s", onboarding_answer_id)
            raise PersistenceError("Failed to save user match") from e

        logger.info(
            "Saved match for user %s answer %s (%d creators)",
            user_id, onboarding_answer_id, len(values["creator_ids"]),
        )
        return match

    async def latest_match(self, user_id: str) -> Optional[UserMatch]:
        """Most recently created match for ``user_id``."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(UserMatch)
                .where(UserMatch.user_id == user_id)
                .order_by(UserMatch.created_at.desc(), UserMatch.id.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

