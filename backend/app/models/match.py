import uuid

from sqlalchemy import Boolean, Column, Integer, String, DateTime, Text, JSON, UniqueConstraint
from datetime import datetime, timezone

from app.db.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OnboardingAnswer(Base):
    __tablename__ = "onboarding_answers"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)
    company_name = Column(String)
    product_name = Column(String)
    product_url = Column(String)
    product_description = Column(Text)
    product_category = Column(String, default="")  # comma-joined classified labels
    is_bitcoin_suitable = Column(Boolean, default=False)
    created_at = Column(DateTime, default=_utcnow)

    @property
    def categories(self) -> list[str]:
        if not self.product_category:
            return []
        return [c.strip() for c in self.product_category.split(",") if c.strip()]


class UserMatch(Base):
    __tablename__ = "user_matches"
    __table_args__ = (
        UniqueConstraint("user_id", "onboarding_answer_id", name="uq_user_matches_user_answer"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    onboarding_answer_id = Column(String, nullable=False)
    search_criteria = Column(JSON, default=list)
    creator_ids = Column(JSON, default=list)
    fallback_creator_ids = Column(JSON, default=list)
    created_at = Column(DateTime, default=_utcnow, index=True)
