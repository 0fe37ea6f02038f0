from sqlalchemy import (
    Boolean, Column, BigInteger, Integer, String, Float, DateTime, Text, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from app.db.database import Base


class Creator(Base):
    __tablename__ = "creators"

    id = Column(String, primary_key=True, index=True)
    username = Column(String, nullable=False)
    full_name = Column(String, nullable=False)
    location = Column(String)
    bio = Column(Text)

    youtube_url = Column(String)
    youtube_followers = Column(BigInteger)
    youtube_engagement_rate = Column(Float)
    youtube_average_views = Column(BigInteger)

    tiktok_url = Column(String)
    tiktok_followers = Column(BigInteger)
    tiktok_engagement_rate = Column(Float)
    tiktok_average_views = Column(BigInteger)

    total_followers = Column(BigInteger, default=0)
    is_bitcoin_suitable = Column(Boolean, default=False, nullable=False, index=True)

    last_updated = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    category_links = relationship(
        "CreatorCategory",
        back_populates="creator",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def categories(self) -> list[str]:
        return [link.category for link in self.category_links]


class CreatorCategory(Base):
    __tablename__ = "creator_categories"
    __table_args__ = (UniqueConstraint("creator_id", "category"),)

    id = Column(Integer, primary_key=True, index=True)
    creator_id = Column(String, ForeignKey("creators.id", ondelete="CASCADE"), nullable=False, index=True)
    category = Column(String, nullable=False, index=True)

    creator = relationship("Creator", back_populates="category_links")
