from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import get_settings


class Base(DeclarativeBase):
    pass


settings = get_settings()

# Caller-scoped handle: reads on behalf of the requesting user.
engine = create_async_engine(settings.database_url, echo=False)
async_session = async_sessionmaker(engine, expire_on_commit=False)

# Elevated handle: server-side writes that bypass row-level policies.
if settings.elevated_database_url == settings.database_url:
    admin_engine = engine
else:
    admin_engine = create_async_engine(settings.elevated_database_url, echo=False)
admin_session = async_sessionmaker(admin_engine, expire_on_commit=False)


async def init_db(bind=None):
    # Import models so their tables are registered on Base.metadata
    from app.models import creator, match  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session
