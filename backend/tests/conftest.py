import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.api.deps import get_classifier, get_creator_repository, get_match_store
from app.db.database import get_db, init_db
from app.main import app
from app.security import create_access_token
from app.services.classifier import CategoryClassifier
from app.services.creator_repository import CreatorRepository
from app.services.matches import MatchStore

# id, categories, total followers
CREATORS = [
    ("a", ["btc-only", "education"], 500),
    ("b", ["trading"], 900),
    ("c", ["btc-only", "trading"], 300),
    ("d", ["mining"], 1000),
    ("e", ["crypto", "news"], 2000),
    ("f", ["crypto", "macro"], 0),
    ("g", ["crypto", "podcast"], 1500),
    ("h", ["crypto", "tech"], 700),
    ("i", ["crypto", "lifestyle"], 100),
    ("j", ["crypto", "vlog"], 50),
    ("k", ["travel"], 400),
]

# Creators flagged Bitcoin-suitable, largest audience first
BITCOIN_POOL = ["e", "g", "h", "a", "c", "i", "j", "f"]


def creator_record(creator_id: str, categories: list[str], followers: int) -> dict:
    return {
        "id": creator_id,
        "username": f"user_{creator_id}",
        "full_name": f"Creator {creator_id.upper()}",
        "categories": categories,
        "youtube_followers": followers,
        "total_followers": followers,
    }


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def repository(session_factory):
    return CreatorRepository(session_factory)


@pytest.fixture
def match_store(session_factory):
    return MatchStore(session_factory)


@pytest.fixture
async def seeded(repository):
    await repository.upsert_creators([creator_record(*row) for row in CREATORS])
    return repository


@pytest.fixture
def classifier():
    offline = CategoryClassifier()
    offline.api_key = ""
    return offline


@pytest.fixture
async def client(session_factory, seeded, match_store, classifier):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_creator_repository] = lambda: seeded
    app.dependency_overrides[get_match_store] = lambda: match_store
    app.dependency_overrides[get_classifier] = lambda: classifier
    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_access_token('user-1')}"}
