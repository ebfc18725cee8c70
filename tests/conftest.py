import sys, os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from typing import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.cache import MemoryCache
from app.database import Base, get_db
from app.dependencies import get_cache, get_event_source
from app.main import app
from app.services.github_events import RawEvent

# In-memory SQLite for tests — isolated from prod DB
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
TestSessionLocal = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionLocal() as session:
        yield session


class FakeEventSource:
    """Stands in for the GitHub client; returns canned events per username."""

    def __init__(self) -> None:
        self.events: dict[str, list[RawEvent] | None] = {}
        self.calls: list[str] = []

    async def fetch_events(self, username: str) -> list[RawEvent] | None:
        self.calls.append(username)
        return self.events.get(username)


app.dependency_overrides[get_db] = override_get_db


@pytest_asyncio.fixture(autouse=True)
async def setup_test_db():
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def cache() -> AsyncGenerator[MemoryCache, None]:
    memory = MemoryCache()
    yield memory
    await memory.close()


@pytest_asyncio.fixture
async def event_source() -> FakeEventSource:
    return FakeEventSource()


@pytest_asyncio.fixture
async def client(cache, event_source) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_event_source] = lambda: event_source
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.pop(get_cache, None)
    app.dependency_overrides.pop(get_event_source, None)
