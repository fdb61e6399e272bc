import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from unittest.mock import AsyncMock, patch
import os

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine


# Set test environment variables before imports
os.environ['REDIS_HOST'] = 'localhost'
os.environ['REDIS_PORT'] = '6379'
os.environ['REDIS_DB'] = '0'
os.environ['REDIS_PASSWORD'] = ''  # No password for mock
os.environ['MORALIS_API_KEY'] = 'test'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///:memory:'
os.environ['SEED_ADDRESS'] = ''

WALLET = "0x52908400098527886E0F7030069857D2E4169EE7"


class InMemoryRedis:
    """Redis stand-in keeping values in a dict and recording writes."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.writes: list[tuple[str, int]] = []

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self.store[key] = value
        self.writes.append((key, ttl))
        return True


@pytest.fixture
def wallet() -> str:
    """Checksummed wallet address used across tests."""
    return WALLET


@pytest.fixture
def memory_redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def sleep() -> AsyncMock:
    """Sleep replacement that records requested delays without waiting."""
    return AsyncMock(return_value=None)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """
    Session factory over a fresh SQLite file database.

    A file (not ``:memory:``) lets concurrent sessions see each other's commits.
    """
    from core.database.providers import init_db

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'portfolio.db'}")
    await init_db(engine)
    yield async_sessionmaker(bind=engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def mock_redis():
    """Mock Redis client for testing."""
    mock = AsyncMock()
    mock.ping = AsyncMock(return_value=True)
    mock.get = AsyncMock(return_value=None)
    mock.setex = AsyncMock(return_value=True)
    mock.aclose = AsyncMock()
    return mock


@pytest_asyncio.fixture
async def client(mock_redis):
    """
    Fixture for async test client with mocked Redis.

    Parameters
    ----------
    mock_redis : AsyncMock
        Mocked Redis client

    Yields
    ------
    AsyncClient
        Async HTTP client for testing
    """
    # Patch the name the Redis provider instantiates; it may already be imported
    with patch('core.redis.providers.Redis', return_value=mock_redis):
        from main import app

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
