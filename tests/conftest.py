import os
import sys
from pathlib import Path

# Add project root (1 level up from tests/) to sys.path so tests can import 'matchcall'
root = Path(__file__).resolve().parents[1]
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

# Keep module-level engine creation away from Postgres/asyncpg
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CALL_REQUEST_REAPER_ENABLED", "false")

import pytest
import fakeredis.aioredis
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import matchcall.models.database as database_module
import matchcall.config.redis as redis_module


# Replace the app's database engine at import-time so that module-level imports
# created by `from matchcall.main import app` will receive the in-memory engine.
test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    echo=False,
    future=True,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)
test_async_session = sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

# Bind into the app's database module
database_module.engine = test_engine
database_module.AsyncSessionLocal = test_async_session

import matchcall.models  # noqa: E402,F401  (register all tables)
from matchcall.models.database import Base as DBBase  # noqa: E402


@pytest.fixture
def fake_redis(monkeypatch):
    """Swap the lazy Redis singleton for an isolated fakeredis instance."""
    client = fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    monkeypatch.setattr(redis_module, "_redis", client)
    yield client


@pytest.fixture
async def async_db(fake_redis):
    """Reset the in-memory database and point the app's get_db at it."""
    async with test_engine.begin() as conn:
        await conn.run_sync(DBBase.metadata.drop_all)
        await conn.run_sync(DBBase.metadata.create_all)

    async def _get_test_db():
        async with test_async_session() as session:
            yield session

    from matchcall.main import app as _app
    _app.dependency_overrides[database_module.get_db] = _get_test_db
    yield
    _app.dependency_overrides.clear()


@pytest.fixture
async def db(async_db):
    """A session on the test database for service-level tests."""
    async with test_async_session() as session:
        yield session
