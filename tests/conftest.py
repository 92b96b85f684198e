import os
import tempfile

# settings are read at import time, so the environment has to be in place first
_DB_DIR = tempfile.mkdtemp(prefix="sellerbank-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'sellerbank.db')}"
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("TRANSACTION_SIGNING_SECRET", "test-transaction-signing-secret")
os.environ["REDIS_ENABLED"] = "false"
os.environ["ENV"] = "dev"

import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient
from sqlmodel import SQLModel
from sellerbank.common.circuit_breaker import db_circuit
from sellerbank.db.connection import async_engine, async_session
from sellerbank.main import app
from sellerbank.rate_limiting.utils import reset_in_memory_limiter


@pytest.fixture(autouse=True)
def clean_rate_limits():
    reset_in_memory_limiter()
    yield
    reset_in_memory_limiter()


@pytest_asyncio.fixture
async def db():
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)
    await db_circuit.reset()
    yield
    await db_circuit.reset()


@pytest_asyncio.fixture
async def db_session(db):
    async with async_session() as session:
        yield session


@pytest_asyncio.fixture
async def ac_client(db):
    async with LifespanManager(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
