"""
Pytest configuration and shared fixtures for the payments service tests.

Provides an in-memory SQLite session, a file-backed session factory for
concurrency tests, a fake Solana client, seeded accounts and an ASGI client.
"""
import os
from decimal import Decimal

# Keep app imports away from the on-disk default database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "development")

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from config import settings
from database import Base, get_db
from tests.factories import CREAM_MINT, FakeChainClient, create_account, create_content

# ── Test Configuration ───────────────────────────────────────────────
# Set test-only values for settings that would normally come from .env
if not settings.jwt_secret:
    settings.jwt_secret = "test-jwt-secret-for-pytest-only"
settings.cream_token_mint = CREAM_MINT
settings.tip_fee_rate = 0.10


# ── Database Fixtures ────────────────────────────────────────────────


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create an in-memory SQLite database session for each test.

    Uses StaticPool to allow in-memory SQLite with async SQLAlchemy.
    """
    import db_models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture(scope="function")
async def session_factory(tmp_path):
    """
    Session factory over a temp-file SQLite database.

    Each concurrent task opens its own session (and connection), so races
    are decided by SQLite locking rather than a shared session.
    """
    import db_models  # noqa: F401

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'race.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


# ── Chain Fixtures ───────────────────────────────────────────────────


@pytest.fixture
def chain() -> FakeChainClient:
    return FakeChainClient()


@pytest.fixture
def verifier(chain):
    from services.transfer_verifier import TransferVerifier

    return TransferVerifier(chain, timeout_seconds=2.0)


# ── Test Data Fixtures ────────────────────────────────────────────────


@pytest.fixture
async def alice(db_session):
    """Subscriber / tipper."""
    return await create_account(db_session, "alice", seed=11)


@pytest.fixture
async def creator(db_session):
    """Target with a 25 $CREAM subscription price."""
    return await create_account(db_session, "creator", seed=22, price=Decimal("25"))


@pytest.fixture
async def post(db_session, creator):
    return await create_content(db_session, creator)


# ── HTTP Client ──────────────────────────────────────────────────────


@pytest_asyncio.fixture(scope="function")
async def api_client(db_session, chain):
    """
    ASGI client bound to the test session and the fake chain client.

    Overrides get_db so every request shares the test's in-memory database.
    """
    from main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.state.chain_client = chain

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    app.state.chain_client = None


@pytest.fixture
def auth_headers():
    """Build an Authorization header for an account."""
    from middleware.auth import issue_access_token

    def _headers(account) -> dict:
        return {"Authorization": f"Bearer {issue_access_token(account_id=account.id)}"}

    return _headers
