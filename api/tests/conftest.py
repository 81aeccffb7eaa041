"""
Shared test fixtures for AgriSocial API tests.

Provides database session management, test clients, and user fixtures.
"""

from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from agrisocial.auth.api_key import issue_api_key
from agrisocial.config import settings
from agrisocial.database import Base, get_db
from agrisocial.main import app
from agrisocial.middleware.rate_limit import reset_limiter

# Import models so they're registered with Base.metadata before table creation
from agrisocial.models.user import APIKey, User
from agrisocial.timestamps import utcnow

# Test database URL (uses separate test database)
TEST_DATABASE_URL = settings.test_database_url

# Create test engine with NullPool to avoid connection issues
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    poolclass=NullPool,
    echo=False,
)

if test_engine.dialect.name == "sqlite":
    # Let SQLAlchemy manage BEGIN so SAVEPOINTs behave as on PostgreSQL

    @event.listens_for(test_engine.sync_engine, "connect")
    def _sqlite_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(test_engine.sync_engine, "begin")
    def _sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN")


TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


# --- Rate Limiter Reset Fixture ---


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Reset rate limiter before each test to ensure test isolation."""
    reset_limiter()
    yield


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create tables before each test function, drop after.
    Provides isolated database state per test.
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client configured for testing.
    Overrides database dependency with test session.
    """

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=True,
    ) as client:
        yield client

    app.dependency_overrides.clear()


# --- Authentication Helper Fixtures ---


@pytest.fixture
def auth_headers():
    """Factory fixture for creating X-API-Key headers."""

    def _auth_headers(api_key: str) -> dict[str, str]:
        return {"X-API-Key": api_key}

    return _auth_headers


@pytest.fixture
def valid_registration_data() -> dict[str, str]:
    """Valid profile registration payload."""
    return {
        "username": "newfarmer",
        "email": "newfarmer@example.com",
        "display_name": "New Farmer",
        "role": "farmer",
        "region": "Rift Valley",
    }


# --- User Fixtures ---


async def _create_user(
    db_session: AsyncSession,
    username: str,
    email: str,
    role: str,
    display_name: str | None = None,
) -> dict[str, Any]:
    """Helper to create a profile and API key in the database."""
    user = User(
        username=username,
        email=email.lower(),
        display_name=display_name or username.replace("_", " ").title(),
        role=role,
        created_at=utcnow(),
    )
    db_session.add(user)
    await db_session.flush()

    issued = issue_api_key()
    db_session.add(
        APIKey(
            user_id=user.id,
            key_hash=issued.key_hash,
            key_prefix=issued.display_prefix,
            name="Test key",
        )
    )

    await db_session.commit()
    await db_session.refresh(user)

    return {
        "user_id": str(user.id),
        "id": user.id,
        "user": user,
        "username": user.username,
        "display_name": user.display_name,
        "email": user.email,
        "role": user.role,
        "api_key": issued.plaintext,
    }


@pytest.fixture
def create_user(db_session: AsyncSession):
    """Factory fixture for creating additional profiles."""

    async def _factory(username: str, role: str = "farmer", **kwargs) -> dict[str, Any]:
        return await _create_user(db_session, username, f"{username}@example.com", role, **kwargs)

    return _factory


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> dict[str, Any]:
    """
    Create a standard farmer profile with an API key.

    Returns dict with user data and plaintext API key.
    """
    return await _create_user(
        db_session,
        username="testfarmer",
        email="farmer@example.com",
        role="farmer",
        display_name="Amina Farmer",
    )


@pytest_asyncio.fixture
async def second_user(db_session: AsyncSession) -> dict[str, Any]:
    """Create a second farmer for testing ownership/authorization scenarios."""
    return await _create_user(
        db_session,
        username="secondfarmer",
        email="second@example.com",
        role="farmer",
        display_name="Bako Farmer",
    )


@pytest_asyncio.fixture
async def test_expert(db_session: AsyncSession) -> dict[str, Any]:
    """Create an expert profile."""
    return await _create_user(
        db_session,
        username="testexpert",
        email="expert@example.com",
        role="expert",
        display_name="Dr. Wanjiru",
    )


@pytest_asyncio.fixture
async def second_expert(db_session: AsyncSession) -> dict[str, Any]:
    """Create a second expert for claim and fan-out scenarios."""
    return await _create_user(
        db_session,
        username="secondexpert",
        email="expert2@example.com",
        role="expert",
        display_name="Dr. Otieno",
    )
