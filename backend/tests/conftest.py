"""
Pytest fixtures for test database, client, and authentication.

Tables are created before and dropped after every test. The database defaults
to a SQLite file (through aiosqlite) so the suite runs without services; set
TEST_DATABASE_URL to point it at PostgreSQL instead.

Fixtures write through `db_session` and commit. The HTTP client opens a fresh
session per request, exactly like the real get_db dependency, so fixture
objects are never expired by a request's rollback.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")

from datetime import datetime, timezone, timedelta
from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.main import app
from app.db.base import Base
from app.db.session import get_db
from app.core.security import Caller, create_access_token, hash_password
from app.models.user import User, UserRole
from app.models.event import Event

TEST_DATABASE_URL = os.environ.get(
    "TEST_DATABASE_URL", "sqlite+aiosqlite:///./test_event_registration.db"
)

# NullPool: every session gets its own connection, so concurrent sessions in
# the concurrency tests really are concurrent transactions
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=NullPool,
    connect_args={"timeout": 30} if TEST_DATABASE_URL.startswith("sqlite") else {},
)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose DB dependency uses the test database."""

    async def override_get_db():
        async with TestSessionLocal() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def make_user(db: AsyncSession, username: str, role: str = UserRole.USER) -> User:
    user = User(
        email=f"{username}@example.com",
        username=username,
        hashed_password=hash_password("testpassword123"),
        role=role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_event(
    db: AsyncSession,
    organizer: User,
    total_seats: int = 100,
    title: str = "Test Concert",
    days_ahead: int = 30,
) -> Event:
    event = Event(
        title=title,
        description="A test event",
        date=datetime.now(timezone.utc) + timedelta(days=days_ahead),
        location="Test Venue",
        total_seats=total_seats,
        organizer_id=organizer.id,
    )
    db.add(event)
    await db.commit()
    await db.refresh(event)
    return event


def bearer(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


def caller_for(user: User) -> Caller:
    return Caller(user_id=user.id, role=user.role)


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a regular test user in the database."""
    user = User(
        email="test@example.com",
        username="testuser",
        hashed_password=hash_password("testpassword123"),
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "otheruser")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "adminuser", role=UserRole.ADMIN)


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    """Authorization headers with Bearer token for the regular user."""
    return bearer(test_user)


@pytest_asyncio.fixture
async def other_headers(other_user: User) -> dict:
    return bearer(other_user)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict:
    return bearer(admin_user)


@pytest_asyncio.fixture
async def test_event(db_session: AsyncSession, admin_user: User) -> Event:
    """An upcoming event with 100 seats."""
    return await make_event(db_session, admin_user, total_seats=100)


@pytest_asyncio.fixture
async def small_event(db_session: AsyncSession, admin_user: User) -> Event:
    """An upcoming event with 2 seats."""
    return await make_event(db_session, admin_user, total_seats=2, title="Small Workshop")


@pytest_asyncio.fixture
async def single_seat_event(db_session: AsyncSession, admin_user: User) -> Event:
    """An upcoming event with exactly one seat."""
    return await make_event(db_session, admin_user, total_seats=1, title="Last Seat")
