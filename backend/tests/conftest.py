"""
Pytest configuration and shared fixtures for backend tests.
"""

import sys
from pathlib import Path

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import pytest
from datetime import UTC, date, datetime, time, timedelta
from typing import AsyncGenerator
from uuid import uuid4

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Import after path is set
from infrastructure.database.models import (
    AcquisitionSourceStats,
    Base,
    Business,
    Event,
    EventStatus,
    LandingPage,
    LandingPageStatus,
)
from infrastructure.database.connection import get_db
from api.deps_tenant import token_service
from core.domain.growth import day_window, resolve_zone


# Database URL for testing (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Fixed calendar day used by aggregation tests
STATS_DAY = date(2026, 10, 15)


def at(day: date, hour: int, minute: int = 0) -> datetime:
    """UTC timestamp on *day*."""
    return datetime.combine(day, time(hour, minute), tzinfo=UTC)


def make_stats_row(business_id: str, source_key: str, source_type: str, stats_date: date, **metrics):
    """Build a daily stats row directly, bypassing the aggregator."""
    window = day_window(stats_date, resolve_zone("UTC"))
    return AcquisitionSourceStats(
        id=str(uuid4()),
        business_id=business_id,
        source_key=source_key,
        source_type=source_type,
        period="day",
        period_start=window.start,
        period_end=window.end,
        stats_date=stats_date,
        **metrics,
    )


@pytest.fixture
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def business(db_session: AsyncSession) -> Business:
    """Create a test business in UTC."""
    business = Business(id=str(uuid4()), name="Test Studio", timezone="UTC", is_active=True)
    db_session.add(business)
    await db_session.commit()
    await db_session.refresh(business)
    return business


@pytest.fixture
async def other_business(db_session: AsyncSession) -> Business:
    """A second tenant, for isolation checks."""
    business = Business(id=str(uuid4()), name="Other Studio", timezone="UTC", is_active=True)
    db_session.add(business)
    await db_session.commit()
    await db_session.refresh(business)
    return business


@pytest.fixture
async def landing_page(db_session: AsyncSession, business: Business) -> LandingPage:
    """Create a published landing page."""
    page = LandingPage(
        id=str(uuid4()),
        business_id=business.id,
        name="Spring Workshop",
        slug="spring-workshop",
        status=LandingPageStatus.PUBLISHED.value,
    )
    db_session.add(page)
    await db_session.commit()
    await db_session.refresh(page)
    return page


@pytest.fixture
async def event(db_session: AsyncSession, business: Business) -> Event:
    """Create a published event."""
    event = Event(
        id=str(uuid4()),
        business_id=business.id,
        title="Mindfulness Evening",
        status=EventStatus.PUBLISHED.value,
    )
    db_session.add(event)
    await db_session.commit()
    await db_session.refresh(event)
    return event


@pytest.fixture
def auth_headers(business: Business) -> dict:
    """Authentication headers for a business owner."""
    access_token = token_service.create_access_token(
        user_id=str(uuid4()), business_id=business.id, role="owner"
    )
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def admin_headers(business: Business) -> dict:
    """Authentication headers for an admin acting on the test business."""
    access_token = token_service.create_access_token(
        user_id=str(uuid4()), business_id=business.id, role="admin"
    )
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def yesterday() -> date:
    """Yesterday in UTC, always inside every rollup window."""
    return datetime.now(UTC).date() - timedelta(days=1)


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    # Import app here to avoid circular imports
    from main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    # Reset rate limiter state between tests to prevent cross-test 429s
    app.state.limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
