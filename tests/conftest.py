"""
Pytest configuration and fixtures for access request job tests.

Provides:
- A file-backed SQLite database per test (every session gets its own connection,
  the way concurrent job items do in production)
- Test client for API testing with fast job wiring
- Factory fixtures for creating test data
"""

import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import NullPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import Settings, get_settings
from app.core.database import get_db, get_session_factory
from app.core.datetime_utils import utc_now
from app.dependencies import get_job_factory
from app.jobs.factory import JobFactory
from app.main import app
from app.models import Base
from app.models.access_request import (
    AccessRequestStatus,
    ExpiryNotification,
    UserAccessRequest,
)
from app.models.job_run import JobKind, JobRun, JobRunStatus

# Simulated send latency used by API tests; long enough to observe a held lock
TEST_SEND_DELAY_SECONDS = 0.2


# Override settings for testing
class TestSettings(Settings):
    database_url: str = "sqlite+aiosqlite://"
    debug: bool = True
    instance_name: str = "test-server"
    scheduler_enabled: bool = False


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create async test database engine backed by a temp file."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory handed to job runners, one session per unit of work."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def job_factory(session_factory) -> JobFactory:
    """Job factory with short simulated latency and no revoke hold."""
    return JobFactory(
        session_factory,
        send_delay_seconds=TEST_SEND_DELAY_SECONDS,
        revoke_hold_seconds=0.0,
        started_by="test-server",
    )


@pytest_asyncio.fixture
async def client(session_factory, job_factory) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client with database and job overrides."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    def override_get_settings():
        return TestSettings()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = override_get_settings
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_job_factory] = lambda: job_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================================
# Factory Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def access_request_factory(db_session: AsyncSession):
    """Factory for creating committed access requests."""

    async def _create_access_request(
        email: str = None,
        expires_on: datetime = None,
        expires_in_days: float = None,
        status: AccessRequestStatus = AccessRequestStatus.ACTIVE,
        notifications_sent: int = 0,
    ) -> UserAccessRequest:
        if email is None:
            email = f"user-{uuid.uuid4().hex[:8]}@example.com"
        if expires_on is None:
            days = 20 if expires_in_days is None else expires_in_days
            expires_on = utc_now() + timedelta(days=days)

        request = UserAccessRequest(
            requestor_email=email,
            expires_on=expires_on,
            status=status,
        )
        db_session.add(request)
        await db_session.flush()

        for _ in range(notifications_sent):
            db_session.add(
                ExpiryNotification(
                    request_id=request.request_id,
                    notification_sent_at=utc_now(),
                    notification_sent_to=email,
                    notification_sent_by="System - Automated Job (30-Day Reminder)",
                )
            )

        # Commit so job sessions on other connections can see it
        await db_session.commit()
        return request

    return _create_access_request


@pytest_asyncio.fixture
async def job_run_factory(db_session: AsyncSession):
    """Factory for creating committed job run rows."""

    async def _create_job_run(
        kind: JobKind = JobKind.NOTIFICATION,
        status: JobRunStatus = JobRunStatus.IN_PROGRESS,
        started_at: datetime = None,
        started_by: str = "other-server",
    ) -> JobRun:
        run = JobRun(
            job_id=uuid.uuid4(),
            job_kind=kind,
            status=status,
            started_at=started_at or utc_now(),
            started_by=started_by,
        )
        db_session.add(run)
        await db_session.commit()
        return run

    return _create_job_run


# ============================================================================
# In-Memory Test Helpers (no DB)
# ============================================================================


class FixedClock:
    """Settable clock for lock staleness and selection boundary tests."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def fixed_clock():
    """Clock pinned to noon so day-boundary arithmetic is unambiguous."""
    return FixedClock(datetime(2026, 3, 10, 12, 0, 0))
