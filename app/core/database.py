from collections.abc import AsyncGenerator
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)

settings = get_settings()


def clean_database_url(url: str) -> str:
    """
    Strip libpq-only query params that asyncpg rejects.

    Connection strings copied from hosted Postgres dashboards usually carry
    sslmode/channel_binding, which asyncpg does not understand.
    """
    parsed = urlparse(url)
    if not parsed.scheme.endswith("asyncpg"):
        return url

    params = parse_qs(parsed.query)
    for param in ["sslmode", "channel_binding", "options"]:
        params.pop(param, None)

    new_query = urlencode(params, doseq=True)
    return urlunparse(parsed._replace(query=new_query))


engine = create_async_engine(
    clean_database_url(settings.database_url),
    echo=settings.debug,
    pool_pre_ping=True,
)

# Sessions are never shared between concurrent tasks; every batch item opens
# its own session from this factory.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.bind(error=str(e)).error("database_transaction_rollback")
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Dependency that provides the session factory used by job runs."""
    return AsyncSessionLocal
