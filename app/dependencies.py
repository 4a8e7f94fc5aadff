from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import get_db, get_session_factory
from app.jobs.factory import JobFactory


def get_job_factory(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> JobFactory:
    """Job runners wired to the application's session factory."""
    return JobFactory(session_factory)


# Type aliases for dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db)]
Jobs = Annotated[JobFactory, Depends(get_job_factory)]
