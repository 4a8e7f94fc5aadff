"""Poll-friendly projection of a job kind's lock state."""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.jobs.lock import ActiveHolder, JobLock
from app.models.job_run import JobKind


@dataclass
class JobStatus:
    locked: bool
    holder: ActiveHolder | None


class JobStatusReporter:
    """Answers "is this job kind running, and by whom" without side effects."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def status(self, kind: JobKind) -> JobStatus:
        holder = await JobLock(self.db, kind).get_active_holder()
        return JobStatus(locked=holder is not None, holder=holder)
