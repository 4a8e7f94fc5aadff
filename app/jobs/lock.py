"""
Database-backed job lock.

The lock for a job kind is "held" while a job_runs row of that kind is
InProgress and younger than the staleness window. Acquiring it is a single
conditional INSERT ... SELECT ... WHERE NOT EXISTS, so the check and the
write are evaluated by the database, never as a read-then-write from here.

A crashed holder is never explicitly unlocked: once its row ages past the
window it stops counting and the next trigger may acquire.

Run timestamps and the staleness cutoff come from the database clock, so
servers whose clocks disagree still agree on who holds the lock.
"""

import zlib
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import DateTime, Interval, func, insert, literal, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.datetime_utils import get_cutoff
from app.core.logging import get_logger
from app.jobs.constants import ERROR_MESSAGE_MAX_LENGTH, LOCK_STALENESS_MINUTES
from app.models.job_run import JobKind, JobRun, JobRunStatus

logger = get_logger(__name__)


@dataclass(frozen=True)
class ActiveHolder:
    """Who currently holds a job lock. Diagnostic only."""

    job_id: UUID
    started_at: datetime
    started_by: str


def truncate_error(message: str) -> str:
    return message[:ERROR_MESSAGE_MAX_LENGTH]


def _advisory_key(kind: JobKind) -> int:
    return zlib.crc32(f"job_runs:{kind.value}".encode())


def db_utc_now(dialect: str, minus_minutes: int = 0):
    """Naive UTC timestamp evaluated by the database, matching the column type."""
    if dialect == "sqlite":
        modifiers = [f"-{minus_minutes} minutes"] if minus_minutes else []
        return func.strftime("%Y-%m-%d %H:%M:%f", "now", *modifiers, type_=DateTime)
    now = func.timezone("UTC", func.now(), type_=DateTime)
    if minus_minutes:
        return now - literal(timedelta(minutes=minus_minutes), type_=Interval)
    return now


class JobLock:
    """Acquire, inspect and release the lock for one job kind.

    The session passed in is used for every lock statement and is expected to
    stay open for the duration of the run. Without a clock every timestamp is
    taken from the database; a clock replaces that with fixed values in tests.
    """

    def __init__(
        self,
        db: AsyncSession,
        kind: JobKind,
        clock: Callable[[], datetime] | None = None,
        staleness_minutes: int = LOCK_STALENESS_MINUTES,
    ) -> None:
        self.db = db
        self.kind = kind
        self._clock = clock
        self._staleness_minutes = staleness_minutes

    @property
    def _dialect(self) -> str:
        return self.db.get_bind().dialect.name

    def _now(self):
        if self._clock is not None:
            return literal(self._clock(), type_=DateTime)
        return db_utc_now(self._dialect)

    def _cutoff(self):
        if self._clock is not None:
            return get_cutoff(minutes=self._staleness_minutes, now=self._clock())
        return db_utc_now(self._dialect, minus_minutes=self._staleness_minutes)

    def _fresh_in_progress(self):
        cutoff = self._cutoff()
        return (
            JobRun.job_kind == self.kind,
            JobRun.status == JobRunStatus.IN_PROGRESS,
            JobRun.started_at >= cutoff,
        )

    async def _serialize_writers(self) -> None:
        # READ COMMITTED lets two concurrent transactions both pass NOT EXISTS;
        # a transaction-scoped advisory lock per kind closes that gap.
        if self._dialect == "postgresql":
            await self.db.execute(
                text("SELECT pg_advisory_xact_lock(:key)"),
                {"key": _advisory_key(self.kind)},
            )

    async def try_acquire(self, job_id: UUID, started_by: str) -> bool:
        """
        Insert an InProgress run for this kind unless a fresh one exists.

        Args:
            job_id: New, never used run identifier
            started_by: Host/process name recorded for operators

        Returns:
            True if the row was inserted and the caller now holds the lock
        """
        table = JobRun.__table__

        existing = select(JobRun.job_id).where(*self._fresh_in_progress()).correlate(None)
        candidate = select(
            literal(job_id, type_=table.c.job_id.type),
            literal(self.kind, type_=table.c.job_kind.type),
            literal(JobRunStatus.IN_PROGRESS, type_=table.c.status.type),
            self._now(),
            literal(started_by[:255], type_=table.c.started_by.type),
        ).where(~existing.exists())

        stmt = insert(table).from_select(
            ["job_id", "job_kind", "status", "started_at", "started_by"],
            candidate,
        )

        try:
            await self._serialize_writers()
            result = await self.db.execute(stmt)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        acquired = result.rowcount == 1
        if acquired:
            logger.bind(kind=self.kind.value, job_id=str(job_id), started_by=started_by).info(
                "lock_acquired"
            )
        else:
            logger.bind(kind=self.kind.value, job_id=str(job_id)).info("lock_busy")
        return acquired

    async def get_active_holder(self) -> ActiveHolder | None:
        """Most recently started fresh InProgress run of this kind, if any."""
        result = await self.db.execute(
            select(JobRun.job_id, JobRun.started_at, JobRun.started_by)
            .where(*self._fresh_in_progress())
            .order_by(JobRun.started_at.desc())
            .limit(1)
        )
        row = result.first()
        if row is None:
            return None
        return ActiveHolder(job_id=row.job_id, started_at=row.started_at, started_by=row.started_by)

    async def complete(self, job_id: UUID, processed_count: int, failed_count: int) -> None:
        """Mark the run Completed and stamp its counts."""
        await self._finish(
            job_id,
            status=JobRunStatus.COMPLETED,
            processed_count=processed_count,
            failed_count=failed_count,
        )
        logger.bind(
            kind=self.kind.value,
            job_id=str(job_id),
            processed=processed_count,
            failed=failed_count,
        ).info("lock_released_completed")

    async def fail(self, job_id: UUID, error_message: str) -> None:
        """Mark the run Failed with a truncated error message."""
        # The session may hold a broken transaction from whatever just raised
        await self.db.rollback()
        await self._finish(
            job_id,
            status=JobRunStatus.FAILED,
            error_message=truncate_error(error_message),
        )
        logger.bind(kind=self.kind.value, job_id=str(job_id), error=error_message).warning(
            "lock_released_failed"
        )

    async def _finish(self, job_id: UUID, status: JobRunStatus, **values) -> None:
        # Guarded on InProgress: terminal rows are never rewritten
        stmt = (
            update(JobRun)
            .where(JobRun.job_id == job_id, JobRun.status == JobRunStatus.IN_PROGRESS)
            .values(status=status, completed_at=self._now(), **values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if result.rowcount == 0:
            logger.bind(job_id=str(job_id), status=status.value).warning("job_run_not_in_progress")
