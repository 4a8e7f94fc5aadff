"""
Job orchestration: one run of one job kind.

    NotStarted -> LockAcquired -> Completed | Failed
    NotStarted -> Conflicted

A run is Completed whenever select -> execute finishes, even if every item
failed; per-item outcomes live in the result, not in the job status. Any
exception between acquiring the lock and completing marks the run Failed
before it propagates, so no run is left InProgress except by a crash of the
process itself (which the staleness window covers).
"""

import asyncio
import socket
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.datetime_utils import elapsed_ms, utc_now
from app.core.logging import get_logger
from app.jobs.batch import BatchResult, ParallelBatchExecutor
from app.jobs.errors import JobLockConflict, JobRunFailed
from app.jobs.lock import JobLock
from app.jobs.selector import WorkSelector
from app.models.job_run import JobKind

logger = get_logger(__name__)


class Job[T](Protocol):
    """What the runner needs to know about a job kind."""

    kind: JobKind
    hold_seconds: float

    async def select(self, selector: WorkSelector) -> list[T]:
        """Derive this run's work items."""
        ...

    async def process(self, item: T) -> Any:
        """Handle one item; return a success value, an ItemFailure, or raise."""
        ...

    def describe_success(self, item: T, value: Any) -> dict[str, Any]: ...

    def describe_failure(self, item: T, error: str) -> dict[str, Any]: ...

    def summarize(self, processed: int, failed: int) -> str: ...


@dataclass
class JobRunResult:
    """Outcome of a Completed run, ready to be rendered as a response."""

    job_id: UUID
    kind: JobKind
    message: str
    processed_count: int
    failed_count: int
    succeeded: list[dict[str, Any]]
    failed: list[dict[str, Any]]
    parallel_elapsed_ms: int
    sequential_estimate_ms: int
    total_elapsed_ms: int
    completed_at: datetime

    @property
    def saved_ms(self) -> int:
        return self.sequential_estimate_ms - self.parallel_elapsed_ms


def default_holder_name() -> str:
    return socket.gethostname()


class JobRunner:
    """Run a job under its database lock.

    Args:
        session_factory: Source of independent sessions; one is held for the
            lock, one is used for selection, and every item opens its own
        job: The job kind being run
        executor: Batch executor for the item fan-out
        started_by: Recorded on the run row for operators
        clock: Time source for work selection; the lock always uses the
            database clock
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        job: Job,
        executor: ParallelBatchExecutor | None = None,
        started_by: str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session_factory = session_factory
        self.job = job
        self.executor = executor or ParallelBatchExecutor()
        self.started_by = started_by or default_holder_name()
        self._clock = clock

    async def run(self) -> JobRunResult:
        """
        Execute one run.

        Raises:
            JobLockConflict: Another fresh run of this kind holds the lock
            JobRunFailed: The run crashed; its row has been marked Failed
        """
        job_id = uuid4()
        kind = self.job.kind
        total_start = time.perf_counter()

        async with self.session_factory() as lock_session:
            lock = JobLock(lock_session, kind)

            if not await lock.try_acquire(job_id, self.started_by):
                holder = await lock.get_active_holder()
                logger.bind(
                    kind=kind.value,
                    active_job_id=str(holder.job_id) if holder else None,
                    active_started_by=holder.started_by if holder else None,
                ).info("lock_conflict")
                raise JobLockConflict(kind, holder)

            try:
                batch = await self._select_and_execute()
                result = self._build_result(job_id, batch, total_start)
                await lock.complete(job_id, result.processed_count, result.failed_count)
            except asyncio.CancelledError:
                # Cancelled on shutdown; mark Failed so the next trigger can acquire
                logger.bind(kind=kind.value, job_id=str(job_id)).warning("job_cancelled")
                await asyncio.shield(lock.fail(job_id, "Job cancelled before completion"))
                raise
            except Exception as e:
                message = str(e) or type(e).__name__
                logger.bind(kind=kind.value, job_id=str(job_id)).opt(exception=e).error(
                    "job_failed"
                )
                await lock.fail(job_id, message)
                raise JobRunFailed(kind, job_id, message) from e

        logger.bind(
            kind=kind.value,
            job_id=str(job_id),
            processed=result.processed_count,
            failed=result.failed_count,
            total_ms=result.total_elapsed_ms,
        ).info("job_completed")
        return result

    def _build_result(self, job_id: UUID, batch: BatchResult, total_start: float) -> JobRunResult:
        return JobRunResult(
            job_id=job_id,
            kind=self.job.kind,
            message=self.job.summarize(batch.succeeded_count, batch.failed_count),
            processed_count=batch.succeeded_count,
            failed_count=batch.failed_count,
            succeeded=[self.job.describe_success(o.item, o.value) for o in batch.succeeded],
            failed=[self.job.describe_failure(o.item, o.error or "") for o in batch.failed],
            parallel_elapsed_ms=batch.timing.parallel_elapsed_ms,
            sequential_estimate_ms=batch.timing.sequential_estimate_ms,
            total_elapsed_ms=elapsed_ms(total_start, time.perf_counter()),
            completed_at=self._clock(),
        )

    async def _select_and_execute(self) -> BatchResult:
        if self.job.hold_seconds > 0:
            await asyncio.sleep(self.job.hold_seconds)

        async with self.session_factory() as db:
            items = await self.job.select(WorkSelector(db, clock=self._clock))

        logger.bind(kind=self.job.kind.value, items=len(items)).info("job_work_selected")
        return await self.executor.run(items, self.job.process)
