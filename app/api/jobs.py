"""Job monitoring API endpoints."""

from collections import defaultdict

from fastapi import APIRouter, Query
from sqlalchemy import func, select

from app.core.scheduler import get_job_schedules
from app.dependencies import DBSession
from app.models.job_run import JobKind, JobRun, JobRunStatus
from app.schemas.jobs import JobRunHistoryResponse, JobStatsResponse, ScheduleResponse

# Completed runs used for the average duration
DURATION_SAMPLE_SIZE = 100

router = APIRouter()


@router.get("/jobs/schedules", response_model=list[ScheduleResponse])
async def list_schedules() -> list[ScheduleResponse]:
    """
    List all registered job schedules.

    Empty when the scheduler is disabled.
    """
    schedules = await get_job_schedules()
    return [ScheduleResponse(**s) for s in schedules]


@router.get("/jobs/runs", response_model=list[JobRunHistoryResponse])
async def list_job_runs(
    db: DBSession,
    job_kind: JobKind | None = Query(default=None, description="Filter by job kind"),
    limit: int = Query(default=50, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[JobRunHistoryResponse]:
    """
    List job run history, newest first.

    Includes runs still in progress and runs abandoned past the staleness window.
    """
    query = select(JobRun).order_by(JobRun.started_at.desc())

    if job_kind:
        query = query.where(JobRun.job_kind == job_kind)

    query = query.offset(offset).limit(limit)
    result = await db.execute(query)
    runs = result.scalars().all()

    return [
        JobRunHistoryResponse(
            job_id=run.job_id,
            job_kind=run.job_kind.value,
            status=run.status.value,
            started_at=run.started_at,
            started_by=run.started_by,
            completed_at=run.completed_at,
            duration_seconds=(
                (run.completed_at - run.started_at).total_seconds() if run.completed_at else None
            ),
            processed_count=run.processed_count,
            failed_count=run.failed_count,
            error_message=run.error_message,
        )
        for run in runs
    ]


@router.get("/jobs/stats", response_model=list[JobStatsResponse])
async def get_job_stats(db: DBSession) -> list[JobStatsResponse]:
    """
    Aggregated statistics for every job kind.

    Success rate is Completed over finished runs. A Completed run whose items
    partly failed still counts as a success; its item failures show up in
    `itemsFailed`.
    """
    counts_result = await db.execute(
        select(
            JobRun.job_kind,
            JobRun.status,
            func.count(JobRun.job_id),
            func.coalesce(func.sum(JobRun.processed_count), 0),
            func.coalesce(func.sum(JobRun.failed_count), 0),
        ).group_by(JobRun.job_kind, JobRun.status)
    )
    counts: dict[JobKind, dict[JobRunStatus, tuple[int, int, int]]] = defaultdict(dict)
    for kind, run_status, runs, processed, failed in counts_result.all():
        counts[kind][run_status] = (runs, processed, failed)

    stats = []
    for kind in JobKind:
        by_status = counts[kind]
        completed, processed, item_failures = by_status.get(JobRunStatus.COMPLETED, (0, 0, 0))
        failed = by_status.get(JobRunStatus.FAILED, (0, 0, 0))[0]
        in_progress = by_status.get(JobRunStatus.IN_PROGRESS, (0, 0, 0))[0]
        finished = completed + failed

        durations_result = await db.execute(
            select(JobRun.started_at, JobRun.completed_at)
            .where(JobRun.job_kind == kind, JobRun.status == JobRunStatus.COMPLETED)
            .order_by(JobRun.started_at.desc())
            .limit(DURATION_SAMPLE_SIZE)
        )
        durations = [
            (completed_at - started_at).total_seconds()
            for started_at, completed_at in durations_result.all()
            if completed_at is not None
        ]

        last_run_result = await db.execute(
            select(JobRun.started_at, JobRun.status)
            .where(JobRun.job_kind == kind)
            .order_by(JobRun.started_at.desc())
            .limit(1)
        )
        last_run = last_run_result.first()

        stats.append(
            JobStatsResponse(
                job_kind=kind.value,
                total_runs=finished + in_progress,
                completed_runs=completed,
                failed_runs=failed,
                in_progress_runs=in_progress,
                success_rate=completed / finished if finished > 0 else 0.0,
                avg_duration_seconds=sum(durations) / len(durations) if durations else None,
                items_processed=processed,
                items_failed=item_failures,
                last_run=last_run.started_at if last_run else None,
                last_status=last_run.status.value if last_run else None,
            )
        )

    return stats
