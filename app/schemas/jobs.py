"""Job trigger, status and history schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from app.jobs.lock import ActiveHolder
from app.jobs.runner import JobRunResult
from app.schemas.base import CamelModel


class ActiveJobResponse(CamelModel):
    """Identity of the run currently holding a job lock."""

    job_id: UUID
    started_at: datetime
    started_by: str

    @classmethod
    def from_holder(cls, holder: ActiveHolder | None) -> "ActiveJobResponse | None":
        if holder is None:
            return None
        return cls(job_id=holder.job_id, started_at=holder.started_at, started_by=holder.started_by)


class JobConflictResponse(CamelModel):
    """Body of a 409 returned when another run holds the lock."""

    message: str
    active_job: ActiveJobResponse | None


class JobStatusResponse(CamelModel):
    """Lock state for client polling."""

    locked: bool
    active_job: ActiveJobResponse | None


class JobTimingResponse(CamelModel):
    parallel_elapsed_ms: int
    sequential_estimate_ms: int
    total_elapsed_ms: int
    saved_ms: int


class JobRunResponse(CamelModel):
    """Body of a 200 returned by a Completed run."""

    message: str
    job_id: UUID
    processed_count: int
    failed_count: int
    completed_at: datetime
    succeeded: list[dict[str, Any]]
    failed: list[dict[str, Any]]
    timing: JobTimingResponse

    @classmethod
    def from_result(cls, result: JobRunResult) -> "JobRunResponse":
        return cls(
            message=result.message,
            job_id=result.job_id,
            processed_count=result.processed_count,
            failed_count=result.failed_count,
            completed_at=result.completed_at,
            succeeded=result.succeeded,
            failed=result.failed,
            timing=JobTimingResponse(
                parallel_elapsed_ms=result.parallel_elapsed_ms,
                sequential_estimate_ms=result.sequential_estimate_ms,
                total_elapsed_ms=result.total_elapsed_ms,
                saved_ms=result.saved_ms,
            ),
        )


class JobRunHistoryResponse(CamelModel):
    """One row of the job run audit log."""

    job_id: UUID
    job_kind: str
    status: str
    started_at: datetime
    started_by: str
    completed_at: datetime | None
    duration_seconds: float | None
    processed_count: int | None
    failed_count: int | None
    error_message: str | None


class ScheduleResponse(CamelModel):
    """A registered scheduler entry."""

    id: str
    task_id: str
    trigger: str
    next_fire_time: str | None
    last_fire_time: str | None


class JobStatsResponse(CamelModel):
    """Aggregated run statistics for one job kind."""

    job_kind: str
    total_runs: int
    completed_runs: int
    failed_runs: int
    in_progress_runs: int
    success_rate: float
    avg_duration_seconds: float | None
    items_processed: int
    items_failed: int
    last_run: datetime | None
    last_status: str | None
