"""Maps job-level exceptions to HTTP responses for every router."""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.core.logging import get_logger
from app.jobs.errors import JobLockConflict, JobRunFailed
from app.models.job_run import JobKind
from app.schemas.jobs import ActiveJobResponse, JobConflictResponse

logger = get_logger(__name__)

JOB_LABELS = {
    JobKind.NOTIFICATION: "Notification",
    JobKind.REVOKE: "Revoke",
}


async def job_lock_conflict_handler(request: Request, exc: JobLockConflict) -> JSONResponse:
    """409 naming the run that holds the lock, so the client can poll it."""
    body = JobConflictResponse(
        message=str(exc),
        active_job=ActiveJobResponse.from_holder(exc.holder),
    )
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=body.model_dump(mode="json", by_alias=True),
    )


async def job_run_failed_handler(request: Request, exc: JobRunFailed) -> JSONResponse:
    logger.bind(kind=exc.kind.value, job_id=str(exc.job_id), path=request.url.path).error(
        "job_request_failed"
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"{JOB_LABELS[exc.kind]} job failed: {exc.message}"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(JobLockConflict, job_lock_conflict_handler)  # type: ignore[arg-type]
    app.add_exception_handler(JobRunFailed, job_run_failed_handler)  # type: ignore[arg-type]
