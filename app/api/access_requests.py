"""Access request endpoints, including the expiry job triggers."""

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import select

from app.core.datetime_utils import NEVER_EXPIRES, get_expiry, utc_now
from app.core.logging import get_logger
from app.dependencies import DBSession, Jobs
from app.jobs.failures import FailurePlan
from app.jobs.selector import WorkSelector, classify_notification
from app.jobs.status import JobStatusReporter
from app.models.access_request import AccessRequestStatus, UserAccessRequest
from app.models.job_run import JobKind
from app.schemas.access_request import (
    AccessRequestCreate,
    AccessRequestCreated,
    AccessRequestResponse,
    PendingNotificationResponse,
)
from app.schemas.jobs import (
    ActiveJobResponse,
    JobConflictResponse,
    JobRunResponse,
    JobStatusResponse,
)

logger = get_logger(__name__)

router = APIRouter()


def _to_response(request: UserAccessRequest) -> AccessRequestResponse:
    revocation = request.revocation
    return AccessRequestResponse(
        id=request.id,
        request_id=request.request_id,
        requestor_email=request.requestor_email,
        expires_on=request.expires_on,
        status=request.status.value,
        revoked_dt=revocation.revoked_at if revocation else None,
        revoked_by=revocation.revoked_by if revocation else None,
    )


async def _trigger(
    jobs: Jobs,
    kind: JobKind,
    fail_email: list[str] | None,
    simulate_failures: bool,
) -> JobRunResponse:
    plan = FailurePlan.from_params(fail_email, fail_randomly=simulate_failures)
    if not plan.is_noop:
        logger.bind(
            kind=kind.value,
            fail_identifiers=sorted(plan.fail_identifiers),
            fail_randomly=plan.fail_randomly,
        ).warning("job_failure_simulation_enabled")

    # JobLockConflict and JobRunFailed are mapped to 409 / 500 by app.api.errors
    result = await jobs.runner(kind, plan).run()
    return JobRunResponse.from_result(result)


async def _status(db: DBSession, kind: JobKind) -> JobStatusResponse:
    job_status = await JobStatusReporter(db).status(kind)
    return JobStatusResponse(
        locked=job_status.locked,
        active_job=ActiveJobResponse.from_holder(job_status.holder),
    )


@router.get("/access-requests", response_model=list[AccessRequestResponse])
async def list_access_requests(db: DBSession) -> list[AccessRequestResponse]:
    """List all access requests with revocation details."""
    result = await db.execute(select(UserAccessRequest).order_by(UserAccessRequest.id))
    return [_to_response(r) for r in result.scalars().all()]


@router.post("/access-requests", response_model=AccessRequestCreated)
async def create_access_request(body: AccessRequestCreate, db: DBSession) -> AccessRequestCreated:
    """
    Create an Active access request.

    `expiryDays` of 0 creates a grant that never expires.
    """
    email = body.requestor_email.strip()
    if not email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required.")

    expires_on = get_expiry(days=body.expiry_days) if body.expiry_days > 0 else NEVER_EXPIRES

    request = UserAccessRequest(
        requestor_email=email,
        expires_on=expires_on,
        status=AccessRequestStatus.ACTIVE,
    )
    db.add(request)
    await db.flush()

    logger.bind(request_id=str(request.request_id), email=email).info("access_request_created")

    return AccessRequestCreated(
        message="Access request created successfully.",
        request_id=request.request_id,
        requestor_email=email,
        expires_on=expires_on,
        status=request.status.value,
    )


@router.get("/access-requests/pending-expiry", response_model=list[AccessRequestResponse])
async def list_pending_expiry(db: DBSession) -> list[AccessRequestResponse]:
    """Active requests that have already expired and await revocation."""
    result = await db.execute(
        select(UserAccessRequest)
        .where(
            UserAccessRequest.status == AccessRequestStatus.ACTIVE,
            UserAccessRequest.expires_on <= utc_now(),
        )
        .order_by(UserAccessRequest.expires_on)
    )
    return [_to_response(r) for r in result.scalars().all()]


@router.get(
    "/access-requests/pending-notifications",
    response_model=list[PendingNotificationResponse],
)
async def list_pending_notifications(db: DBSession) -> list[PendingNotificationResponse]:
    """Requests that the next notification run would send a reminder for."""
    candidates = await WorkSelector(db).find_notification_candidates()

    pending = []
    for candidate in candidates:
        next_notification = classify_notification(
            candidate.days_left, candidate.notification_count
        )
        if next_notification is None:
            continue
        pending.append(
            PendingNotificationResponse(
                id=candidate.id,
                request_id=candidate.request_id,
                requestor_email=candidate.email,
                expires_on=candidate.expires_on,
                days_left=candidate.days_left,
                notifications_sent=candidate.notification_count,
                next_notification=next_notification.value,
            )
        )
    return pending


@router.post(
    "/access-requests/send-expiry-notifications",
    response_model=JobRunResponse,
    responses={409: {"model": JobConflictResponse}},
)
async def send_expiry_notifications(
    jobs: Jobs,
    fail_email: list[str] | None = Query(
        default=None,
        alias="failEmail",
        description="Testing only: force the reminder to these recipients to fail.",
    ),
    simulate_failures: bool = Query(
        default=False,
        alias="simulateFailures",
        description="Testing only: fail roughly half of the reminders at random.",
    ),
) -> JobRunResponse:
    """
    Run the expiry reminder job.

    Returns 409 with the active run if another server is already running it.
    """
    return await _trigger(jobs, JobKind.NOTIFICATION, fail_email, simulate_failures)


@router.get("/access-requests/notification-job-status", response_model=JobStatusResponse)
async def notification_job_status(db: DBSession) -> JobStatusResponse:
    """Whether a reminder run currently holds the lock."""
    return await _status(db, JobKind.NOTIFICATION)


@router.post(
    "/access-requests/revoke-expired",
    response_model=JobRunResponse,
    responses={409: {"model": JobConflictResponse}},
)
async def revoke_expired(
    jobs: Jobs,
    fail_email: list[str] | None = Query(
        default=None,
        alias="failEmail",
        description="Testing only: force revocation of these requests to fail.",
    ),
    simulate_failures: bool = Query(
        default=False,
        alias="simulateFailures",
        description="Testing only: fail roughly half of the revocations at random.",
    ),
) -> JobRunResponse:
    """
    Run the revoke job for every expired Active request.

    Returns 409 with the active run if another server is already running it.
    """
    return await _trigger(jobs, JobKind.REVOKE, fail_email, simulate_failures)


@router.get("/access-requests/revoke-job-status", response_model=JobStatusResponse)
async def revoke_job_status(db: DBSession) -> JobStatusResponse:
    """Whether a revoke run currently holds the lock."""
    return await _status(db, JobKind.REVOKE)
