"""Revoke job: flip expired Active grants to Revoked, one grant per item."""

from typing import Any

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.datetime_utils import utc_now
from app.core.logging import get_logger
from app.jobs.constants import REVOKE_HOLD_DELAY_SECONDS, REVOKED_BY
from app.jobs.failures import FailurePlan
from app.jobs.selector import ExpiredAccess, WorkSelector
from app.models.access_request import AccessRequestStatus, RevokedAccess, UserAccessRequest
from app.models.job_run import JobKind

logger = get_logger(__name__)

REVOKE_REJECTED_MESSAGE = "Simulated: directory service refused to revoke access for '{recipient}'"
REVOKE_TIMEOUT_MESSAGE = "Simulated: directory service timed out after 30 seconds"


class AccessNoLongerActive(Exception):
    """The grant changed state between selection and revocation."""


class RevokeExpiredJob:
    """Revokes every Active access request whose expiry has passed."""

    kind = JobKind.REVOKE

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        failure_plan: FailurePlan | None = None,
        hold_seconds: float = REVOKE_HOLD_DELAY_SECONDS,
    ) -> None:
        self.session_factory = session_factory
        self.failure_plan = failure_plan or FailurePlan()
        self.hold_seconds = hold_seconds

    async def select(self, selector: WorkSelector) -> list[ExpiredAccess]:
        return await selector.select_expired_active()

    async def process(self, item: ExpiredAccess) -> Any:
        self.failure_plan.check(
            item.email,
            identifier=str(item.request_id),
            rejected_message=REVOKE_REJECTED_MESSAGE,
            random_message=REVOKE_TIMEOUT_MESSAGE,
        )

        async with self.session_factory() as db:
            result = await db.execute(
                update(UserAccessRequest)
                .where(
                    UserAccessRequest.request_id == item.request_id,
                    UserAccessRequest.status == AccessRequestStatus.ACTIVE,
                )
                .values(status=AccessRequestStatus.REVOKED)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise AccessNoLongerActive(f"Access request {item.request_id} is no longer active")

            revoked_at = utc_now()
            db.add(
                RevokedAccess(
                    request_id=item.request_id,
                    revoked_at=revoked_at,
                    revoked_by=REVOKED_BY,
                )
            )
            await db.commit()

        logger.bind(request_id=str(item.request_id), email=item.email).info("access_revoked")
        return revoked_at

    def describe_success(self, item: ExpiredAccess, value: Any) -> dict[str, Any]:
        return {**item.describe(), "status": "revoked", "revokedAt": value}

    def describe_failure(self, item: ExpiredAccess, error: str) -> dict[str, Any]:
        return {**item.describe(), "status": "failed", "error": error}

    def summarize(self, processed: int, failed: int) -> str:
        if processed > 0 and failed == 0:
            return f"Successfully revoked {processed} expired request(s)."
        if processed > 0:
            return f"Revoked {processed} expired request(s), {failed} failed."
        if failed > 0:
            return f"All {failed} revocation(s) failed."
        return "No expired requests found to revoke."
