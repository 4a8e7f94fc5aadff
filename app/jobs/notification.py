"""Expiry reminder job: send due reminders and record each one sent."""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.datetime_utils import utc_now
from app.core.logging import get_logger
from app.jobs.batch import ItemFailure
from app.jobs.constants import NOTIFICATION_SENT_BY
from app.jobs.selector import NotificationItem, WorkSelector
from app.models.access_request import ExpiryNotification
from app.models.job_run import JobKind
from app.services.notifier import Notifier

logger = get_logger(__name__)


class NotificationJob:
    """Sends 30-day and 7-day expiry reminders."""

    kind = JobKind.NOTIFICATION
    hold_seconds = 0.0

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: Notifier,
    ) -> None:
        self.session_factory = session_factory
        self.notifier = notifier

    async def select(self, selector: WorkSelector) -> list[NotificationItem]:
        return await selector.select_pending_notifications()

    async def process(self, item: NotificationItem) -> Any:
        delivery = await self.notifier.notify(
            item.email,
            {
                "request_id": str(item.request_id),
                "notification_type": item.notification_type.value,
                "expires_on": item.expires_on.isoformat(),
                "days_left": item.days_left,
            },
        )
        if not delivery.success:
            return ItemFailure(delivery.message)

        # Only record after a successful send; the record is what keeps this
        # reminder from being selected again.
        async with self.session_factory() as db:
            db.add(
                ExpiryNotification(
                    request_id=item.request_id,
                    notification_sent_at=utc_now(),
                    notification_sent_to=item.email,
                    notification_sent_by=NOTIFICATION_SENT_BY.format(
                        notification_type=item.notification_type.value
                    ),
                )
            )
            await db.commit()

        logger.bind(
            request_id=str(item.request_id),
            email=item.email,
            notification_type=item.notification_type.value,
        ).info("notification_sent")
        return delivery

    def describe_success(self, item: NotificationItem, value: Any) -> dict[str, Any]:
        return {**item.describe(), "status": "sent"}

    def describe_failure(self, item: NotificationItem, error: str) -> dict[str, Any]:
        return {**item.describe(), "status": "failed", "error": error}

    def summarize(self, processed: int, failed: int) -> str:
        if processed > 0 and failed == 0:
            return f"Successfully sent {processed} expiry notification(s)."
        if processed > 0:
            return f"Sent {processed} notification(s), {failed} failed."
        if failed > 0:
            return f"All {failed} notification(s) failed to send."
        return "No requests due for expiry notification."
