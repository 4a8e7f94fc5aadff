"""
Work selection for the recurring jobs.

Selection is a pure function of (now, access requests, notification history):
it writes nothing, so it can be re-run any number of times. Items that were
already handled successfully drop out on the next run because their
outcome is recorded durably.
"""

import enum
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.datetime_utils import NEVER_EXPIRES, days_until, start_of_day, utc_now
from app.core.logging import get_logger
from app.jobs.constants import FINAL_REMINDER_DAYS, NOTIFICATION_WINDOW_DAYS
from app.models.access_request import AccessRequestStatus, ExpiryNotification, UserAccessRequest

logger = get_logger(__name__)


class NotificationType(str, enum.Enum):
    """Which reminder an access request is due for."""

    FIRST_REMINDER = "30-Day Reminder"
    FINAL_REMINDER = "7-Day Reminder"


@dataclass(frozen=True)
class NotificationCandidate:
    """An Active request inside the notification window, before classification."""

    id: int
    request_id: UUID
    email: str
    expires_on: datetime
    days_left: int
    notification_count: int


@dataclass(frozen=True)
class NotificationItem:
    """One reminder to send."""

    request_id: UUID
    email: str
    expires_on: datetime
    days_left: int
    notification_type: NotificationType

    def describe(self) -> dict[str, Any]:
        return {
            "requestId": self.request_id,
            "email": self.email,
            "expiresOn": self.expires_on,
            "daysUntilExpiry": self.days_left,
            "notificationType": self.notification_type.value,
        }


@dataclass(frozen=True)
class ExpiredAccess:
    """An Active request whose expiry has passed."""

    request_id: UUID
    email: str
    expires_on: datetime

    def describe(self) -> dict[str, Any]:
        return {
            "requestId": self.request_id,
            "email": self.email,
            "expiresOn": self.expires_on,
        }


def classify_notification(days_left: int, notification_count: int) -> NotificationType | None:
    """
    Decide which reminder, if any, is due.

    - nothing sent yet -> first reminder
    - one sent and at most FINAL_REMINDER_DAYS left -> final reminder
    - one sent with more days left, or two or more sent -> nothing
    """
    if notification_count == 0:
        return NotificationType.FIRST_REMINDER
    if notification_count == 1 and days_left <= FINAL_REMINDER_DAYS:
        return NotificationType.FINAL_REMINDER
    return None


class WorkSelector:
    """Reads business state and derives the items a job run must process."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utc_now) -> None:
        self.db = db
        self._clock = clock

    async def find_notification_candidates(self) -> list[NotificationCandidate]:
        """
        Active requests expiring within [0, NOTIFICATION_WINDOW_DAYS] calendar days.

        Requests that never expire are excluded. Each candidate carries how
        many reminders have already been recorded for it.
        """
        now = self._clock()
        today = start_of_day(now)
        window_end = today + timedelta(days=NOTIFICATION_WINDOW_DAYS + 1)

        sent_count = (
            select(func.count(ExpiryNotification.id))
            .where(ExpiryNotification.request_id == UserAccessRequest.request_id)
            .correlate(UserAccessRequest)
            .scalar_subquery()
        )

        result = await self.db.execute(
            select(
                UserAccessRequest.id,
                UserAccessRequest.request_id,
                UserAccessRequest.requestor_email,
                UserAccessRequest.expires_on,
                sent_count.label("notification_count"),
            ).where(
                UserAccessRequest.status == AccessRequestStatus.ACTIVE,
                UserAccessRequest.expires_on >= today,
                UserAccessRequest.expires_on < window_end,
                UserAccessRequest.expires_on < NEVER_EXPIRES,
            )
        )

        return [
            NotificationCandidate(
                id=row.id,
                request_id=row.request_id,
                email=row.requestor_email,
                expires_on=row.expires_on,
                days_left=days_until(row.expires_on, now),
                notification_count=row.notification_count,
            )
            for row in result.all()
        ]

    async def select_pending_notifications(self) -> list[NotificationItem]:
        """Reminders that are due right now."""
        candidates = await self.find_notification_candidates()

        items = []
        for candidate in candidates:
            notification_type = classify_notification(
                candidate.days_left, candidate.notification_count
            )
            if notification_type is None:
                continue
            items.append(
                NotificationItem(
                    request_id=candidate.request_id,
                    email=candidate.email,
                    expires_on=candidate.expires_on,
                    days_left=candidate.days_left,
                    notification_type=notification_type,
                )
            )

        logger.bind(candidates=len(candidates), due=len(items)).debug("notifications_selected")
        return items

    async def select_expired_active(self) -> list[ExpiredAccess]:
        """Active requests whose expiry is at or before now."""
        now = self._clock()
        result = await self.db.execute(
            select(
                UserAccessRequest.request_id,
                UserAccessRequest.requestor_email,
                UserAccessRequest.expires_on,
            )
            .where(
                UserAccessRequest.status == AccessRequestStatus.ACTIVE,
                UserAccessRequest.expires_on <= now,
            )
            .order_by(UserAccessRequest.expires_on)
        )

        items = [
            ExpiredAccess(
                request_id=row.request_id,
                email=row.requestor_email,
                expires_on=row.expires_on,
            )
            for row in result.all()
        ]
        logger.bind(expired=len(items)).debug("expired_requests_selected")
        return items
