"""Access request schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from app.schemas.base import CamelModel


class AccessRequestCreate(CamelModel):
    """Request body for creating an access request. 0 days means never expires."""

    requestor_email: str
    expiry_days: int = Field(default=0, ge=0)


class AccessRequestResponse(CamelModel):
    """Access request with its revocation details, if any."""

    id: int
    request_id: UUID
    requestor_email: str
    expires_on: datetime
    status: str
    revoked_dt: datetime | None = None
    revoked_by: str | None = None


class AccessRequestCreated(CamelModel):
    message: str
    request_id: UUID
    requestor_email: str
    expires_on: datetime
    status: str


class PendingNotificationResponse(CamelModel):
    """An access request that is due for a reminder."""

    id: int
    request_id: UUID
    requestor_email: str
    expires_on: datetime
    days_left: int
    notifications_sent: int
    next_notification: str
