"""Access request models: the business state the jobs act on."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import Enum, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin


class AccessRequestStatus(str, enum.Enum):
    """Lifecycle of an access grant."""

    ACTIVE = "Active"
    REVOKED = "Revoked"


class UserAccessRequest(Base, TimestampMixin):
    """A time-bounded access grant requested by a user."""

    __tablename__ = "user_access_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True, index=True, default=uuid.uuid4)
    requestor_email: Mapped[str] = mapped_column(String(255), index=True)
    expires_on: Mapped[datetime] = mapped_column(index=True)
    status: Mapped[AccessRequestStatus] = mapped_column(
        Enum(
            AccessRequestStatus,
            values_callable=lambda e: [x.value for x in e],
            native_enum=False,
            length=20,
        ),
        default=AccessRequestStatus.ACTIVE,
        index=True,
    )

    # Relationships
    revocation: Mapped[RevokedAccess | None] = relationship(
        back_populates="access_request", lazy="selectin", uselist=False
    )

    def __repr__(self) -> str:
        return f"<UserAccessRequest {self.request_id} {self.requestor_email}>"


class ExpiryNotification(Base):
    """One row per successfully sent expiry reminder."""

    __tablename__ = "expiry_notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("user_access_requests.request_id", ondelete="CASCADE"), index=True
    )
    notification_sent_at: Mapped[datetime] = mapped_column()
    notification_sent_to: Mapped[str] = mapped_column(String(255))
    notification_sent_by: Mapped[str] = mapped_column(String(255))

    def __repr__(self) -> str:
        return f"<ExpiryNotification {self.request_id} to={self.notification_sent_to}>"


class RevokedAccess(Base):
    """Audit record written when an expired grant is revoked."""

    __tablename__ = "revoked_access"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("user_access_requests.request_id", ondelete="CASCADE"),
        unique=True,
        index=True,
    )
    revoked_at: Mapped[datetime] = mapped_column()
    revoked_by: Mapped[str] = mapped_column(String(255))

    access_request: Mapped[UserAccessRequest] = relationship(back_populates="revocation")

    def __repr__(self) -> str:
        return f"<RevokedAccess {self.request_id}>"
