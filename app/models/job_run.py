"""Job run history model, doubling as the cross-process job lock."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Enum, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class JobKind(str, enum.Enum):
    """Recurring jobs whose runs are mutually exclusive per kind."""

    NOTIFICATION = "notification"
    REVOKE = "revoke"


class JobRunStatus(str, enum.Enum):
    """Job run status. Only InProgress -> Completed/Failed transitions exist."""

    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"


class JobRun(Base):
    """One row per execution attempt of a job kind.

    Rows are append-only. An InProgress row younger than the staleness window
    is what holds the lock for its job kind.
    """

    __tablename__ = "job_runs"
    __table_args__ = (Index("ix_job_runs_kind_status_started", "job_kind", "status", "started_at"),)

    job_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_kind: Mapped[JobKind] = mapped_column(
        Enum(
            JobKind,
            values_callable=lambda e: [x.value for x in e],
            native_enum=False,
            length=32,
        ),
    )
    status: Mapped[JobRunStatus] = mapped_column(
        Enum(
            JobRunStatus,
            values_callable=lambda e: [x.value for x in e],
            native_enum=False,
            length=20,
        ),
    )
    started_at: Mapped[datetime] = mapped_column()
    started_by: Mapped[str] = mapped_column(String(255))
    completed_at: Mapped[datetime | None] = mapped_column(default=None)
    processed_count: Mapped[int | None] = mapped_column(Integer, default=None)
    failed_count: Mapped[int | None] = mapped_column(Integer, default=None)
    error_message: Mapped[str | None] = mapped_column(String(500), default=None)

    def __repr__(self) -> str:
        return f"<JobRun {self.job_kind.value} {self.job_id} {self.status.value}>"
