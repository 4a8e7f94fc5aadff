from app.schemas.access_request import (
    AccessRequestCreate,
    AccessRequestCreated,
    AccessRequestResponse,
    PendingNotificationResponse,
)
from app.schemas.jobs import (
    ActiveJobResponse,
    JobConflictResponse,
    JobRunHistoryResponse,
    JobRunResponse,
    JobStatsResponse,
    JobStatusResponse,
    JobTimingResponse,
    ScheduleResponse,
)

__all__ = [
    "AccessRequestCreate",
    "AccessRequestCreated",
    "AccessRequestResponse",
    "PendingNotificationResponse",
    "ActiveJobResponse",
    "JobConflictResponse",
    "JobRunHistoryResponse",
    "JobRunResponse",
    "JobStatsResponse",
    "JobStatusResponse",
    "JobTimingResponse",
    "ScheduleResponse",
]
