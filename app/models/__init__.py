from app.models.access_request import (
    AccessRequestStatus,
    ExpiryNotification,
    RevokedAccess,
    UserAccessRequest,
)
from app.models.base import Base
from app.models.job_run import JobKind, JobRun, JobRunStatus

__all__ = [
    "Base",
    "UserAccessRequest",
    "AccessRequestStatus",
    "ExpiryNotification",
    "RevokedAccess",
    "JobRun",
    "JobKind",
    "JobRunStatus",
]
