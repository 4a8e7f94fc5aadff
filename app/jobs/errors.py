"""Job-level exceptions.

Item-level failures never surface as exceptions past the batch executor;
only lock conflicts and orchestration failures reach callers.
"""

from uuid import UUID

from app.jobs.lock import ActiveHolder
from app.models.job_run import JobKind


class JobLockConflict(Exception):
    """Another non-stale run of the same job kind holds the lock."""

    def __init__(self, kind: JobKind, holder: ActiveHolder | None) -> None:
        self.kind = kind
        self.holder = holder
        super().__init__(f"Another {kind.value} job is already running.")


class JobRunFailed(Exception):
    """The job crashed outside per-item isolation; its run row is marked Failed."""

    def __init__(self, kind: JobKind, job_id: UUID, message: str) -> None:
        self.kind = kind
        self.job_id = job_id
        self.message = message
        super().__init__(message)
