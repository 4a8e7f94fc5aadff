"""Builds runners for each job kind from shared wiring.

Used by the HTTP triggers, the scheduler and the CLI so they all run the same
jobs with the same constants.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import get_settings
from app.jobs.batch import ParallelBatchExecutor
from app.jobs.constants import (
    REVOKE_HOLD_DELAY_SECONDS,
    SEQUENTIAL_ESTIMATE_PER_ITEM_MS,
    SIMULATED_SEND_DELAY_SECONDS,
)
from app.jobs.failures import FailurePlan
from app.jobs.notification import NotificationJob
from app.jobs.revoke import RevokeExpiredJob
from app.jobs.runner import Job, JobRunner, default_holder_name
from app.models.job_run import JobKind
from app.services.notifier import SimulatedNotifier


class JobFactory:
    """Creates a JobRunner for a job kind and an optional failure plan."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        send_delay_seconds: float = SIMULATED_SEND_DELAY_SECONDS,
        revoke_hold_seconds: float = REVOKE_HOLD_DELAY_SECONDS,
        started_by: str | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.send_delay_seconds = send_delay_seconds
        self.revoke_hold_seconds = revoke_hold_seconds
        self.started_by = started_by or get_settings().instance_name or default_holder_name()

    def build_job(self, kind: JobKind, failure_plan: FailurePlan | None = None) -> Job:
        plan = failure_plan or FailurePlan()
        if kind == JobKind.NOTIFICATION:
            notifier = SimulatedNotifier(delay_seconds=self.send_delay_seconds, failure_plan=plan)
            return NotificationJob(self.session_factory, notifier)
        if kind == JobKind.REVOKE:
            return RevokeExpiredJob(
                self.session_factory,
                failure_plan=plan,
                hold_seconds=self.revoke_hold_seconds,
            )
        raise ValueError(f"Unknown job kind: {kind}")

    def runner(self, kind: JobKind, failure_plan: FailurePlan | None = None) -> JobRunner:
        return JobRunner(
            self.session_factory,
            self.build_job(kind, failure_plan),
            executor=ParallelBatchExecutor(per_item_estimate_ms=SEQUENTIAL_ESTIMATE_PER_ITEM_MS),
            started_by=self.started_by,
        )
