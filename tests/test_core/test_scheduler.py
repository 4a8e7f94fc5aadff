"""Tests for scheduled job wrappers."""

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.core.scheduler import _run_scheduled, start_scheduler
from app.jobs.errors import JobLockConflict, JobRunFailed
from app.models.job_run import JobKind

pytestmark = pytest.mark.asyncio


def _factory_with_runner(run: AsyncMock) -> MagicMock:
    factory = MagicMock()
    factory.return_value.runner.return_value.run = run
    return factory


class TestRunScheduled:
    """Tests for _run_scheduled."""

    async def test_conflict_is_skipped(self):
        """A held lock means another server is on it; nothing is raised."""
        run = AsyncMock(side_effect=JobLockConflict(JobKind.REVOKE, None))

        with patch("app.core.scheduler.JobFactory", _factory_with_runner(run)):
            await _run_scheduled(JobKind.REVOKE)

        run.assert_awaited_once()

    async def test_failure_is_reraised(self):
        """A failed run propagates so the scheduler records it."""
        run = AsyncMock(side_effect=JobRunFailed(JobKind.NOTIFICATION, uuid.uuid4(), "boom"))

        with patch("app.core.scheduler.JobFactory", _factory_with_runner(run)):
            with pytest.raises(JobRunFailed):
                await _run_scheduled(JobKind.NOTIFICATION)

    async def test_runs_requested_kind(self):
        result = MagicMock(job_id=uuid.uuid4(), processed_count=1, failed_count=0)
        run = AsyncMock(return_value=result)
        factory = _factory_with_runner(run)

        with patch("app.core.scheduler.JobFactory", factory):
            await _run_scheduled(JobKind.NOTIFICATION)

        factory.return_value.runner.assert_called_once_with(JobKind.NOTIFICATION)


class TestStartScheduler:
    """Tests for start_scheduler."""

    async def test_disabled_by_default(self):
        """Returns None without touching APScheduler when disabled."""
        settings = MagicMock(scheduler_enabled=False)

        with (
            patch("app.core.scheduler.get_settings", return_value=settings),
            patch("app.core.scheduler.AsyncScheduler") as scheduler_cls,
        ):
            assert await start_scheduler() is None

        scheduler_cls.assert_not_called()
