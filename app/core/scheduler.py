"""
APScheduler integration for FastAPI.

Fires the recurring jobs in-process on a cron schedule. Every server may run
its own scheduler: the database job lock makes sure only one of them actually
works a given job kind at a time, and the others log a skipped run.

Jobs:
- Expiry notifications: config.yml `scheduler.notification_cron` (daily 08:00 UTC)
- Revoke expired: config.yml `scheduler.revoke_cron` (every 30 min)
"""

from typing import Any

from apscheduler import AsyncScheduler, ConflictPolicy
from apscheduler.datastores.memory import MemoryDataStore
from apscheduler.triggers.cron import CronTrigger

from app.config import get_config, get_settings
from app.core.database import AsyncSessionLocal
from app.core.logging import get_logger
from app.jobs.errors import JobLockConflict, JobRunFailed
from app.jobs.factory import JobFactory
from app.models.job_run import JobKind

logger = get_logger(__name__)

# Global scheduler instance
scheduler: AsyncScheduler | None = None


async def _run_scheduled(kind: JobKind) -> None:
    runner = JobFactory(AsyncSessionLocal).runner(kind)
    logger.bind(kind=kind.value).info("scheduled_job_started")
    try:
        result = await runner.run()
    except JobLockConflict as e:
        logger.bind(
            kind=kind.value,
            active_job_id=str(e.holder.job_id) if e.holder else None,
        ).info("scheduled_job_skipped_lock_held")
        return
    except JobRunFailed as e:
        logger.bind(kind=kind.value, job_id=str(e.job_id), error=e.message).error(
            "scheduled_job_failed"
        )
        raise  # Re-raise so APScheduler records the failure

    logger.bind(
        kind=kind.value,
        job_id=str(result.job_id),
        processed=result.processed_count,
        failed=result.failed_count,
    ).info("scheduled_job_completed")


async def notification_job() -> None:
    """Send due expiry reminders."""
    await _run_scheduled(JobKind.NOTIFICATION)


async def revoke_job() -> None:
    """Revoke access requests whose expiry has passed."""
    await _run_scheduled(JobKind.REVOKE)


async def start_scheduler() -> AsyncScheduler | None:
    """Initialize and start the scheduler."""
    global scheduler

    settings = get_settings()
    if not settings.scheduler_enabled:
        logger.info("scheduler_disabled_by_config")
        return None

    config = get_config()

    # Schedules live in memory; cross-server exclusion comes from the job lock
    scheduler = AsyncScheduler(data_store=MemoryDataStore())

    # Start the scheduler first (required before calling other methods in APScheduler 4.x)
    await scheduler.__aenter__()

    await scheduler.add_schedule(
        notification_job,
        CronTrigger.from_crontab(config.scheduler.notification_cron),
        id="expiry_notifications",
        conflict_policy=ConflictPolicy.replace,
    )

    await scheduler.add_schedule(
        revoke_job,
        CronTrigger.from_crontab(config.scheduler.revoke_cron),
        id="revoke_expired",
        conflict_policy=ConflictPolicy.replace,
    )

    await scheduler.start_in_background()

    logger.bind(jobs=["expiry_notifications", "revoke_expired"]).info("scheduler_started")

    return scheduler


async def stop_scheduler() -> None:
    """Gracefully stop the scheduler."""
    global scheduler
    if scheduler:
        await scheduler.__aexit__(None, None, None)
        logger.info("scheduler_stopped")
        scheduler = None


async def get_job_schedules() -> list[dict[str, Any]]:
    """Get all registered job schedules."""
    if not scheduler:
        return []

    schedules = await scheduler.get_schedules()
    return [
        {
            "id": s.id,
            "task_id": s.task_id,
            "trigger": str(s.trigger),
            "next_fire_time": s.next_fire_time.isoformat() if s.next_fire_time else None,
            "last_fire_time": s.last_fire_time.isoformat() if s.last_fire_time else None,
        }
        for s in schedules
    ]
