"""
Access request jobs CLI.

Usage:
    access-jobs --help                          Show all commands
    access-jobs notify                          Send due expiry reminders
    access-jobs notify --fail-email a@x.com     Force one recipient to fail
    access-jobs revoke                          Revoke expired access requests
    access-jobs status notification             Show who holds a job lock
    access-jobs runs                            Show recent job runs
"""

import asyncio

import typer

from app.models.job_run import JobKind

app = typer.Typer(
    name="access-jobs",
    help="Access request job runner",
    no_args_is_help=True,
)


# --- Printer helpers ---


def _print_success(message: str) -> None:
    """Print a success message."""
    typer.echo(f"  ✅ {message}")


def _print_warning(message: str) -> None:
    """Print a warning message."""
    typer.echo(f"  ⚠️ {message}")


def _print_error(message: str) -> None:
    """Print an error message to stderr."""
    typer.echo(f"❌ {message}", err=True)


def _run_job(kind: JobKind, fail_email: list[str], simulate_failures: bool, hold: bool) -> None:
    from app.core.database import AsyncSessionLocal
    from app.core.logging import setup_logging
    from app.jobs.constants import REVOKE_HOLD_DELAY_SECONDS
    from app.jobs.errors import JobLockConflict, JobRunFailed
    from app.jobs.factory import JobFactory
    from app.jobs.failures import FailurePlan

    setup_logging()
    factory = JobFactory(
        AsyncSessionLocal,
        revoke_hold_seconds=REVOKE_HOLD_DELAY_SECONDS if hold else 0.0,
    )
    plan = FailurePlan.from_params(fail_email, fail_randomly=simulate_failures)

    try:
        result = asyncio.run(factory.runner(kind, plan).run())
    except JobLockConflict as e:
        _print_error(str(e))
        if e.holder:
            typer.echo(
                f"  held by {e.holder.started_by} since {e.holder.started_at:%Y-%m-%d %H:%M:%S} "
                f"(job {e.holder.job_id})",
                err=True,
            )
        raise typer.Exit(2) from e
    except JobRunFailed as e:
        _print_error(f"Job {e.job_id} failed: {e.message}")
        raise typer.Exit(1) from e

    typer.echo(f"\n{result.message}")
    for entry in result.succeeded:
        _print_success(f"{entry['email']} ({entry['requestId']})")
    for entry in result.failed:
        _print_warning(f"{entry['email']}: {entry['error']}")
    typer.echo(
        f"\njob {result.job_id} | parallel {result.parallel_elapsed_ms}ms | "
        f"sequential estimate {result.sequential_estimate_ms}ms | total {result.total_elapsed_ms}ms"
    )


@app.command()
def notify(
    fail_email: list[str] = typer.Option(
        [], "--fail-email", help="Testing only: force this recipient to fail (repeatable)"
    ),
    simulate_failures: bool = typer.Option(
        False, "--simulate-failures", help="Testing only: fail about half at random"
    ),
):
    """Send due 30-day and 7-day expiry reminders."""
    _run_job(JobKind.NOTIFICATION, fail_email, simulate_failures, hold=False)


@app.command()
def revoke(
    fail_email: list[str] = typer.Option(
        [], "--fail-email", help="Testing only: force this request to fail (repeatable)"
    ),
    simulate_failures: bool = typer.Option(
        False, "--simulate-failures", help="Testing only: fail about half at random"
    ),
    hold: bool = typer.Option(
        False, "--hold", help="Keep the lock for the demo delay before revoking"
    ),
):
    """Revoke every Active access request whose expiry has passed."""
    _run_job(JobKind.REVOKE, fail_email, simulate_failures, hold=hold)


@app.command()
def status(kind: JobKind = typer.Argument(..., help="Job kind to inspect")):
    """Show whether a job kind is currently locked, and by whom."""
    from app.core.database import AsyncSessionLocal
    from app.jobs.status import JobStatusReporter

    async def _status():
        async with AsyncSessionLocal() as db:
            return await JobStatusReporter(db).status(kind)

    job_status = asyncio.run(_status())
    if not job_status.locked or job_status.holder is None:
        typer.echo(f"{kind.value}: idle")
        return

    holder = job_status.holder
    typer.echo(
        f"{kind.value}: running job {holder.job_id} on {holder.started_by} "
        f"since {holder.started_at:%Y-%m-%d %H:%M:%S}"
    )


@app.command()
def runs(limit: int = typer.Option(10, "--limit", "-n", help="Number of runs to show")):
    """Show the most recent job runs."""
    from sqlalchemy import select

    from app.core.database import AsyncSessionLocal
    from app.models.job_run import JobRun

    async def _runs():
        async with AsyncSessionLocal() as db:
            result = await db.execute(
                select(JobRun).order_by(JobRun.started_at.desc()).limit(limit)
            )
            return result.scalars().all()

    for run in asyncio.run(_runs()):
        counts = (
            f"processed={run.processed_count} failed={run.failed_count}"
            if run.processed_count is not None
            else (run.error_message or "")
        )
        typer.echo(
            f"{run.started_at:%Y-%m-%d %H:%M:%S} {run.job_kind.value:<12} "
            f"{run.status.value:<10} {run.started_by:<20} {counts}"
        )


@app.command()
def migrate():
    """Run database migrations (alembic upgrade head)."""
    import subprocess

    result = subprocess.run(["alembic", "upgrade", "head"], check=False)
    raise typer.Exit(result.returncode)


@app.command()
def serve(
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable hot reload"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to run on"),
):
    """Start the API server."""
    import subprocess

    cmd = ["uvicorn", "app.main:app", "--host", "0.0.0.0", "--port", str(port)]
    if reload:
        cmd.append("--reload")

    subprocess.run(cmd, check=False)


if __name__ == "__main__":
    app()
