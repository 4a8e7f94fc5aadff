"""Tests for access request endpoints and job triggers."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from app.jobs.selector import WorkSelector
from app.models.access_request import AccessRequestStatus
from app.models.job_run import JobKind, JobRunStatus

pytestmark = pytest.mark.asyncio

NOTIFY_URL = "/api/access-requests/send-expiry-notifications"
REVOKE_URL = "/api/access-requests/revoke-expired"


class TestSendExpiryNotifications:
    """Tests for POST /api/access-requests/send-expiry-notifications."""

    async def test_no_eligible_requests(self, client: AsyncClient):
        """Should complete with nothing to do."""
        response = await client.post(NOTIFY_URL)

        assert response.status_code == 200
        data = response.json()
        assert data["processedCount"] == 0
        assert data["failedCount"] == 0
        assert data["succeeded"] == []
        assert data["failed"] == []
        assert data["message"] == "No requests due for expiry notification."

    async def test_sends_to_all_eligible(self, client: AsyncClient, access_request_factory):
        """Should report every eligible request as sent."""
        for days in (2, 9, 28):
            await access_request_factory(expires_in_days=days)

        response = await client.post(NOTIFY_URL)

        assert response.status_code == 200
        data = response.json()
        assert data["processedCount"] == 3
        assert data["failedCount"] == 0
        assert len(data["succeeded"]) == 3
        assert data["message"] == "Successfully sent 3 expiry notification(s)."
        entry = data["succeeded"][0]
        assert set(entry) == {
            "requestId",
            "email",
            "expiresOn",
            "daysUntilExpiry",
            "notificationType",
            "status",
        }

    async def test_forced_failure_by_email(self, client: AsyncClient, access_request_factory):
        """Should fail exactly the forced recipient and send the rest."""
        await access_request_factory(email="alice@example.com", expires_in_days=5)
        await access_request_factory(email="bob@example.com", expires_in_days=5)
        carol = await access_request_factory(email="carol@example.com", expires_in_days=5)

        response = await client.post(NOTIFY_URL, params={"failEmail": "carol@example.com"})

        assert response.status_code == 200
        data = response.json()
        assert data["processedCount"] == 2
        assert data["failedCount"] == 1
        assert data["failed"][0]["email"] == "carol@example.com"
        assert data["failed"][0]["requestId"] == str(carol.request_id)
        assert data["failed"][0]["error"] == (
            "Simulated: SMTP server rejected recipient 'carol@example.com'"
        )
        assert data["message"] == "Sent 2 notification(s), 1 failed."

    async def test_repeatable_fail_email(self, client: AsyncClient, access_request_factory):
        """Every failEmail value is honoured."""
        await access_request_factory(email="a@example.com", expires_in_days=5)
        await access_request_factory(email="b@example.com", expires_in_days=5)

        response = await client.post(
            NOTIFY_URL, params=[("failEmail", "a@example.com"), ("failEmail", "b@example.com")]
        )

        data = response.json()
        assert data["processedCount"] == 0
        assert data["failedCount"] == 2
        assert data["message"] == "All 2 notification(s) failed to send."

    async def test_timing_reports_parallel_speedup(
        self, client: AsyncClient, access_request_factory
    ):
        """Parallel time should be well under the sequential estimate."""
        for _ in range(3):
            await access_request_factory(expires_in_days=4)

        response = await client.post(NOTIFY_URL)

        timing = response.json()["timing"]
        assert timing["sequentialEstimateMs"] == 6000
        assert timing["parallelElapsedMs"] < 3 * 200
        assert timing["savedMs"] == timing["sequentialEstimateMs"] - timing["parallelElapsedMs"]
        assert timing["totalElapsedMs"] >= timing["parallelElapsedMs"]

    async def test_concurrent_triggers_conflict(
        self, client: AsyncClient, access_request_factory
    ):
        """Of two simultaneous triggers one runs and the other gets 409 naming it."""
        for _ in range(3):
            await access_request_factory(expires_in_days=6)

        first, second = await asyncio.gather(client.post(NOTIFY_URL), client.post(NOTIFY_URL))

        by_status = {first.status_code: first.json(), second.status_code: second.json()}
        assert set(by_status) == {200, 409}
        conflict = by_status[409]
        assert conflict["message"] == "Another notification job is already running."
        assert conflict["activeJob"]["jobId"] == by_status[200]["jobId"]
        assert conflict["activeJob"]["startedBy"] == "test-server"
        assert by_status[200]["processedCount"] == 3

    async def test_conflict_with_other_server(self, client: AsyncClient, job_run_factory):
        """A run held by another server yields 409 with its identity."""
        holder = await job_run_factory(kind=JobKind.NOTIFICATION, started_by="server-b")

        response = await client.post(NOTIFY_URL)

        assert response.status_code == 409
        active = response.json()["activeJob"]
        assert active["jobId"] == str(holder.job_id)
        assert active["startedBy"] == "server-b"
        assert "startedAt" in active

    async def test_orchestration_failure_returns_500(self, client: AsyncClient):
        """A crash outside item isolation fails the run and returns 500."""
        with patch.object(
            WorkSelector,
            "select_pending_notifications",
            AsyncMock(side_effect=RuntimeError("selection query exploded")),
        ):
            response = await client.post(NOTIFY_URL)

        assert response.status_code == 500
        assert response.json()["detail"] == "Notification job failed: selection query exploded"

        runs = (await client.get("/api/jobs/runs")).json()
        assert runs[0]["status"] == JobRunStatus.FAILED.value
        assert runs[0]["errorMessage"] == "selection query exploded"

        # The lock was released
        status = (await client.get("/api/access-requests/notification-job-status")).json()
        assert status["locked"] is False


class TestRevokeExpired:
    """Tests for POST /api/access-requests/revoke-expired."""

    async def test_nothing_to_revoke(self, client: AsyncClient):
        """Should complete with nothing to do."""
        response = await client.post(REVOKE_URL)

        assert response.status_code == 200
        assert response.json()["message"] == "No expired requests found to revoke."

    async def test_revokes_expired(self, client: AsyncClient, access_request_factory):
        """Should revoke expired Active requests and leave others alone."""
        expired = await access_request_factory(expires_in_days=-2)
        await access_request_factory(expires_in_days=3)

        response = await client.post(REVOKE_URL)

        assert response.status_code == 200
        data = response.json()
        assert data["processedCount"] == 1
        assert data["succeeded"][0]["requestId"] == str(expired.request_id)
        assert data["succeeded"][0]["status"] == "revoked"
        assert data["succeeded"][0]["revokedAt"] is not None

        listing = (await client.get("/api/access-requests")).json()
        by_id = {r["requestId"]: r for r in listing}
        revoked = by_id[str(expired.request_id)]
        assert revoked["status"] == AccessRequestStatus.REVOKED.value
        assert revoked["revokedBy"] == "System - Scheduled Expiry Job"
        assert revoked["revokedDt"] is not None

    async def test_forced_failure_by_request_id(
        self, client: AsyncClient, access_request_factory
    ):
        """A request id in failEmail fails that revocation only."""
        keep = await access_request_factory(expires_in_days=-1)
        await access_request_factory(expires_in_days=-1)

        response = await client.post(REVOKE_URL, params={"failEmail": str(keep.request_id)})

        data = response.json()
        assert data["processedCount"] == 1
        assert data["failedCount"] == 1
        assert data["failed"][0]["requestId"] == str(keep.request_id)

        pending = (await client.get("/api/access-requests/pending-expiry")).json()
        assert [p["requestId"] for p in pending] == [str(keep.request_id)]


class TestJobStatus:
    """Tests for the job status endpoints."""

    async def test_idle(self, client: AsyncClient):
        """Should report unlocked with no active job."""
        response = await client.get("/api/access-requests/notification-job-status")

        assert response.status_code == 200
        assert response.json() == {"locked": False, "activeJob": None}

    async def test_locked(self, client: AsyncClient, job_run_factory):
        """Should report the active run for its own kind only."""
        holder = await job_run_factory(kind=JobKind.REVOKE, started_by="server-c")

        revoke = (await client.get("/api/access-requests/revoke-job-status")).json()
        notify = (await client.get("/api/access-requests/notification-job-status")).json()

        assert revoke["locked"] is True
        assert revoke["activeJob"]["jobId"] == str(holder.job_id)
        assert revoke["activeJob"]["startedBy"] == "server-c"
        assert notify["locked"] is False


class TestAccessRequestCrud:
    """Tests for the access request collaborator endpoints."""

    async def test_create(self, client: AsyncClient):
        """Should create an Active request expiring after expiryDays."""
        response = await client.post(
            "/api/access-requests",
            json={"requestorEmail": "new@example.com", "expiryDays": 10},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Access request created successfully."
        assert data["requestorEmail"] == "new@example.com"
        assert data["status"] == "Active"

        listing = (await client.get("/api/access-requests")).json()
        assert [r["requestId"] for r in listing] == [data["requestId"]]

    async def test_create_never_expires(self, client: AsyncClient):
        """Zero expiry days stores the never-expires sentinel."""
        response = await client.post(
            "/api/access-requests",
            json={"requestorEmail": "forever@example.com", "expiryDays": 0},
        )

        assert response.status_code == 200
        assert response.json()["expiresOn"].startswith("9999-12-31T23:59:59")

    async def test_create_requires_email(self, client: AsyncClient):
        """Should reject a blank email."""
        response = await client.post(
            "/api/access-requests",
            json={"requestorEmail": "   ", "expiryDays": 5},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Email is required."

    async def test_create_rejects_negative_days(self, client: AsyncClient):
        """Should validate expiryDays."""
        response = await client.post(
            "/api/access-requests",
            json={"requestorEmail": "x@example.com", "expiryDays": -1},
        )

        assert response.status_code == 422

    async def test_pending_notifications(self, client: AsyncClient, access_request_factory):
        """Should preview the reminders the next run would send."""
        first = await access_request_factory(expires_in_days=20)
        final = await access_request_factory(expires_in_days=5, notifications_sent=1)
        await access_request_factory(expires_in_days=20, notifications_sent=1)
        await access_request_factory(expires_in_days=2, notifications_sent=2)

        response = await client.get("/api/access-requests/pending-notifications")

        assert response.status_code == 200
        pending = {p["requestId"]: p for p in response.json()}
        assert set(pending) == {str(first.request_id), str(final.request_id)}
        assert pending[str(first.request_id)]["nextNotification"] == "30-Day Reminder"
        assert pending[str(first.request_id)]["notificationsSent"] == 0
        assert pending[str(final.request_id)]["nextNotification"] == "7-Day Reminder"
        assert pending[str(final.request_id)]["daysLeft"] == 5
