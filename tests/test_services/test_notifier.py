"""Tests for the simulated notifier and failure plans."""

from unittest.mock import MagicMock

import pytest

from app.jobs.failures import FailurePlan, SimulatedFailure
from app.services.notifier import SimulatedNotifier


def _rng(value: int) -> MagicMock:
    rng = MagicMock()
    rng.randrange.return_value = value
    return rng


class TestFailurePlan:
    """Tests for FailurePlan."""

    def test_empty_plan_is_noop(self):
        """No parameters means nothing ever fails."""
        plan = FailurePlan.from_params(None, fail_randomly=False)

        assert plan.is_noop is True
        plan.check("anyone@example.com", identifier="abc")

    def test_identifiers_are_normalized(self):
        """Blank entries are dropped, others trimmed and lowercased."""
        plan = FailurePlan.from_params(["  Alice@Example.com ", "", "   "])

        assert plan.fail_identifiers == frozenset({"alice@example.com"})

    def test_matches_recipient_case_insensitively(self):
        plan = FailurePlan.from_params(["ALICE@example.com"])

        with pytest.raises(SimulatedFailure) as exc_info:
            plan.check("alice@EXAMPLE.com")

        assert str(exc_info.value) == (
            "Simulated: SMTP server rejected recipient 'alice@EXAMPLE.com'"
        )

    def test_matches_identifier(self):
        plan = FailurePlan.from_params(["3f2b1c9e-0000-4000-8000-000000000001"])

        with pytest.raises(SimulatedFailure):
            plan.check("bob@example.com", identifier="3f2b1c9e-0000-4000-8000-000000000001")

    def test_other_recipients_pass(self):
        plan = FailurePlan.from_params(["alice@example.com"])

        plan.check("bob@example.com", identifier="123")

    def test_custom_messages(self):
        """Callers can word the simulated error for their own side effect."""
        plan = FailurePlan.from_params(["alice@example.com"])

        with pytest.raises(SimulatedFailure) as exc_info:
            plan.check("alice@example.com", rejected_message="nope: {recipient}")

        assert str(exc_info.value) == "nope: alice@example.com"

    def test_random_failure_when_coin_lands_zero(self):
        plan = FailurePlan.from_params(fail_randomly=True, rng=_rng(0))

        with pytest.raises(SimulatedFailure) as exc_info:
            plan.check("bob@example.com")

        assert "timed out after 30 seconds" in str(exc_info.value)

    def test_random_pass_when_coin_lands_one(self):
        plan = FailurePlan.from_params(fail_randomly=True, rng=_rng(1))

        plan.check("bob@example.com")


@pytest.mark.asyncio
class TestSimulatedNotifier:
    """Tests for SimulatedNotifier.notify."""

    async def test_success(self):
        notifier = SimulatedNotifier(delay_seconds=0)

        result = await notifier.notify("bob@example.com", {"notification_type": "30-Day Reminder"})

        assert result.success is True
        assert result.recipient == "bob@example.com"

    async def test_forced_failure_returns_result(self):
        """Delivery failures are returned, never raised."""
        plan = FailurePlan.from_params(["bob@example.com"])
        notifier = SimulatedNotifier(delay_seconds=0, failure_plan=plan)

        result = await notifier.notify("bob@example.com", {})

        assert result.success is False
        assert result.message == "Simulated: SMTP server rejected recipient 'bob@example.com'"

    async def test_failure_by_request_id_in_context(self):
        plan = FailurePlan.from_params(["req-42"])
        notifier = SimulatedNotifier(delay_seconds=0, failure_plan=plan)

        result = await notifier.notify("bob@example.com", {"request_id": "req-42"})

        assert result.success is False
