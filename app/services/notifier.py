"""
External notifier for expiry reminders.

The notification job only depends on the Notifier protocol. The shipped
implementation simulates a mail gateway: it waits a fixed latency and then
succeeds unless the request's failure plan says otherwise.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Protocol

from app.core.logging import get_logger
from app.jobs.constants import SIMULATED_SEND_DELAY_SECONDS
from app.jobs.failures import FailurePlan, SimulatedFailure

logger = get_logger(__name__)


@dataclass
class DeliveryResult:
    """Result of one notify call."""

    recipient: str
    success: bool
    message: str


class Notifier(Protocol):
    """Protocol for anything that can deliver a reminder to a recipient."""

    async def notify(self, recipient: str, context: dict[str, Any]) -> DeliveryResult:
        """Deliver one notification. Must not raise for delivery failures."""
        ...


class SimulatedNotifier:
    """Fire-and-forget stand-in for an email gateway.

    Only the calling task waits for the simulated latency; nothing shared is
    held while it sleeps.
    """

    def __init__(
        self,
        delay_seconds: float = SIMULATED_SEND_DELAY_SECONDS,
        failure_plan: FailurePlan | None = None,
    ) -> None:
        self.delay_seconds = delay_seconds
        self.failure_plan = failure_plan or FailurePlan()

    async def notify(self, recipient: str, context: dict[str, Any]) -> DeliveryResult:
        await asyncio.sleep(self.delay_seconds)

        try:
            self.failure_plan.check(recipient, identifier=context.get("request_id"))
        except SimulatedFailure as e:
            logger.bind(recipient=recipient, error=str(e)).warning("notification_rejected")
            return DeliveryResult(recipient=recipient, success=False, message=str(e))

        logger.bind(
            recipient=recipient,
            notification_type=context.get("notification_type"),
        ).debug("notification_delivered")
        return DeliveryResult(recipient=recipient, success=True, message="sent")
