"""Test-only forced failures for job triggers.

A FailurePlan built from no parameters never fails anything, so production
triggers that omit the parameters behave exactly as if this did not exist.
"""

import random
from collections.abc import Iterable
from dataclasses import dataclass, field


REJECTED_MESSAGE = "Simulated: SMTP server rejected recipient '{recipient}'"
TIMEOUT_MESSAGE = "Simulated: SMTP server connection timed out after 30 seconds"


class SimulatedFailure(Exception):
    """Raised when a failure plan forces an item to fail."""


@dataclass
class FailurePlan:
    """Which items to force-fail.

    Args:
        fail_identifiers: Recipient emails (case-insensitive) or request ids
        fail_randomly: Fail roughly half of the remaining items
    """

    fail_identifiers: frozenset[str] = field(default_factory=frozenset)
    fail_randomly: bool = False
    rng: random.Random = field(default_factory=random.Random, repr=False)

    @classmethod
    def from_params(
        cls,
        fail_identifiers: Iterable[str] | None = None,
        fail_randomly: bool = False,
        rng: random.Random | None = None,
    ) -> "FailurePlan":
        identifiers = frozenset(i.strip().lower() for i in (fail_identifiers or []) if i.strip())
        return cls(
            fail_identifiers=identifiers,
            fail_randomly=fail_randomly,
            rng=rng or random.Random(),
        )

    @property
    def is_noop(self) -> bool:
        return not self.fail_identifiers and not self.fail_randomly

    def check(
        self,
        recipient: str,
        identifier: str | None = None,
        rejected_message: str = REJECTED_MESSAGE,
        random_message: str = TIMEOUT_MESSAGE,
    ) -> None:
        """Raise SimulatedFailure if this item must fail."""
        if self.is_noop:
            return

        keys = {recipient.lower()}
        if identifier:
            keys.add(identifier.lower())

        if keys & self.fail_identifiers:
            raise SimulatedFailure(rejected_message.format(recipient=recipient))
        if self.fail_randomly and self.rng.randrange(2) == 0:
            raise SimulatedFailure(random_message.format(recipient=recipient))
