"""
Parallel batch execution with per-item failure isolation.

Every item runs as its own task. A raised exception or an explicit
ItemFailure result is recorded against that item only; nothing an item
does can stop, delay or corrupt its siblings. Outcomes are joined with
asyncio.gather, so no shared mutable aggregate is written concurrently.

Operations must be side-effect free on failure and produce at most one
durable side effect on success. That is what makes re-running a batch on
the next job cycle safe.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from app.core.datetime_utils import elapsed_ms
from app.core.logging import get_logger
from app.jobs.constants import SEQUENTIAL_ESTIMATE_PER_ITEM_MS

logger = get_logger(__name__)


@dataclass(frozen=True)
class ItemFailure:
    """Explicit failure result an operation may return instead of raising."""

    reason: str


@dataclass
class ItemOutcome[T]:
    """Result of running the operation for one item."""

    item: T
    success: bool
    value: Any = None
    error: str | None = None


@dataclass
class BatchTiming:
    """Elapsed-time metrics for one batch run."""

    parallel_elapsed_ms: int
    sequential_estimate_ms: int

    @property
    def saved_ms(self) -> int:
        return self.sequential_estimate_ms - self.parallel_elapsed_ms


@dataclass
class BatchResult[T]:
    """Aggregate of one batch run. Outcome order carries no meaning."""

    outcomes: list[ItemOutcome[T]] = field(default_factory=list)
    timing: BatchTiming = field(default_factory=lambda: BatchTiming(0, 0))

    @property
    def succeeded(self) -> list[ItemOutcome[T]]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> list[ItemOutcome[T]]:
        return [o for o in self.outcomes if not o.success]

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_count(self) -> int:
        return len(self.failed)


def _describe_error(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


class ParallelBatchExecutor:
    """Run one async operation per item concurrently and collect the outcomes.

    Args:
        per_item_estimate_ms: Cost per item used for the sequential estimate
        max_concurrency: Optional cap on in-flight items; unbounded by default
    """

    def __init__(
        self,
        per_item_estimate_ms: int = SEQUENTIAL_ESTIMATE_PER_ITEM_MS,
        max_concurrency: int | None = None,
    ) -> None:
        self.per_item_estimate_ms = per_item_estimate_ms
        self._semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    async def _run_one[T](
        self,
        item: T,
        operation: Callable[[T], Awaitable[Any]],
    ) -> ItemOutcome[T]:
        try:
            if self._semaphore is not None:
                async with self._semaphore:
                    value = await operation(item)
            else:
                value = await operation(item)
        except Exception as e:
            error = _describe_error(e)
            logger.bind(item=repr(item), error=error).warning("batch_item_failed")
            return ItemOutcome(item=item, success=False, error=error)

        if isinstance(value, ItemFailure):
            logger.bind(item=repr(item), error=value.reason).warning("batch_item_failed")
            return ItemOutcome(item=item, success=False, error=value.reason)

        return ItemOutcome(item=item, success=True, value=value)

    async def run[T](
        self,
        items: Sequence[T],
        operation: Callable[[T], Awaitable[Any]],
    ) -> BatchResult[T]:
        """
        Execute operation for every item concurrently.

        Args:
            items: Independent work items
            operation: Async callable returning a success value, or an
                ItemFailure / raising on failure

        Returns:
            BatchResult with one outcome per item and timing metrics
        """
        start = time.perf_counter()
        outcomes = await asyncio.gather(*(self._run_one(item, operation) for item in items))
        parallel_ms = elapsed_ms(start, time.perf_counter())

        result: BatchResult[T] = BatchResult(
            outcomes=list(outcomes),
            timing=BatchTiming(
                parallel_elapsed_ms=parallel_ms,
                sequential_estimate_ms=len(items) * self.per_item_estimate_ms,
            ),
        )

        logger.bind(
            items=len(items),
            succeeded=result.succeeded_count,
            failed=result.failed_count,
            parallel_ms=parallel_ms,
        ).info("batch_completed")
        return result
