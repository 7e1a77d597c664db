"""
Generation Coordinator - generic sequential batch driver.

Runs an ordered list of work items one at a time:

1. handler.mark_generating(item)          (persisted)
2. output = await handler.generate(item)  (one or more completion calls)
3. handler.mark_complete(item, output)    (persisted)
   or, if step 2 raised, handler.mark_failed(item, error) and move on.

A failing item never aborts the batch. Persistence errors raised by the
mark_* hooks do abort it: they mean the batch state can't be recorded.

Items are never fanned out in parallel. Later items are built from the output
of earlier ones, and the completion service is rate limited.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Sequence, TypeVar

from architect.exceptions import PersistenceError
from architect.logging_config import get_logger
from architect.models.status import BatchStatus
from architect.services.status import derive_batch_status

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class ItemOutcome(str, Enum):
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class ItemResult(Generic[T]):
    item: T
    outcome: ItemOutcome
    error: str | None = None


@dataclass
class BatchResult(Generic[T]):
    results: list[ItemResult[T]] = field(default_factory=list)

    @property
    def completed(self) -> int:
        return sum(1 for r in self.results if r.outcome is ItemOutcome.COMPLETE)

    @property
    def failed(self) -> int:
        return len(self.results) - self.completed

    @property
    def errors(self) -> dict[str, str]:
        return {str(r.item): r.error for r in self.results if r.error is not None}

    @property
    def status(self) -> BatchStatus:
        return derive_batch_status(r.outcome.value for r in self.results)


class BatchHandler(ABC, Generic[T, R]):
    """Per-batch behaviour plugged into the coordinator."""

    batch_kind: str = "batch"

    def describe(self, item: T) -> str:
        return str(item)

    @abstractmethod
    async def mark_generating(self, item: T) -> None:
        ...

    @abstractmethod
    async def generate(self, item: T) -> R:
        """Produce the item's output. Must not write to the database."""

    @abstractmethod
    async def mark_complete(self, item: T, output: R) -> None:
        ...

    @abstractmethod
    async def mark_failed(self, item: T, error: Exception) -> None:
        ...


class GenerationCoordinator:
    """Stateless; one instance can drive any number of batches."""

    async def run(self, items: Sequence[T], handler: BatchHandler[T, R]) -> BatchResult[T]:
        batch: BatchResult[T] = BatchResult()
        total = len(items)

        logger.info("batch_started", batch_kind=handler.batch_kind, total=total)

        for index, item in enumerate(items, start=1):
            label = handler.describe(item)
            await handler.mark_generating(item)

            try:
                output = await handler.generate(item)
            except PersistenceError:
                raise
            except Exception as e:
                logger.warning(
                    "batch_item_failed",
                    batch_kind=handler.batch_kind,
                    item=label,
                    position=index,
                    total=total,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await handler.mark_failed(item, e)
                batch.results.append(ItemResult(item, ItemOutcome.ERROR, str(e) or type(e).__name__))
                continue

            await handler.mark_complete(item, output)
            batch.results.append(ItemResult(item, ItemOutcome.COMPLETE))
            logger.info(
                "batch_item_complete",
                batch_kind=handler.batch_kind,
                item=label,
                position=index,
                total=total,
            )

        logger.info(
            "batch_finished",
            batch_kind=handler.batch_kind,
            status=batch.status.value,
            completed=batch.completed,
            failed=batch.failed,
        )
        return batch
